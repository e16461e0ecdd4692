from __future__ import annotations

import math

import pytest

from acceleval.errors import IncompleteScoreError, OutOfRangeScoreError, UnknownCriterionError
from acceleval.schemas import CriteriaScores, Criterion, EvaluationStep


@pytest.fixture
def step() -> EvaluationStep:
    return EvaluationStep(
        id="s1",
        application_id="app-1",
        step_number=1,
        name="Screening",
        criteria=[
            Criterion(id="team", step_id="s1", name="Team", order=0),
            Criterion(id="market", step_id="s1", name="Market", order=1),
        ],
    )


def test_for_step_accepts_complete_payload(step: EvaluationStep):
    scores = CriteriaScores.for_step(step, {"team": 7, "market": "8.5"})
    assert dict(scores) == {"team": 7.0, "market": 8.5}
    assert scores.step_id == "s1"


def test_direct_construction_is_refused():
    with pytest.raises(TypeError):
        CriteriaScores("s1", {"team": 1.0})


def test_unknown_key_is_reported_first(step: EvaluationStep):
    with pytest.raises(UnknownCriterionError) as exc:
        CriteriaScores.for_step(step, {"team": 5, "pitch": 5})
    assert exc.value.unknown == ["pitch"]


def test_missing_and_null_values_are_incomplete(step: EvaluationStep):
    with pytest.raises(IncompleteScoreError) as exc:
        CriteriaScores.for_step(step, {"team": None})
    assert exc.value.missing == ["Team", "Market"]
    assert set(exc.value.field_errors()) == {"Team", "Market"}


@pytest.mark.parametrize("value", [11, 0, "abc", True, math.inf])
def test_out_of_range_values(step: EvaluationStep, value):
    with pytest.raises(OutOfRangeScoreError) as exc:
        CriteriaScores.for_step(step, {"team": value, "market": 5})
    assert exc.value.criterion == "Team"
    assert exc.value.bounds == (1.0, 10.0)


def test_all_out_of_range_violations_are_listed(step: EvaluationStep):
    with pytest.raises(OutOfRangeScoreError) as exc:
        CriteriaScores.for_step(step, {"team": 11, "market": -1})
    assert [v.criterion_name for v in exc.value.violations] == ["Team", "Market"]
    assert exc.value.values == [11.0, -1.0]


def test_step_rejects_inverted_bounds():
    with pytest.raises(ValueError):
        EvaluationStep(
            id="s1",
            application_id="app-1",
            step_number=1,
            name="Broken",
            criteria=[Criterion(id="c", step_id="s1", name="C")],
            min_score=10,
            max_score=1,
        )
