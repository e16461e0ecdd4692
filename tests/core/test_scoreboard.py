from __future__ import annotations

import pytest

from acceleval.core import competition_ranks
from acceleval.errors import StepConfigurationError, StepNotFoundError


def test_competition_ranks_with_ties_and_unscored():
    assert competition_ranks([9.0, 9.0, 7.5, None]) == [1, 1, 3, 4]


def test_ties_ignore_float_noise():
    assert competition_ranks([0.1 + 0.2, 0.3, 0.1]) == [1, 1, 3]


def test_unscored_share_one_rank():
    assert competition_ranks([5.0, None, None]) == [1, 2, 2]


def _ranked_workspace(workspace):
    workspace.add_submissions("sub-a", "sub-b", "sub-c", "sub-d")
    workspace.add_evaluators(1, "judge-a")
    workspace.score("sub-a", "judge-a", 1, Team=10, Market=10, Product=10)
    workspace.score("sub-b", "judge-a", 1, Team=10, Market=10, Product=10)
    workspace.score("sub-c", "judge-a", 1, Team=10, Market=10, Product=5)
    return workspace


def test_scoreboard_orders_and_ranks(workspace):
    _ranked_workspace(workspace)

    board = workspace.service.scoreboard(step_id=workspace.step(1).id)

    assert board.max_total == pytest.approx(3.0)
    assert [e.submission_id for e in board.entries][2:] == ["sub-c", "sub-d"]
    assert [e.rank for e in board.entries] == [1, 1, 3, 4]
    assert board.entries[3].average_score is None
    assert board.entries[3].judge_count == 0


def test_cutoff_decides_pass_and_fail(workspace):
    _ranked_workspace(workspace)
    step_id = workspace.step(1).id

    workspace.service.set_cutoff(step_id, 2.8)
    board = workspace.service.scoreboard(step_id=step_id)

    results = {e.submission_id: e.result for e in board.entries}
    assert results == {"sub-a": "PASSED", "sub-b": "PASSED", "sub-c": "FAILED", "sub-d": "PENDING"}
    assert board.cutoff_score == pytest.approx(2.8)


def test_cutoff_must_fit_total_scale(workspace):
    with pytest.raises(StepConfigurationError):
        workspace.service.set_cutoff(workspace.step(1).id, 3.5)


def test_validity_requires_evaluator_share(workspace):
    workspace.add_submissions("sub-a")
    workspace.add_evaluators(1, "judge-a", "judge-b")
    workspace.score("sub-a", "judge-a", 1, Team=5, Market=5, Product=5)

    entry = workspace.service.scoreboard(step_id=workspace.step(1).id).entries[0]

    assert entry.evaluator_percentage == 50.0
    assert entry.meets_evaluator_requirement is False
    assert entry.result == "PENDING"
    assert entry.validity_message == "Only 1/2 evaluators scored (need 75%)"


def test_scoreboard_is_refreshed_after_writes(workspace):
    workspace.add_submissions("sub-a")
    workspace.add_evaluators(1, "judge-a")
    step_id = workspace.step(1).id

    before = workspace.service.scoreboard(step_id=step_id)
    workspace.score("sub-a", "judge-a", 1, Team=5, Market=5, Product=5)
    after = workspace.service.scoreboard(step_id=step_id)

    assert before.entries[0].average_score is None
    assert after.entries[0].average_score == pytest.approx(1.5)


def test_event_scoreboard_uses_final_step(service):
    steps = service.configure_steps(
        "demo-2026",
        [
            {"name": "Rehearsal", "criteria": [{"name": "Delivery"}]},
            {"name": "Finals", "criteria": [{"name": "Pitch", "weight": 2}]},
        ],
    )

    board = service.scoreboard(event_id="demo-2026")

    assert board.step_id == steps[1].id
    assert board.max_total == pytest.approx(2.0)
    with pytest.raises(StepNotFoundError):
        service.scoreboard(event_id="unknown-event")
    with pytest.raises(ValueError):
        service.scoreboard()


def test_judging_stats(workspace):
    workspace.add_submissions("sub-a", "sub-b")
    workspace.add_evaluators(1, "judge-a", "judge-b")
    workspace.score("sub-a", "judge-a", 1, Team=5, Market=5, Product=5)

    stats = workspace.service.judging_stats(workspace.step(1).id)

    assert stats.possible_scores == 4
    assert stats.completed_scores == 1
    assert stats.progress == 25.0
