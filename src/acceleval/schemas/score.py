"""Score records and the validated criteria mapping."""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..errors import (
    CriterionViolation,
    IncompleteScoreError,
    OutOfRangeScoreError,
    UnknownCriterionError,
)
from .evaluation import EvaluationStep


class CriteriaScores(Mapping[str, float]):
    """Raw scores keyed by the criterion ids of exactly one step.

    Only ``CriteriaScores.for_step`` builds instances, so holding one means
    the key set and value range were checked against that step.
    """

    __slots__ = ("_step_id", "_values")

    def __init__(self, step_id: str, values: dict[str, float], *, _token: object = None):
        if _token is not _BUILD_TOKEN:
            raise TypeError("use CriteriaScores.for_step() to build criteria scores")
        self._step_id = step_id
        self._values = values

    @classmethod
    def for_step(cls, step: EvaluationStep, raw: Mapping[str, Any]) -> "CriteriaScores":
        criteria = {criterion.id: criterion for criterion in step.ordered_criteria()}

        unknown = [key for key in raw if key not in criteria]
        if unknown:
            raise UnknownCriterionError(
                [CriterionViolation(key, key, "not a criterion of this step") for key in unknown]
            )

        missing = [c for cid, c in criteria.items() if raw.get(cid) is None]
        if missing:
            raise IncompleteScoreError(
                [CriterionViolation(c.id, c.name, "score is required") for c in missing]
            )

        values: dict[str, float] = {}
        bad: list[CriterionViolation] = []
        bad_values: list[float] = []
        for cid, criterion in criteria.items():
            value = _as_number(raw[cid])
            if value is None or not (step.min_score <= value <= step.max_score):
                bad.append(
                    CriterionViolation(
                        cid,
                        criterion.name,
                        f"must be between {step.min_score:g} and {step.max_score:g}",
                    )
                )
                bad_values.append(value if value is not None else math.nan)
                continue
            values[cid] = value
        if bad:
            raise OutOfRangeScoreError(bad, bad_values, (step.min_score, step.max_score))

        return cls(step.id, values, _token=_BUILD_TOKEN)

    @property
    def step_id(self) -> str:
        return self._step_id

    def __getitem__(self, key: str) -> float:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"CriteriaScores(step_id={self._step_id!r}, values={self._values!r})"


_BUILD_TOKEN = object()


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


class Score(BaseModel):
    """One evaluator's scores for a submission at a step.

    ``weights`` and ``scale_max`` are copied from the step when the score is
    written so later criterion edits leave ``total_score`` untouched.
    """

    id: str
    submission_id: str
    evaluator_id: str
    step_id: str
    criteria_scores: dict[str, float]
    weights: dict[str, float]
    scale_max: float
    total_score: float
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="forbid")

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.submission_id, self.evaluator_id, self.step_id)


class StepAggregate(BaseModel):
    """Stored aggregate of a submission at one step."""

    submission_id: str
    step_id: str
    average_score: float | None = None
    judge_count: int = 0
    evaluator_ids: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")
