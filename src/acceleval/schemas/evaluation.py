"""Step, criterion and program records."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

ProgramKind = Literal["application", "demo_day"]


class Criterion(BaseModel):
    """One weighted scoring dimension of a step."""

    id: str
    step_id: str
    name: str
    weight: float = Field(default=1.0, gt=0)
    order: int = 0

    model_config = ConfigDict(extra="forbid")


class EvaluationStep(BaseModel):
    """Ordered evaluation phase of an application or demo-day event.

    Totals are expressed on a ``0..total_weight`` scale: every criterion
    contributes ``raw / max_score * weight``.
    """

    id: str
    application_id: str
    step_number: int = Field(ge=1)
    name: str
    criteria: list[Criterion] = Field(min_length=1)
    min_score: float = 1.0
    max_score: float = 10.0
    cutoff_score: float | None = None
    required_evaluator_percentage: float = Field(default=75.0, ge=0, le=100)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_bounds(self) -> "EvaluationStep":
        if self.min_score >= self.max_score:
            raise ValueError("min_score must be lower than max_score")
        if self.max_score <= 0:
            raise ValueError("max_score must be positive")
        foreign = [c.id for c in self.criteria if c.step_id != self.id]
        if foreign:
            raise ValueError(f"criteria belong to another step: {foreign}")
        return self

    @property
    def total_weight(self) -> float:
        return sum(criterion.weight for criterion in self.criteria)

    def ordered_criteria(self) -> list[Criterion]:
        return sorted(self.criteria, key=lambda c: c.order)

    def criterion_ids(self) -> set[str]:
        return {criterion.id for criterion in self.criteria}


class CriterionDraft(BaseModel):
    """Criterion as entered by an administrator during step setup."""

    name: str = Field(min_length=1)
    weight: float = Field(default=1.0, gt=0)
    order: int | None = None

    model_config = ConfigDict(extra="forbid")


class StepDraft(BaseModel):
    """Step configuration input for ``configure_steps``."""

    name: str = Field(min_length=1)
    step_number: int | None = None
    criteria: list[CriterionDraft] = Field(default_factory=list)
    min_score: float | None = None
    max_score: float | None = None
    cutoff_score: float | None = None
    required_evaluator_percentage: float | None = Field(default=None, ge=0, le=100)

    model_config = ConfigDict(extra="forbid")


class Program(BaseModel):
    """Application or demo-day event owning a set of steps."""

    id: str
    name: str = ""
    kind: ProgramKind = "application"
    is_public: bool = False
    show_results_live: bool = False
    results_public_at: datetime | None = None

    model_config = ConfigDict(extra="forbid")

    def results_public(self, now: datetime) -> bool:
        """Return True when external viewers may see the scoreboard."""
        if not self.is_public:
            return False
        if self.show_results_live:
            return True
        if self.results_public_at is not None:
            return now >= self.results_public_at
        return False
