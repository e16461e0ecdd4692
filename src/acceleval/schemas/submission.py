"""Submission and evaluator assignment records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SubmissionStatus(str, Enum):
    IN_REVIEW = "IN_REVIEW"
    ADVANCED = "ADVANCED"  # transient, never stored
    REJECTED = "REJECTED"
    ADMITTED = "ADMITTED"


TERMINAL_STATUSES = frozenset({SubmissionStatus.REJECTED, SubmissionStatus.ADMITTED})


class EvaluatorStatus(str, Enum):
    INVITED = "INVITED"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    COMPLETED = "COMPLETED"


ACTIVE_EVALUATOR_STATUSES = frozenset({EvaluatorStatus.ACCEPTED, EvaluatorStatus.COMPLETED})


class Submission(BaseModel):
    """Applicant or pitch submission as seen by the engine.

    ``average_score`` is owned by the score ledger and always reflects the
    scores recorded at ``current_step``.
    """

    id: str
    application_id: str
    current_step: int = Field(default=1, ge=1)
    status: SubmissionStatus = SubmissionStatus.IN_REVIEW
    average_score: float | None = None
    is_valid: bool | None = None
    validity_message: str | None = None
    submitted_at: datetime | None = None

    model_config = ConfigDict(extra="forbid")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class EvaluatorAssignment(BaseModel):
    """Evaluator (judge) assigned to one step."""

    evaluator_id: str
    step_id: str
    application_id: str
    user_id: str | None = None
    status: EvaluatorStatus = EvaluatorStatus.INVITED
    scored_count: int = 0

    model_config = ConfigDict(extra="forbid")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_EVALUATOR_STATUSES
