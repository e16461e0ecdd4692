"""Error taxonomy of the evaluation engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class EvaluationError(Exception):
    """Base class for engine errors."""


@dataclass(frozen=True)
class CriterionViolation:
    """Single field-level problem with a criteria payload."""

    criterion_id: str
    criterion_name: str
    message: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "criterion_id": self.criterion_id,
            "criterion_name": self.criterion_name,
            "message": self.message,
        }


class ScoreValidationError(EvaluationError, ValueError):
    """Raised before any write when a criteria payload is malformed."""

    def __init__(self, message: str, violations: list[CriterionViolation]):
        super().__init__(message)
        self.violations = violations

    def field_errors(self) -> dict[str, str]:
        """Messages keyed by criterion name for form display."""
        return {v.criterion_name: v.message for v in self.violations}


class IncompleteScoreError(ScoreValidationError):
    def __init__(self, violations: list[CriterionViolation]):
        names = ", ".join(v.criterion_name for v in violations)
        super().__init__(f"Missing score for criteria: {names}", violations)

    @property
    def missing(self) -> list[str]:
        return [v.criterion_name for v in self.violations]


class UnknownCriterionError(ScoreValidationError):
    def __init__(self, violations: list[CriterionViolation]):
        keys = ", ".join(v.criterion_id for v in violations)
        super().__init__(f"Unknown criteria for this step: {keys}", violations)

    @property
    def unknown(self) -> list[str]:
        return [v.criterion_id for v in self.violations]


class OutOfRangeScoreError(ScoreValidationError):
    def __init__(
        self,
        violations: list[CriterionViolation],
        values: list[float],
        bounds: tuple[float, float],
    ):
        first = violations[0]
        super().__init__(
            f"Score {values[0]} for {first.criterion_name} is outside {bounds[0]}..{bounds[1]}",
            violations,
        )
        self.criterion = first.criterion_name
        self.value = values[0]
        self.bounds = bounds
        self.values = values


class NotFoundError(EvaluationError, LookupError):
    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id!r} not found")
        self.entity = entity
        self.entity_id = entity_id


class StepNotFoundError(NotFoundError):
    def __init__(self, step_id: str):
        super().__init__("Evaluation step", step_id)


class SubmissionNotFoundError(NotFoundError):
    def __init__(self, submission_id: str):
        super().__init__("Submission", submission_id)


class ProgramNotFoundError(NotFoundError):
    def __init__(self, program_id: str):
        super().__init__("Program", program_id)


class SubmissionClosedError(EvaluationError):
    """Scoring attempted on an admitted or rejected submission."""

    def __init__(self, submission_id: str, status: str):
        super().__init__(f"Submission {submission_id!r} is already decided ({status})")
        self.submission_id = submission_id
        self.status = status


class InactiveStepError(EvaluationError):
    """Scoring attempted on a step the submission is not currently in."""

    def __init__(self, submission_id: str, current_step: int, step_number: int):
        super().__init__(
            f"Submission {submission_id!r} is at step {current_step}, not step {step_number}"
        )
        self.submission_id = submission_id
        self.current_step = current_step
        self.step_number = step_number


class EvaluatorNotAssignedError(EvaluationError):
    def __init__(self, evaluator_id: str, step_id: str):
        super().__init__(f"Evaluator {evaluator_id!r} is not an active evaluator of step {step_id!r}")
        self.evaluator_id = evaluator_id
        self.step_id = step_id


class InvalidStepTransitionError(EvaluationError):
    """Per-id failure of a batch transition; collected, never raised by batches."""

    def __init__(self, submission_id: str, reason: str, message: str | None = None):
        super().__init__(message or f"Cannot transition {submission_id!r}: {reason}")
        self.submission_id = submission_id
        self.reason = reason


class StepConfigurationError(EvaluationError, ValueError):
    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or [message]


class StoreError(EvaluationError):
    """Persistence failure; the whole operation may be retried."""
