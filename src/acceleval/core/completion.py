"""Per-step completion checks for submissions and evaluators."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable

import structlog

from ..repositories import EvaluationStore
from ..schemas import EvaluatorStatus
from .unit_of_work import UnitOfWork


@dataclass(frozen=True, slots=True)
class CompletionStatus:
    scored_count: int
    expected_count: int
    complete: bool

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class EvaluatorProgress:
    evaluator_id: str
    step_id: str
    scored_count: int
    expected_count: int
    complete: bool
    remaining: int
    percentage: float

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def completion_from(scored: Iterable[str], expected: Iterable[str]) -> CompletionStatus:
    """Count ``scored`` ids that are also ``expected``.

    Nothing is complete while the expected set is empty.
    """
    expected_ids = set(expected)
    scored_count = len(set(scored) & expected_ids)
    expected_count = len(expected_ids)
    return CompletionStatus(
        scored_count=scored_count,
        expected_count=expected_count,
        complete=expected_count > 0 and scored_count >= expected_count,
    )


class CompletionTracker:
    """Answers completion queries on demand and keeps ``COMPLETED`` flags current.

    An evaluator's ``COMPLETED`` status is a recomputed view: it flips back to
    ``ACCEPTED`` as soon as a new submission reaches the step.
    """

    def __init__(self, store: EvaluationStore, unit_of_work: UnitOfWork) -> None:
        self._store = store
        self._uow = unit_of_work
        self._logger = structlog.get_logger(__name__)

    def is_submission_fully_scored(self, submission_id: str, step_id: str) -> CompletionStatus:
        active = [a.evaluator_id for a in self._store.evaluators.list_active(step_id)]
        scored = [s.evaluator_id for s in self._store.scores.list_for_submission(submission_id, step_id)]
        return completion_from(scored, active)

    def evaluator_progress(self, evaluator_id: str, step_id: str) -> EvaluatorProgress:
        queue = [s.id for s in self._store.submissions.list_active(step_id)]
        scored = [s.submission_id for s in self._store.scores.list_for_evaluator(evaluator_id, step_id)]
        status = completion_from(scored, queue)
        percentage = (
            round(status.scored_count / status.expected_count * 100, 1)
            if status.expected_count
            else 0.0
        )
        return EvaluatorProgress(
            evaluator_id=evaluator_id,
            step_id=step_id,
            scored_count=status.scored_count,
            expected_count=status.expected_count,
            complete=status.complete,
            remaining=status.expected_count - status.scored_count,
            percentage=percentage,
        )

    def is_evaluator_done(self, evaluator_id: str, step_id: str) -> bool:
        return self.evaluator_progress(evaluator_id, step_id).complete

    def refresh_evaluator(self, evaluator_id: str, step_id: str) -> EvaluatorStatus | None:
        """Recompute the cached status of one assignment and return it."""
        with self._uow.for_evaluator(evaluator_id, step_id) as store:
            assignment = store.evaluators.get(evaluator_id, step_id)
            if assignment is None:
                return None
            if not assignment.is_active:
                return assignment.status

            progress = self.evaluator_progress(evaluator_id, step_id)
            status = EvaluatorStatus.COMPLETED if progress.complete else EvaluatorStatus.ACCEPTED
            if status is assignment.status and progress.scored_count == assignment.scored_count:
                return status

            store.evaluators.mark_status(
                evaluator_id, step_id, status, scored_count=progress.scored_count
            )
        if status is not assignment.status:
            self._logger.info(
                "evaluator.status_changed",
                evaluator_id=evaluator_id,
                step_id=step_id,
                previous=assignment.status.value,
                status=status.value,
                scored_count=progress.scored_count,
                expected_count=progress.expected_count,
            )
        return status

    def refresh_step(self, step_id: str) -> dict[str, EvaluatorStatus]:
        """Recompute every active assignment of the step."""
        statuses: dict[str, EvaluatorStatus] = {}
        for assignment in self._store.evaluators.list_active(step_id):
            status = self.refresh_evaluator(assignment.evaluator_id, step_id)
            if status is not None:
                statuses[assignment.evaluator_id] = status
        return statuses
