"""Persistence collaborator contracts."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ..schemas import (
    EvaluationStep,
    EvaluatorAssignment,
    EvaluatorStatus,
    Program,
    Score,
    StepAggregate,
    Submission,
    SubmissionStatus,
)
from .memory import InMemoryEvaluationStore


@runtime_checkable
class StepRepository(Protocol):
    def get(self, step_id: str) -> EvaluationStep | None: ...

    def list_for_application(self, application_id: str) -> list[EvaluationStep]:
        """Return the application's steps ordered by step number."""

    def add(self, step: EvaluationStep) -> None: ...

    def update(self, step: EvaluationStep) -> None: ...


@runtime_checkable
class ProgramRepository(Protocol):
    def get(self, program_id: str) -> Program | None: ...

    def add(self, program: Program) -> None: ...


@runtime_checkable
class SubmissionRepository(Protocol):
    def get(self, submission_id: str) -> Submission | None: ...

    def add(self, submission: Submission) -> None: ...

    def list_for_application(self, application_id: str) -> list[Submission]:
        """Return submissions in intake order."""

    def list_active(self, step_id: str) -> list[Submission]:
        """Return IN_REVIEW submissions currently sitting at the step."""

    def update_aggregate(self, submission_id: str, average_score: float | None) -> None: ...

    def update_status(
        self, submission_id: str, status: SubmissionStatus, current_step: int
    ) -> None: ...


@runtime_checkable
class EvaluatorRepository(Protocol):
    def get(self, evaluator_id: str, step_id: str) -> EvaluatorAssignment | None: ...

    def add(self, assignment: EvaluatorAssignment) -> None: ...

    def list_for_step(self, step_id: str) -> list[EvaluatorAssignment]: ...

    def list_active(self, step_id: str) -> list[EvaluatorAssignment]:
        """Return ACCEPTED or COMPLETED assignments of the step."""

    def mark_status(
        self,
        evaluator_id: str,
        step_id: str,
        status: EvaluatorStatus,
        *,
        scored_count: int | None = None,
    ) -> None: ...


@runtime_checkable
class ScoreRepository(Protocol):
    def get(self, submission_id: str, evaluator_id: str, step_id: str) -> Score | None: ...

    def upsert(self, score: Score) -> None:
        """Store ``score`` replacing any record with the same key."""

    def list_for_submission(self, submission_id: str, step_id: str) -> list[Score]: ...

    def list_for_step(self, step_id: str) -> list[Score]: ...

    def list_for_evaluator(self, evaluator_id: str, step_id: str) -> list[Score]: ...

    def delete(self, submission_id: str, evaluator_id: str, step_id: str) -> Score | None: ...


@runtime_checkable
class AggregateRepository(Protocol):
    def get(self, submission_id: str, step_id: str) -> StepAggregate | None: ...

    def put(self, aggregate: StepAggregate) -> None: ...

    def list_for_step(self, step_id: str) -> list[StepAggregate]: ...


@runtime_checkable
class EvaluationStore(Protocol):
    """Bundle of repositories sharing one transactional backend."""

    steps: StepRepository
    programs: ProgramRepository
    submissions: SubmissionRepository
    evaluators: EvaluatorRepository
    scores: ScoreRepository
    aggregates: AggregateRepository

    def snapshot_submission(self, submission_id: str) -> Any:
        """Capture every record owned by the submission."""

    def restore_submission(self, snapshot: Any) -> None:
        """Put back records captured by ``snapshot_submission``."""

    def export(self) -> dict[str, list[dict]]:
        """Dump all records in the snapshot file layout."""


__all__ = [
    "AggregateRepository",
    "EvaluationStore",
    "EvaluatorRepository",
    "InMemoryEvaluationStore",
    "ProgramRepository",
    "ScoreRepository",
    "StepRepository",
    "SubmissionRepository",
]
