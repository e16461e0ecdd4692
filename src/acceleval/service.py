"""Engine facade used by the HTTP API and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

import structlog

from .core import (
    BatchResult,
    CompletionStatus,
    CompletionTracker,
    EvaluatorProgress,
    JudgingStats,
    Scoreboard,
    ScoreboardBuilder,
    ScoreLedger,
    ScoringOutcome,
    StepCatalog,
    StepProgression,
)
from .errors import ProgramNotFoundError, SubmissionNotFoundError
from .repositories import EvaluationStore
from .schemas import (
    ACTIVE_EVALUATOR_STATUSES,
    EvaluationStep,
    EvaluatorAssignment,
    EvaluatorStatus,
    Program,
    Score,
    StepDraft,
    Submission,
    SubmissionStatus,
)


@dataclass(slots=True)
class StepStatus:
    step_id: str
    step_number: int
    step_name: str
    average_score: float | None
    judge_count: int
    is_current_step: bool


@dataclass(slots=True)
class SubmissionEvaluationStatus:
    submission_id: str
    current_step: int
    status: SubmissionStatus
    average_score: float | None
    steps: list[StepStatus] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "current_step": self.current_step,
            "status": self.status.value,
            "average_score": self.average_score,
            "steps": [
                {
                    "step_id": s.step_id,
                    "step_number": s.step_number,
                    "step_name": s.step_name,
                    "average_score": s.average_score,
                    "judge_count": s.judge_count,
                    "is_current_step": s.is_current_step,
                }
                for s in self.steps
            ],
        }


class EvaluationService:
    """Single entry point wiring catalog, ledger, tracker, progression and scoreboard."""

    def __init__(
        self,
        *,
        store: EvaluationStore,
        catalog: StepCatalog,
        ledger: ScoreLedger,
        tracker: CompletionTracker,
        progression: StepProgression,
        scoreboard: ScoreboardBuilder,
    ) -> None:
        self.store = store
        self._catalog = catalog
        self._ledger = ledger
        self._tracker = tracker
        self._progression = progression
        self._scoreboard = scoreboard
        self._logger = structlog.get_logger(__name__)

    # setup

    def register_program(self, program: Program | Mapping[str, Any]) -> Program:
        record = program if isinstance(program, Program) else Program.model_validate(program)
        self.store.programs.add(record)
        return record

    def get_program(self, program_id: str) -> Program:
        program = self.store.programs.get(program_id)
        if program is None:
            raise ProgramNotFoundError(program_id)
        return program

    def configure_steps(
        self,
        application_id: str,
        drafts: Sequence[StepDraft | Mapping[str, Any]],
    ) -> list[EvaluationStep]:
        steps = self._catalog.configure_steps(application_id, drafts)
        for step in steps:
            self._tracker.refresh_step(step.id)
        return steps

    def get_step(self, step_id: str) -> EvaluationStep:
        return self._catalog.get(step_id)

    def list_steps(self, application_id: str) -> list[EvaluationStep]:
        return self._catalog.list_steps(application_id)

    def set_cutoff(self, step_id: str, cutoff: float | None) -> EvaluationStep:
        step = self._catalog.set_cutoff(step_id, cutoff)
        self._scoreboard.invalidate(step_id)
        return step

    def attach_submission(self, submission: Submission | Mapping[str, Any]) -> Submission:
        """Register a new submission at step 1; re-opens evaluators marked done."""
        record = (
            submission if isinstance(submission, Submission) else Submission.model_validate(submission)
        )
        record = record.model_copy(
            update={
                "current_step": 1,
                "status": SubmissionStatus.IN_REVIEW,
                "average_score": None,
            }
        )
        self.store.submissions.add(record)
        first = self._catalog.step_by_number(record.application_id, 1)
        if first is not None:
            self._tracker.refresh_step(first.id)
            self._scoreboard.invalidate(first.id)
        self._logger.info(
            "submission.attached",
            submission_id=record.id,
            application_id=record.application_id,
        )
        return record

    def assign_evaluator(self, assignment: EvaluatorAssignment | Mapping[str, Any]) -> EvaluatorAssignment:
        record = (
            assignment
            if isinstance(assignment, EvaluatorAssignment)
            else EvaluatorAssignment.model_validate(assignment)
        )
        step = self._catalog.get(record.step_id)
        if record.status is EvaluatorStatus.COMPLETED:
            record = record.model_copy(update={"status": EvaluatorStatus.ACCEPTED})
        self.store.evaluators.add(record.model_copy(update={"application_id": step.application_id}))
        self._tracker.refresh_evaluator(record.evaluator_id, record.step_id)
        self._scoreboard.invalidate(record.step_id)
        return self.store.evaluators.get(record.evaluator_id, record.step_id)

    def set_evaluator_status(
        self, evaluator_id: str, step_id: str, status: EvaluatorStatus
    ) -> EvaluatorStatus | None:
        """Apply an invitation response.

        Leaving the active statuses (declining, or going back to invited) voids
        the evaluator's scores at the step.
        """
        if status is EvaluatorStatus.COMPLETED:
            raise ValueError("COMPLETED is derived from scoring and cannot be set directly")
        if status not in ACTIVE_EVALUATOR_STATUSES:
            self._ledger.void_evaluator(evaluator_id, step_id, status=status)
            return status
        self.store.evaluators.mark_status(evaluator_id, step_id, status)
        self._scoreboard.invalidate(step_id)
        return self._tracker.refresh_evaluator(evaluator_id, step_id)

    def rebuild(self, application_id: str) -> None:
        """Recompute stored aggregates and cached evaluator statuses of an application."""
        submissions = self.store.submissions.list_for_application(application_id)
        for step in self._catalog.list_steps(application_id):
            for submission in submissions:
                if submission.current_step >= step.step_number:
                    self._ledger.recompute_aggregate(submission.id, step.id)
            self._tracker.refresh_step(step.id)
            self._scoreboard.invalidate(step.id)
        self._logger.info(
            "application.rebuilt",
            application_id=application_id,
            submissions=len(submissions),
        )

    # scoring

    def submit_score(
        self,
        submission_id: str,
        evaluator_id: str,
        step_id: str,
        criteria_scores: Mapping[str, Any],
        notes: str | None = None,
    ) -> ScoringOutcome:
        return self._ledger.submit_score(
            submission_id, evaluator_id, step_id, criteria_scores, notes
        )

    def void_evaluator(self, evaluator_id: str, step_id: str) -> list[str]:
        return self._ledger.void_evaluator(evaluator_id, step_id)

    def get_score(self, submission_id: str, evaluator_id: str, step_id: str) -> Score | None:
        """Return the evaluator's stored score, used to pre-fill the scoring form."""
        self._catalog.get(step_id)
        if self.store.submissions.get(submission_id) is None:
            raise SubmissionNotFoundError(submission_id)
        return self.store.scores.get(submission_id, evaluator_id, step_id)

    # transitions

    def advance(self, submission_ids: Iterable[str], step_id: str) -> BatchResult:
        step = self._catalog.get(step_id)
        return self._progression.advance(
            submission_ids, step.step_number, application_id=step.application_id
        )

    def reject(self, submission_ids: Iterable[str], *, application_id: str | None = None) -> BatchResult:
        return self._progression.reject(submission_ids, application_id=application_id)

    def admit(self, submission_ids: Iterable[str], *, application_id: str | None = None) -> BatchResult:
        return self._progression.admit(submission_ids, application_id=application_id)

    # reads

    def scoreboard(self, *, step_id: str | None = None, event_id: str | None = None) -> Scoreboard:
        return self._scoreboard.build(step_id=step_id, event_id=event_id)

    def submission_completion(self, submission_id: str, step_id: str) -> CompletionStatus:
        self._catalog.get(step_id)
        if self.store.submissions.get(submission_id) is None:
            raise SubmissionNotFoundError(submission_id)
        return self._tracker.is_submission_fully_scored(submission_id, step_id)

    def evaluator_progress(self, evaluator_id: str, step_id: str) -> EvaluatorProgress:
        self._catalog.get(step_id)
        return self._tracker.evaluator_progress(evaluator_id, step_id)

    def judging_stats(self, step_id: str) -> JudgingStats:
        return self._scoreboard.judging_stats(step_id)

    def evaluation_status(self, submission_id: str) -> SubmissionEvaluationStatus:
        submission = self.store.submissions.get(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        steps: list[StepStatus] = []
        for step in self._catalog.list_steps(submission.application_id):
            aggregate = self.store.aggregates.get(submission_id, step.id)
            steps.append(
                StepStatus(
                    step_id=step.id,
                    step_number=step.step_number,
                    step_name=step.name,
                    average_score=aggregate.average_score if aggregate else None,
                    judge_count=aggregate.judge_count if aggregate else 0,
                    is_current_step=step.step_number == submission.current_step,
                )
            )
        return SubmissionEvaluationStatus(
            submission_id=submission.id,
            current_step=submission.current_step,
            status=submission.status,
            average_score=submission.average_score,
            steps=steps,
        )
