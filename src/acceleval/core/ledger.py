"""Score ledger: validated upserts and stored aggregates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping
from uuid import uuid4

import pendulum
import structlog

from ..errors import (
    EvaluatorNotAssignedError,
    InactiveStepError,
    ScoreValidationError,
    StepNotFoundError,
    SubmissionClosedError,
    SubmissionNotFoundError,
)
from ..repositories import EvaluationStore
from ..schemas import (
    ACTIVE_EVALUATOR_STATUSES,
    CriteriaScores,
    EvaluationStep,
    EvaluatorStatus,
    Score,
    StepAggregate,
    Submission,
)
from .aggregator import mean_total, weighted_total
from .completion import CompletionStatus, CompletionTracker
from .unit_of_work import UnitOfWork


@dataclass(slots=True)
class ScoringOutcome:
    """Stored score plus the state observed in the same transaction."""

    score: Score
    created: bool
    average_score: float | None
    judge_count: int
    completion: CompletionStatus
    evaluator_status: EvaluatorStatus | None

    def as_dict(self) -> dict[str, Any]:
        return {
            "score": self.score.model_dump(mode="json"),
            "created": self.created,
            "average_score": self.average_score,
            "judge_count": self.judge_count,
            "completion": self.completion.as_dict(),
            "evaluator_status": self.evaluator_status.value if self.evaluator_status else None,
        }


class ScoreLedger:
    """Accepts evaluator scores and keeps submission aggregates current.

    Each write runs inside a per-submission unit of work: upsert, aggregate
    recomputation and completion re-check either all happen or none do.
    """

    def __init__(
        self,
        store: EvaluationStore,
        unit_of_work: UnitOfWork,
        tracker: CompletionTracker,
        *,
        now_provider: Callable[[], Any] | None = None,
        id_factory: Callable[[], str] | None = None,
        on_change: Callable[[str], None] | None = None,
    ) -> None:
        self._store = store
        self._uow = unit_of_work
        self._tracker = tracker
        self._now = now_provider or (lambda: pendulum.now("UTC"))
        self._new_id = id_factory or (lambda: str(uuid4()))
        self._on_change = on_change
        self._logger = structlog.get_logger(__name__)

    def submit_score(
        self,
        submission_id: str,
        evaluator_id: str,
        step_id: str,
        criteria_scores: Mapping[str, Any],
        notes: str | None = None,
    ) -> ScoringOutcome:
        with structlog.contextvars.bound_contextvars(
            submission_id=submission_id, evaluator_id=evaluator_id, step_id=step_id
        ):
            return self._submit(submission_id, evaluator_id, step_id, criteria_scores, notes)

    def _submit(
        self,
        submission_id: str,
        evaluator_id: str,
        step_id: str,
        criteria_scores: Mapping[str, Any],
        notes: str | None,
    ) -> ScoringOutcome:
        step = self._store.steps.get(step_id)
        if step is None:
            raise StepNotFoundError(step_id)

        try:
            parsed = CriteriaScores.for_step(step, criteria_scores)
        except ScoreValidationError as exc:
            self._logger.info(
                "score.rejected",
                error=type(exc).__name__,
                field_errors=exc.field_errors(),
            )
            raise

        with self._uow.for_submission(submission_id) as store:
            submission = store.submissions.get(submission_id)
            if submission is None:
                raise SubmissionNotFoundError(submission_id)
            self._check_open(submission, step)
            assignment = store.evaluators.get(evaluator_id, step_id)
            if assignment is None or not assignment.is_active:
                raise EvaluatorNotAssignedError(evaluator_id, step_id)

            now = self._now()
            existing = store.scores.get(submission_id, evaluator_id, step_id)
            score = Score(
                id=existing.id if existing else self._new_id(),
                submission_id=submission_id,
                evaluator_id=evaluator_id,
                step_id=step_id,
                criteria_scores=dict(parsed),
                weights={c.id: c.weight for c in step.criteria},
                scale_max=step.max_score,
                total_score=weighted_total(step.criteria, parsed, step.max_score),
                notes=notes.strip() if notes and notes.strip() else None,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            store.scores.upsert(score)
            aggregate = self._recompute(store, submission, step)
            completion = self._tracker.is_submission_fully_scored(submission_id, step_id)
            evaluator_status = self._tracker.refresh_evaluator(evaluator_id, step_id)

        self._logger.info(
            "score.recorded",
            total_score=score.total_score,
            replaced=existing is not None,
            average_score=aggregate.average_score,
            scored_count=completion.scored_count,
            expected_count=completion.expected_count,
            complete=completion.complete,
        )
        self._changed(step_id)
        return ScoringOutcome(
            score=score,
            created=existing is None,
            average_score=aggregate.average_score,
            judge_count=aggregate.judge_count,
            completion=completion,
            evaluator_status=evaluator_status,
        )

    def recompute_aggregate(self, submission_id: str, step_id: str) -> StepAggregate:
        step = self._store.steps.get(step_id)
        if step is None:
            raise StepNotFoundError(step_id)
        with self._uow.for_submission(submission_id) as store:
            submission = store.submissions.get(submission_id)
            if submission is None:
                raise SubmissionNotFoundError(submission_id)
            aggregate = self._recompute(store, submission, step)
        self._changed(step_id)
        return aggregate

    def refresh_current(self, store: EvaluationStore, submission: Submission, step: EvaluationStep | None) -> None:
        """Re-sync ``average_score`` after the submission moved steps.

        Must be called from inside the submission's unit of work.
        """
        if step is None:
            store.submissions.update_aggregate(submission.id, None)
            return
        self._recompute(store, submission, step)

    def void_evaluator(
        self,
        evaluator_id: str,
        step_id: str,
        *,
        status: EvaluatorStatus = EvaluatorStatus.DECLINED,
    ) -> list[str]:
        """Take an evaluator off the step and remove their scores there.

        The assignment is moved to ``status`` before any score is touched, so
        no new score from this evaluator is accepted while the old ones are
        deleted.
        """
        if status in ACTIVE_EVALUATOR_STATUSES:
            raise ValueError(f"Cannot void an evaluator into active status {status.value}")
        step = self._store.steps.get(step_id)
        if step is None:
            raise StepNotFoundError(step_id)

        with self._uow.for_evaluator(evaluator_id, step_id) as store:
            if store.evaluators.get(evaluator_id, step_id) is not None:
                store.evaluators.mark_status(evaluator_id, step_id, status, scored_count=0)

        # A writer that passed the assignment check before the status change
        # still holds its submission lock, and its submission is at this step.
        candidates = dict.fromkeys(
            [s.submission_id for s in self._store.scores.list_for_evaluator(evaluator_id, step_id)]
            + [s.id for s in self._store.submissions.list_active(step_id)]
        )
        affected: list[str] = []
        for submission_id in candidates:
            with self._uow.for_submission(submission_id) as store:
                if store.scores.delete(submission_id, evaluator_id, step_id) is None:
                    continue
                submission = store.submissions.get(submission_id)
                if submission is not None:
                    self._recompute(store, submission, step)
            affected.append(submission_id)

        self._logger.info(
            "scores.voided",
            evaluator_id=evaluator_id,
            step_id=step_id,
            status=status.value,
            submissions=affected,
        )
        self._changed(step_id)
        return affected

    def _check_open(self, submission: Submission, step: EvaluationStep) -> None:
        if submission.is_terminal:
            raise SubmissionClosedError(submission.id, submission.status.value)
        if (
            submission.application_id != step.application_id
            or submission.current_step != step.step_number
        ):
            raise InactiveStepError(submission.id, submission.current_step, step.step_number)

    def _recompute(
        self,
        store: EvaluationStore,
        submission: Submission,
        step: EvaluationStep,
    ) -> StepAggregate:
        scores = store.scores.list_for_submission(submission.id, step.id)
        aggregate = StepAggregate(
            submission_id=submission.id,
            step_id=step.id,
            average_score=mean_total(s.total_score for s in scores),
            judge_count=len({s.evaluator_id for s in scores}),
            evaluator_ids=sorted({s.evaluator_id for s in scores}),
        )
        store.aggregates.put(aggregate)
        if (
            submission.application_id == step.application_id
            and submission.current_step == step.step_number
        ):
            store.submissions.update_aggregate(submission.id, aggregate.average_score)
        self._logger.debug(
            "aggregate.recomputed",
            submission_id=submission.id,
            step_id=step.id,
            average_score=aggregate.average_score,
            judge_count=aggregate.judge_count,
        )
        return aggregate

    def _changed(self, step_id: str) -> None:
        if self._on_change is not None:
            self._on_change(step_id)
