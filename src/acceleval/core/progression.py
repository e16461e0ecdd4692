"""Submission step progression: advance, reject, admit."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Literal
from uuid import uuid4

import structlog

from ..errors import InvalidStepTransitionError
from ..notifications import NotificationTrigger
from ..repositories import EvaluationStore
from ..schemas import Submission, SubmissionStatus
from .completion import CompletionTracker
from .ledger import ScoreLedger
from .steps import StepCatalog
from .unit_of_work import UnitOfWork

TransitionAction = Literal["advance", "reject", "admit"]

_REASON_LABELS: dict[str, str] = {
    "terminal": "already decided",
    "not_found": "not found",
    "wrong_step": "not at this step",
    "wrong_application": "belongs to another program",
}

_PAST_TENSE: dict[str, str] = {
    "advance": "advanced",
    "reject": "rejected",
    "admit": "admitted",
}


@dataclass(frozen=True, slots=True)
class TransitionFailure:
    submission_id: str
    reason: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"id": self.submission_id, "reason": self.reason, "message": self.message}


@dataclass(slots=True)
class BatchResult:
    """Per-id outcome of a batch transition."""

    action: TransitionAction
    succeeded: list[str] = field(default_factory=list)
    failed: list[TransitionFailure] = field(default_factory=list)

    def summary(self) -> str:
        text = f"{len(self.succeeded)} {_PAST_TENSE[self.action]}"
        if not self.failed:
            return text
        reasons = Counter(f.reason for f in self.failed)
        detail = ", ".join(_REASON_LABELS.get(r, r) for r in reasons)
        return f"{text}, {len(self.failed)} failed: {detail}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "succeeded": list(self.succeeded),
            "failed": [f.as_dict() for f in self.failed],
            "summary": self.summary(),
        }


class StepProgression:
    """Administrator-driven state machine over submissions.

    ``IN_REVIEW(n) -> IN_REVIEW(n + 1)`` on advance; ``REJECTED`` and
    ``ADMITTED`` are terminal. Reaching the last configured step never admits
    anything by itself. Batches are partial-success: every id is checked and
    committed on its own.
    """

    def __init__(
        self,
        store: EvaluationStore,
        unit_of_work: UnitOfWork,
        catalog: StepCatalog,
        ledger: ScoreLedger,
        tracker: CompletionTracker,
        notifications: NotificationTrigger,
        *,
        on_change: Callable[[str], None] | None = None,
    ) -> None:
        self._store = store
        self._uow = unit_of_work
        self._catalog = catalog
        self._ledger = ledger
        self._tracker = tracker
        self._notifications = notifications
        self._on_change = on_change
        self._logger = structlog.get_logger(__name__)

    def advance(
        self,
        submission_ids: Iterable[str],
        from_step: int,
        *,
        application_id: str | None = None,
    ) -> BatchResult:
        def apply(store: EvaluationStore, submission: Submission) -> tuple[int, int]:
            if submission.current_step != from_step:
                raise InvalidStepTransitionError(
                    submission.id,
                    "wrong_step",
                    f"Submission {submission.id!r} is at step {submission.current_step}, not {from_step}",
                )
            new_step = from_step + 1
            store.submissions.update_status(submission.id, SubmissionStatus.IN_REVIEW, new_step)
            moved = submission.model_copy(update={"current_step": new_step})
            next_step = self._catalog.step_by_number(submission.application_id, new_step)
            self._ledger.refresh_current(store, moved, next_step)
            return from_step, new_step

        return self._run(
            "advance",
            submission_ids,
            apply,
            application_id=application_id,
            notify=lambda sid, steps: self._notifications.advanced(sid, steps[1]),
        )

    def reject(self, submission_ids: Iterable[str], *, application_id: str | None = None) -> BatchResult:
        return self._decide("reject", SubmissionStatus.REJECTED, submission_ids, application_id)

    def admit(self, submission_ids: Iterable[str], *, application_id: str | None = None) -> BatchResult:
        return self._decide("admit", SubmissionStatus.ADMITTED, submission_ids, application_id)

    def _decide(
        self,
        action: TransitionAction,
        status: SubmissionStatus,
        submission_ids: Iterable[str],
        application_id: str | None,
    ) -> BatchResult:
        def apply(store: EvaluationStore, submission: Submission) -> tuple[int, int]:
            store.submissions.update_status(submission.id, status, submission.current_step)
            return submission.current_step, submission.current_step

        send = self._notifications.rejected if action == "reject" else self._notifications.admitted
        return self._run(
            action,
            submission_ids,
            apply,
            application_id=application_id,
            notify=lambda sid, steps: send(sid, steps[0]),
        )

    def _run(
        self,
        action: TransitionAction,
        submission_ids: Iterable[str],
        apply: Callable[[EvaluationStore, Submission], tuple[int, int]],
        *,
        application_id: str | None,
        notify: Callable[[str, tuple[int, int]], bool],
    ) -> BatchResult:
        result = BatchResult(action=action)
        moves: dict[str, tuple[str, tuple[int, int]]] = {}
        with structlog.contextvars.bound_contextvars(batch_id=uuid4().hex, action=action):
            try:
                for submission_id in dict.fromkeys(submission_ids):
                    try:
                        with self._uow.for_submission(submission_id) as store:
                            submission = self._load_open(store, submission_id, application_id)
                            moves[submission_id] = (submission.application_id, apply(store, submission))
                    except InvalidStepTransitionError as exc:
                        result.failed.append(
                            TransitionFailure(exc.submission_id, exc.reason, str(exc))
                        )
                        self._logger.info(
                            "transition.failed",
                            submission_id=exc.submission_id,
                            reason=exc.reason,
                        )
                        continue
                    result.succeeded.append(submission_id)
            finally:
                self._after_commit(action, moves, notify)

            self._logger.info(
                "transition.batch",
                succeeded=len(result.succeeded),
                failed=len(result.failed),
                summary=result.summary(),
            )
        return result

    def _load_open(
        self,
        store: EvaluationStore,
        submission_id: str,
        application_id: str | None,
    ) -> Submission:
        submission = store.submissions.get(submission_id)
        if submission is None:
            raise InvalidStepTransitionError(
                submission_id, "not_found", f"Submission {submission_id!r} not found"
            )
        if application_id is not None and submission.application_id != application_id:
            raise InvalidStepTransitionError(submission_id, "wrong_application")
        if submission.is_terminal:
            raise InvalidStepTransitionError(
                submission_id,
                "terminal",
                f"Submission {submission_id!r} is already {submission.status.value}",
            )
        return submission

    def _after_commit(
        self,
        action: TransitionAction,
        moves: dict[str, tuple[str, tuple[int, int]]],
        notify: Callable[[str, tuple[int, int]], bool],
    ) -> None:
        touched: set[str] = set()
        for submission_id, (application_id, steps) in moves.items():
            for number in set(steps):
                step = self._catalog.step_by_number(application_id, number)
                if step is not None:
                    touched.add(step.id)
            notify(submission_id, steps)
        for step_id in sorted(touched):
            self._tracker.refresh_step(step_id)
            if self._on_change is not None:
                self._on_change(step_id)
