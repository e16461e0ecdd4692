"""Thread-safe in-memory implementation of the repository contracts."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from ..errors import StoreError
from ..schemas import (
    ACTIVE_EVALUATOR_STATUSES,
    EvaluationStep,
    EvaluatorAssignment,
    EvaluatorStatus,
    Program,
    Score,
    StepAggregate,
    Submission,
    SubmissionStatus,
)

ScoreKey = tuple[str, str, str]


@dataclass
class _Tables:
    lock: threading.RLock = field(default_factory=threading.RLock)
    steps: dict[str, EvaluationStep] = field(default_factory=dict)
    programs: dict[str, Program] = field(default_factory=dict)
    submissions: dict[str, Submission] = field(default_factory=dict)
    evaluators: dict[tuple[str, str], EvaluatorAssignment] = field(default_factory=dict)
    scores: dict[ScoreKey, Score] = field(default_factory=dict)
    aggregates: dict[tuple[str, str], StepAggregate] = field(default_factory=dict)


@dataclass(frozen=True)
class SubmissionSnapshot:
    submission_id: str
    submission: Submission | None
    scores: dict[ScoreKey, Score]
    aggregates: dict[tuple[str, str], StepAggregate]


class InMemoryStepRepository:
    def __init__(self, tables: _Tables):
        self._t = tables

    def get(self, step_id: str) -> EvaluationStep | None:
        with self._t.lock:
            step = self._t.steps.get(step_id)
            return step.model_copy(deep=True) if step else None

    def list_for_application(self, application_id: str) -> list[EvaluationStep]:
        with self._t.lock:
            steps = [s for s in self._t.steps.values() if s.application_id == application_id]
            return [s.model_copy(deep=True) for s in sorted(steps, key=lambda s: s.step_number)]

    def add(self, step: EvaluationStep) -> None:
        with self._t.lock:
            if step.id in self._t.steps:
                raise StoreError(f"step {step.id!r} already exists")
            self._t.steps[step.id] = step.model_copy(deep=True)

    def update(self, step: EvaluationStep) -> None:
        with self._t.lock:
            if step.id not in self._t.steps:
                raise StoreError(f"step {step.id!r} does not exist")
            self._t.steps[step.id] = step.model_copy(deep=True)


class InMemoryProgramRepository:
    def __init__(self, tables: _Tables):
        self._t = tables

    def get(self, program_id: str) -> Program | None:
        with self._t.lock:
            program = self._t.programs.get(program_id)
            return program.model_copy(deep=True) if program else None

    def add(self, program: Program) -> None:
        with self._t.lock:
            self._t.programs[program.id] = program.model_copy(deep=True)


class InMemorySubmissionRepository:
    def __init__(self, tables: _Tables):
        self._t = tables

    def get(self, submission_id: str) -> Submission | None:
        with self._t.lock:
            submission = self._t.submissions.get(submission_id)
            return submission.model_copy(deep=True) if submission else None

    def add(self, submission: Submission) -> None:
        with self._t.lock:
            if submission.id in self._t.submissions:
                raise StoreError(f"submission {submission.id!r} already exists")
            self._t.submissions[submission.id] = submission.model_copy(deep=True)

    def list_for_application(self, application_id: str) -> list[Submission]:
        with self._t.lock:
            return [
                s.model_copy(deep=True)
                for s in self._t.submissions.values()
                if s.application_id == application_id
            ]

    def list_active(self, step_id: str) -> list[Submission]:
        with self._t.lock:
            step = self._t.steps.get(step_id)
            if step is None:
                return []
            return [
                s.model_copy(deep=True)
                for s in self._t.submissions.values()
                if s.application_id == step.application_id
                and s.current_step == step.step_number
                and s.status is SubmissionStatus.IN_REVIEW
            ]

    def update_aggregate(self, submission_id: str, average_score: float | None) -> None:
        with self._t.lock:
            current = self._require(submission_id)
            self._t.submissions[submission_id] = current.model_copy(
                update={"average_score": average_score}
            )

    def update_status(
        self, submission_id: str, status: SubmissionStatus, current_step: int
    ) -> None:
        with self._t.lock:
            current = self._require(submission_id)
            self._t.submissions[submission_id] = current.model_copy(
                update={"status": status, "current_step": current_step}
            )

    def _require(self, submission_id: str) -> Submission:
        try:
            return self._t.submissions[submission_id]
        except KeyError as exc:
            raise StoreError(f"submission {submission_id!r} does not exist") from exc


class InMemoryEvaluatorRepository:
    def __init__(self, tables: _Tables):
        self._t = tables

    def get(self, evaluator_id: str, step_id: str) -> EvaluatorAssignment | None:
        with self._t.lock:
            assignment = self._t.evaluators.get((evaluator_id, step_id))
            return assignment.model_copy(deep=True) if assignment else None

    def add(self, assignment: EvaluatorAssignment) -> None:
        with self._t.lock:
            key = (assignment.evaluator_id, assignment.step_id)
            self._t.evaluators[key] = assignment.model_copy(deep=True)

    def list_for_step(self, step_id: str) -> list[EvaluatorAssignment]:
        with self._t.lock:
            return [
                a.model_copy(deep=True)
                for (_, sid), a in self._t.evaluators.items()
                if sid == step_id
            ]

    def list_active(self, step_id: str) -> list[EvaluatorAssignment]:
        return [a for a in self.list_for_step(step_id) if a.status in ACTIVE_EVALUATOR_STATUSES]

    def mark_status(
        self,
        evaluator_id: str,
        step_id: str,
        status: EvaluatorStatus,
        *,
        scored_count: int | None = None,
    ) -> None:
        with self._t.lock:
            key = (evaluator_id, step_id)
            if key not in self._t.evaluators:
                raise StoreError(f"evaluator {evaluator_id!r} is not assigned to {step_id!r}")
            update: dict[str, object] = {"status": status}
            if scored_count is not None:
                update["scored_count"] = scored_count
            self._t.evaluators[key] = self._t.evaluators[key].model_copy(update=update)


class InMemoryScoreRepository:
    def __init__(self, tables: _Tables):
        self._t = tables

    def get(self, submission_id: str, evaluator_id: str, step_id: str) -> Score | None:
        with self._t.lock:
            score = self._t.scores.get((submission_id, evaluator_id, step_id))
            return score.model_copy(deep=True) if score else None

    def upsert(self, score: Score) -> None:
        with self._t.lock:
            self._t.scores[score.key] = score.model_copy(deep=True)

    def list_for_submission(self, submission_id: str, step_id: str) -> list[Score]:
        with self._t.lock:
            return [
                s.model_copy(deep=True)
                for (sub, _, sid), s in self._t.scores.items()
                if sub == submission_id and sid == step_id
            ]

    def list_for_step(self, step_id: str) -> list[Score]:
        with self._t.lock:
            return [s.model_copy(deep=True) for (_, _, sid), s in self._t.scores.items() if sid == step_id]

    def list_for_evaluator(self, evaluator_id: str, step_id: str) -> list[Score]:
        with self._t.lock:
            return [
                s.model_copy(deep=True)
                for (_, ev, sid), s in self._t.scores.items()
                if ev == evaluator_id and sid == step_id
            ]

    def delete(self, submission_id: str, evaluator_id: str, step_id: str) -> Score | None:
        with self._t.lock:
            return self._t.scores.pop((submission_id, evaluator_id, step_id), None)


class InMemoryAggregateRepository:
    def __init__(self, tables: _Tables):
        self._t = tables

    def get(self, submission_id: str, step_id: str) -> StepAggregate | None:
        with self._t.lock:
            aggregate = self._t.aggregates.get((submission_id, step_id))
            return aggregate.model_copy(deep=True) if aggregate else None

    def put(self, aggregate: StepAggregate) -> None:
        with self._t.lock:
            key = (aggregate.submission_id, aggregate.step_id)
            self._t.aggregates[key] = aggregate.model_copy(deep=True)

    def list_for_step(self, step_id: str) -> list[StepAggregate]:
        with self._t.lock:
            return [
                a.model_copy(deep=True)
                for (_, sid), a in self._t.aggregates.items()
                if sid == step_id
            ]


class InMemoryEvaluationStore:
    """Process-local store used by tests, the CLI and single-node deployments."""

    def __init__(self) -> None:
        self._tables = _Tables()
        self.steps = InMemoryStepRepository(self._tables)
        self.programs = InMemoryProgramRepository(self._tables)
        self.submissions = InMemorySubmissionRepository(self._tables)
        self.evaluators = InMemoryEvaluatorRepository(self._tables)
        self.scores = InMemoryScoreRepository(self._tables)
        self.aggregates = InMemoryAggregateRepository(self._tables)

    def export(self) -> dict[str, list[dict]]:
        """Dump every table as JSON-ready records, in the snapshot file layout."""
        t = self._tables
        with t.lock:
            return {
                "programs": [p.model_dump(mode="json") for p in t.programs.values()],
                "steps": [s.model_dump(mode="json") for s in t.steps.values()],
                "submissions": [s.model_dump(mode="json") for s in t.submissions.values()],
                "evaluators": [a.model_dump(mode="json") for a in t.evaluators.values()],
                "scores": [s.model_dump(mode="json") for s in t.scores.values()],
            }

    def snapshot_submission(self, submission_id: str) -> SubmissionSnapshot:
        t = self._tables
        with t.lock:
            submission = t.submissions.get(submission_id)
            return SubmissionSnapshot(
                submission_id=submission_id,
                submission=submission.model_copy(deep=True) if submission else None,
                scores={k: v.model_copy(deep=True) for k, v in t.scores.items() if k[0] == submission_id},
                aggregates={
                    k: v.model_copy(deep=True) for k, v in t.aggregates.items() if k[0] == submission_id
                },
            )

    def restore_submission(self, snapshot: SubmissionSnapshot) -> None:
        t = self._tables
        sid = snapshot.submission_id
        with t.lock:
            if snapshot.submission is None:
                t.submissions.pop(sid, None)
            else:
                t.submissions[sid] = snapshot.submission
            for key in [k for k in t.scores if k[0] == sid]:
                del t.scores[key]
            t.scores.update(snapshot.scores)
            for key in [k for k in t.aggregates if k[0] == sid]:
                del t.aggregates[key]
            t.aggregates.update(snapshot.aggregates)
