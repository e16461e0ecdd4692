"""Ranked scoreboards and judging statistics.

The builder does not check result visibility. Callers exposing a scoreboard
outside the administration surface must check ``Program.results_public``
first.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from typing import Any, Literal, Sequence

import structlog

from ..repositories import EvaluationStore
from ..schemas import EvaluationStep, SubmissionStatus
from .completion import completion_from
from .steps import StepCatalog

ResultType = Literal["PENDING", "PASSED", "FAILED"]

TIE_PRECISION = 6


def competition_ranks(values: Sequence[float | None]) -> list[int]:
    """Return "1224" ranks for ``values`` already sorted best-first.

    ``None`` values must come last; they share the rank after the last
    scored value.
    """
    ranks: list[int] = []
    previous: float | None = None
    current = 0
    scored = 0
    for position, value in enumerate(values, start=1):
        if value is None:
            ranks.append(scored + 1)
            continue
        key = round(value, TIE_PRECISION)
        if previous is None or key != previous:
            current = position
            previous = key
        ranks.append(current)
        scored += 1
    return ranks


@dataclass(frozen=True, slots=True)
class ScoreboardEntry:
    submission_id: str
    average_score: float | None
    judge_count: int
    rank: int
    expected_count: int
    complete: bool
    evaluator_percentage: float
    meets_evaluator_requirement: bool
    meets_cutoff: bool
    result: ResultType
    validity_message: str | None
    current_step: int
    status: SubmissionStatus

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        return payload


@dataclass(frozen=True, slots=True)
class Scoreboard:
    """Entries are ordered by rank; scores use the step's ``0..max_total`` scale."""

    step_id: str
    application_id: str
    step_number: int
    max_total: float
    cutoff_score: float | None
    entries: tuple[ScoreboardEntry, ...]

    def as_dict(self) -> dict[str, Any]:
        return {
            "step_id": self.step_id,
            "application_id": self.application_id,
            "step_number": self.step_number,
            "max_total": self.max_total,
            "cutoff_score": self.cutoff_score,
            "entries": [entry.as_dict() for entry in self.entries],
        }


@dataclass(frozen=True, slots=True)
class JudgingStats:
    step_id: str
    submission_count: int
    active_submissions: int
    active_evaluators: int
    recorded_scores: int
    completed_scores: int
    possible_scores: int
    progress: float

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class ScoreboardBuilder:
    """Builds ranked scoreboards from stored aggregates.

    Built boards are cached per step until ``invalidate`` is called; the
    ledger and the progression state machine invalidate on every write.
    """

    def __init__(self, store: EvaluationStore, catalog: StepCatalog) -> None:
        self._store = store
        self._catalog = catalog
        self._lock = threading.Lock()
        self._generation: dict[str, int] = {}
        self._cache: dict[str, tuple[int, Scoreboard]] = {}
        self._logger = structlog.get_logger(__name__)

    def build(self, *, step_id: str | None = None, event_id: str | None = None) -> Scoreboard:
        if (step_id is None) == (event_id is None):
            raise ValueError("Provide exactly one of step_id or event_id")
        step = self._catalog.get(step_id) if step_id else self._catalog.resolve_event_step(event_id)

        with self._lock:
            generation = self._generation.get(step.id, 0)
            cached = self._cache.get(step.id)
        if cached is not None and cached[0] == generation:
            return cached[1]

        board = self._compute(step)
        with self._lock:
            if self._generation.get(step.id, 0) == generation:
                self._cache[step.id] = (generation, board)
        self._logger.debug("scoreboard.built", step_id=step.id, entries=len(board.entries))
        return board

    def invalidate(self, step_id: str | None = None) -> None:
        with self._lock:
            if step_id is None:
                for key in list(self._generation) + list(self._cache):
                    self._generation[key] = self._generation.get(key, 0) + 1
                self._cache.clear()
                return
            self._generation[step_id] = self._generation.get(step_id, 0) + 1
            self._cache.pop(step_id, None)

    def judging_stats(self, step_id: str) -> JudgingStats:
        step = self._catalog.get(step_id)
        reached = self._reached(step)
        active_subs = {s.id for s in self._store.submissions.list_active(step.id)}
        active_evals = {a.evaluator_id for a in self._store.evaluators.list_active(step.id)}
        scores = self._store.scores.list_for_step(step.id)
        completed = sum(
            1 for s in scores if s.submission_id in active_subs and s.evaluator_id in active_evals
        )
        possible = len(active_subs) * len(active_evals)
        return JudgingStats(
            step_id=step.id,
            submission_count=len(reached),
            active_submissions=len(active_subs),
            active_evaluators=len(active_evals),
            recorded_scores=len(scores),
            completed_scores=completed,
            possible_scores=possible,
            progress=round(completed / possible * 100, 1) if possible else 0.0,
        )

    def _reached(self, step: EvaluationStep):
        return [
            s
            for s in self._store.submissions.list_for_application(step.application_id)
            if s.current_step >= step.step_number
        ]

    def _compute(self, step: EvaluationStep) -> Scoreboard:
        active = [a.evaluator_id for a in self._store.evaluators.list_active(step.id)]
        expected = len(set(active))
        aggregates = {a.submission_id: a for a in self._store.aggregates.list_for_step(step.id)}

        rows: list[dict[str, Any]] = []
        for submission in self._reached(step):
            aggregate = aggregates.get(submission.id)
            average = aggregate.average_score if aggregate else None
            judge_count = aggregate.judge_count if aggregate else 0
            completion = completion_from(aggregate.evaluator_ids if aggregate else [], active)
            percentage = round(judge_count / expected * 100, 1) if expected else 0.0
            meets_requirement = expected > 0 and percentage >= step.required_evaluator_percentage
            meets_cutoff = average is not None and (
                step.cutoff_score is None or average >= step.cutoff_score
            )
            rows.append(
                {
                    "submission_id": submission.id,
                    "average_score": average,
                    "judge_count": judge_count,
                    "expected_count": expected,
                    "complete": completion.complete,
                    "evaluator_percentage": percentage,
                    "meets_evaluator_requirement": meets_requirement,
                    "meets_cutoff": meets_cutoff,
                    "result": self._result(average, meets_requirement, meets_cutoff),
                    "validity_message": self._validity_message(
                        judge_count, expected, meets_requirement, step
                    ),
                    "current_step": submission.current_step,
                    "status": submission.status,
                }
            )

        scored = [r for r in rows if r["average_score"] is not None]
        scored.sort(key=lambda r: -round(r["average_score"], TIE_PRECISION))
        ordered = scored + [r for r in rows if r["average_score"] is None]
        ranks = competition_ranks([r["average_score"] for r in ordered])

        return Scoreboard(
            step_id=step.id,
            application_id=step.application_id,
            step_number=step.step_number,
            max_total=step.total_weight,
            cutoff_score=step.cutoff_score,
            entries=tuple(
                ScoreboardEntry(rank=rank, **row) for rank, row in zip(ranks, ordered)
            ),
        )

    @staticmethod
    def _result(average: float | None, meets_requirement: bool, meets_cutoff: bool) -> ResultType:
        if average is None or not meets_requirement:
            return "PENDING"
        return "PASSED" if meets_cutoff else "FAILED"

    @staticmethod
    def _validity_message(
        judge_count: int,
        expected: int,
        meets_requirement: bool,
        step: EvaluationStep,
    ) -> str | None:
        if meets_requirement:
            return None
        if judge_count == 0:
            return "No evaluators have scored this submission yet"
        if expected == 0:
            return "No active evaluators are assigned to this step"
        return (
            f"Only {judge_count}/{expected} evaluators scored "
            f"(need {step.required_evaluator_percentage:g}%)"
        )
