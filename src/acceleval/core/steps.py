"""Evaluation step setup and lookup."""

from __future__ import annotations

from typing import Any, Callable, Sequence
from uuid import uuid4

import structlog
from pydantic import ValidationError

from ..errors import StepConfigurationError, StepNotFoundError
from ..repositories import EvaluationStore
from ..schemas import Criterion, EvaluationStep, StepDraft
from .unit_of_work import KeyedLocks


class StepCatalog:
    """Creates an application's ordered steps and answers step lookups."""

    def __init__(
        self,
        store: EvaluationStore,
        *,
        locks: KeyedLocks | None = None,
        default_min_score: float = 1.0,
        default_max_score: float = 10.0,
        required_evaluator_percentage: float = 75.0,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._locks = locks or KeyedLocks()
        self._default_min = default_min_score
        self._default_max = default_max_score
        self._required_percentage = required_evaluator_percentage
        self._new_id = id_factory or (lambda: str(uuid4()))
        self._logger = structlog.get_logger(__name__)

    def get(self, step_id: str) -> EvaluationStep:
        step = self._store.steps.get(step_id)
        if step is None:
            raise StepNotFoundError(step_id)
        return step

    def list_steps(self, application_id: str) -> list[EvaluationStep]:
        return self._store.steps.list_for_application(application_id)

    def step_by_number(self, application_id: str, step_number: int) -> EvaluationStep | None:
        for step in self.list_steps(application_id):
            if step.step_number == step_number:
                return step
        return None

    def resolve_event_step(self, event_id: str) -> EvaluationStep:
        """Return the judging step of an event: its highest-numbered step."""
        steps = self.list_steps(event_id)
        if not steps:
            raise StepNotFoundError(f"event:{event_id}")
        return steps[-1]

    def configure_steps(
        self,
        application_id: str,
        drafts: Sequence[StepDraft | dict[str, Any]],
    ) -> list[EvaluationStep]:
        with self._locks.hold(("application", application_id)):
            if self._store.steps.list_for_application(application_id):
                raise StepConfigurationError(
                    "Evaluation steps already exist for this application"
                )
            steps = self._build_steps(application_id, drafts)
            for step in steps:
                self._store.steps.add(step)

        self._logger.info(
            "steps.configured",
            application_id=application_id,
            steps=[(s.step_number, s.name, len(s.criteria)) for s in steps],
        )
        return steps

    def set_cutoff(self, step_id: str, cutoff: float | None) -> EvaluationStep:
        step = self.get(step_id)
        if cutoff is not None and not (0 <= cutoff <= step.total_weight):
            raise StepConfigurationError(
                f"Cutoff must be between 0 and {step.total_weight:g} for step {step.step_number}"
            )
        updated = step.model_copy(update={"cutoff_score": cutoff})
        self._store.steps.update(updated)
        self._logger.info("steps.cutoff_updated", step_id=step_id, cutoff=cutoff)
        return updated

    def _build_steps(
        self,
        application_id: str,
        drafts: Sequence[StepDraft | dict[str, Any]],
    ) -> list[EvaluationStep]:
        if not drafts:
            raise StepConfigurationError("At least one evaluation step is required")

        errors: list[str] = []
        steps: list[EvaluationStep] = []
        for position, raw in enumerate(drafts, start=1):
            try:
                draft = raw if isinstance(raw, StepDraft) else StepDraft.model_validate(raw)
            except ValidationError as exc:
                errors.append(f"step {position}: {exc.errors()[0]['msg']}")
                continue
            if draft.step_number is not None and draft.step_number != position:
                errors.append(
                    f"step {position}: step numbers must be contiguous from 1 (got {draft.step_number})"
                )
                continue
            if not draft.criteria:
                errors.append(f"step {position}: at least one criterion is required")
                continue

            step_id = self._new_id()
            criteria = [
                Criterion(
                    id=self._new_id(),
                    step_id=step_id,
                    name=c.name,
                    weight=c.weight,
                    order=c.order if c.order is not None else index,
                )
                for index, c in enumerate(draft.criteria)
            ]
            try:
                steps.append(
                    EvaluationStep(
                        id=step_id,
                        application_id=application_id,
                        step_number=position,
                        name=draft.name,
                        criteria=criteria,
                        min_score=draft.min_score if draft.min_score is not None else self._default_min,
                        max_score=draft.max_score if draft.max_score is not None else self._default_max,
                        required_evaluator_percentage=(
                            draft.required_evaluator_percentage
                            if draft.required_evaluator_percentage is not None
                            else self._required_percentage
                        ),
                    )
                )
            except ValidationError as exc:
                errors.append(f"step {position}: {exc.errors()[0]['msg']}")
                continue

            if draft.cutoff_score is not None:
                step = steps[-1]
                if not (0 <= draft.cutoff_score <= step.total_weight):
                    errors.append(
                        f"step {position}: cutoff must be between 0 and {step.total_weight:g}"
                    )
                    continue
                steps[-1] = step.model_copy(update={"cutoff_score": draft.cutoff_score})

        if errors:
            raise StepConfigurationError("Invalid evaluation step configuration", errors)
        return steps
