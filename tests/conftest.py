from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest
import structlog
from structlog.testing import LogCapture

from acceleval.container import create_container
from acceleval.schemas import EvaluationStep, EvaluatorStatus
from acceleval.service import EvaluationService


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, dict[str, Any]]] = []

    def notify(self, kind: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("mail relay unavailable")
        self.sent.append((kind, payload))


@dataclass
class Workspace:
    """Application ``app-1`` with a three-criteria screening step and a weighted interview step."""

    service: EvaluationService
    application_id: str
    steps: list[EvaluationStep] = field(default_factory=list)

    def step(self, number: int) -> EvaluationStep:
        return self.steps[number - 1]

    def raw(self, number: int, **by_name: Any) -> dict[str, Any]:
        ids = {c.name: c.id for c in self.step(number).criteria}
        return {ids[name]: value for name, value in by_name.items()}

    def add_submissions(self, *submission_ids: str) -> None:
        for submission_id in submission_ids:
            self.service.attach_submission({"id": submission_id, "application_id": self.application_id})

    def add_evaluators(self, number: int, *evaluator_ids: str, status=EvaluatorStatus.ACCEPTED) -> None:
        for evaluator_id in evaluator_ids:
            self.service.assign_evaluator(
                {
                    "evaluator_id": evaluator_id,
                    "step_id": self.step(number).id,
                    "application_id": self.application_id,
                    "status": status,
                }
            )

    def score(self, submission_id: str, evaluator_id: str, number: int, **by_name: Any):
        return self.service.submit_score(
            submission_id, evaluator_id, self.step(number).id, self.raw(number, **by_name)
        )


@pytest.fixture
def log_entries():
    previous = structlog.get_config()
    capture = LogCapture()
    structlog.configure(processors=[structlog.contextvars.merge_contextvars, capture])
    yield capture.entries
    structlog.configure(**previous)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def container(notifier: RecordingNotifier):
    return create_container(notifier=notifier)


@pytest.fixture
def service(container) -> EvaluationService:
    return container.service()


@pytest.fixture
def workspace(service: EvaluationService) -> Workspace:
    steps = service.configure_steps(
        "app-1",
        [
            {
                "name": "Screening",
                "criteria": [
                    {"name": "Team", "weight": 1},
                    {"name": "Market", "weight": 1},
                    {"name": "Product", "weight": 1},
                ],
            },
            {
                "name": "Interview",
                "criteria": [
                    {"name": "Vision", "weight": 3},
                    {"name": "Execution", "weight": 2},
                    {"name": "Traction", "weight": 5},
                ],
            },
        ],
    )
    return Workspace(service=service, application_id="app-1", steps=steps)
