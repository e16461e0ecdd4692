from __future__ import annotations

from datetime import timedelta

import pendulum
import pytest

from acceleval.errors import ProgramNotFoundError, SubmissionNotFoundError
from acceleval.schemas import EvaluatorStatus, Program


def test_evaluation_status_reports_every_step(workspace):
    workspace.add_submissions("sub-1")
    workspace.add_evaluators(1, "judge-a")
    workspace.score("sub-1", "judge-a", 1, Team=10, Market=10, Product=10)
    workspace.service.advance(["sub-1"], workspace.step(1).id)

    status = workspace.service.evaluation_status("sub-1").as_dict()

    assert status["current_step"] == 2
    assert status["status"] == "IN_REVIEW"
    assert [s["step_name"] for s in status["steps"]] == ["Screening", "Interview"]
    assert status["steps"][0]["average_score"] == pytest.approx(3.0)
    assert status["steps"][0]["judge_count"] == 1
    assert status["steps"][1]["is_current_step"] is True


def test_evaluation_status_of_unknown_submission(service):
    with pytest.raises(SubmissionNotFoundError):
        service.evaluation_status("ghost")


def test_attach_submission_starts_at_first_step(workspace):
    submission = workspace.service.attach_submission(
        {"id": "late", "application_id": "app-1", "current_step": 2, "average_score": 9.0}
    )
    assert submission.current_step == 1
    assert submission.average_score is None


def test_completed_status_cannot_be_set_directly(workspace):
    workspace.add_evaluators(1, "judge-a", status=EvaluatorStatus.INVITED)

    with pytest.raises(ValueError):
        workspace.service.set_evaluator_status("judge-a", workspace.step(1).id, EvaluatorStatus.COMPLETED)

    status = workspace.service.set_evaluator_status("judge-a", workspace.step(1).id, EvaluatorStatus.ACCEPTED)
    assert status is EvaluatorStatus.ACCEPTED


@pytest.mark.parametrize(
    ("fields", "expected"),
    [
        ({"is_public": False, "show_results_live": True}, False),
        ({"is_public": True, "show_results_live": True}, True),
        ({"is_public": True, "results_public_at": -1}, True),
        ({"is_public": True, "results_public_at": 1}, False),
        ({"is_public": True}, False),
    ],
)
def test_program_results_visibility(fields, expected):
    now = pendulum.datetime(2026, 5, 1, 12, tz="UTC")
    if "results_public_at" in fields:
        fields = {**fields, "results_public_at": now + timedelta(hours=fields["results_public_at"])}
    program = Program(id="demo", kind="demo_day", **fields)
    assert program.results_public(now) is expected


def test_program_registry(service):
    service.register_program({"id": "demo", "name": "Demo Day", "kind": "demo_day"})
    assert service.get_program("demo").name == "Demo Day"
    with pytest.raises(ProgramNotFoundError):
        service.get_program("missing")
