from __future__ import annotations

import pendulum
import pytest
from fastapi.testclient import TestClient

from acceleval.api import create_app


@pytest.fixture
def client(workspace) -> TestClient:
    workspace.add_submissions("sub-1", "sub-2")
    workspace.add_evaluators(1, "judge-a")
    return TestClient(create_app(workspace.service))


def _payload(workspace, **by_name):
    return {
        "submission_id": "sub-1",
        "evaluator_id": "judge-a",
        "step_id": workspace.step(1).id,
        "criteria_scores": workspace.raw(1, **by_name),
    }


def test_post_score_returns_outcome(client, workspace):
    response = client.post("/api/v1/scores", json=_payload(workspace, Team=8, Market=6, Product=10))

    assert response.status_code == 201
    body = response.json()
    assert body["score"]["total_score"] == pytest.approx(2.4)
    assert body["completion"] == {"scored_count": 1, "expected_count": 1, "complete": True}


def test_validation_error_lists_fields(client, workspace):
    response = client.post("/api/v1/scores", json=_payload(workspace, Team=11, Market=6, Product=10))

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["type"] == "OutOfRangeScoreError"
    assert error["field_errors"] == {"Team": "must be between 1 and 10"}


def test_missing_step_is_404_and_closed_is_409(client, workspace):
    payload = _payload(workspace, Team=5, Market=5, Product=5)
    assert client.post("/api/v1/scores", json={**payload, "step_id": "nope"}).status_code == 404

    client.post("/api/v1/submissions/reject", json={"submission_ids": ["sub-1"]})
    response = client.post("/api/v1/scores", json=payload)
    assert response.status_code == 409
    assert response.json()["error"]["type"] == "SubmissionClosedError"


def test_advance_batch_reports_failures(client, workspace):
    client.post("/api/v1/submissions/admit", json={"submission_ids": ["sub-2"]})

    response = client.post(
        f"/api/v1/steps/{workspace.step(1).id}/advance",
        json={"submission_ids": ["sub-1", "sub-2"]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["succeeded"] == ["sub-1"]
    assert body["failed"][0]["id"] == "sub-2"
    assert body["failed"][0]["reason"] == "terminal"
    assert body["summary"] == "1 advanced, 1 failed: already decided"


def test_scoreboard_and_completion_status(client, workspace):
    client.post("/api/v1/scores", json=_payload(workspace, Team=5, Market=5, Product=5))
    step_id = workspace.step(1).id

    board = client.get("/api/v1/scoreboard", params={"step_id": step_id}).json()
    assert [(e["submission_id"], e["rank"]) for e in board["entries"]] == [("sub-1", 1), ("sub-2", 2)]

    progress = client.get(
        "/api/v1/completion-status", params={"evaluator_id": "judge-a", "step_id": step_id}
    ).json()
    assert progress["scored_count"] == 1
    assert progress["expected_count"] == 2
    assert progress["complete"] is False

    bad = client.get("/api/v1/completion-status", params={"step_id": step_id})
    assert bad.status_code == 400


def test_step_setup_and_cutoff(client, workspace):
    created = client.post(
        "/api/v1/applications/app-9/steps",
        json={"steps": [{"name": "Only", "criteria": [{"name": "Fit", "weight": 4}]}]},
    )
    assert created.status_code == 201
    step_id = created.json()[0]["id"]

    assert client.patch(f"/api/v1/steps/{step_id}/cutoff", json={"cutoff_score": 3}).status_code == 200
    rejected = client.patch(f"/api/v1/steps/{step_id}/cutoff", json={"cutoff_score": 5})
    assert rejected.status_code == 400
    assert client.get("/api/v1/applications/app-9/steps").json()[0]["cutoff_score"] == 3


def test_public_results_gate(client, workspace):
    service = workspace.service
    service.configure_steps("demo", [{"name": "Finals", "criteria": [{"name": "Pitch"}]}])
    service.register_program({"id": "demo", "kind": "demo_day", "is_public": True})
    assert client.get("/api/v1/public/events/demo/results").status_code == 403

    service.register_program(
        {
            "id": "demo",
            "kind": "demo_day",
            "is_public": True,
            "results_public_at": pendulum.now("UTC").subtract(minutes=1),
        }
    )
    response = client.get("/api/v1/public/events/demo/results")
    assert response.status_code == 200
    assert response.json()["entries"] == []


def test_evaluation_status_and_stats(client, workspace):
    client.post("/api/v1/scores", json=_payload(workspace, Team=5, Market=5, Product=5))

    status = client.get("/api/v1/submissions/sub-1/evaluation-status").json()
    stats = client.get(f"/api/v1/steps/{workspace.step(1).id}/stats").json()

    assert status["steps"][0]["judge_count"] == 1
    assert stats["completed_scores"] == 1
    assert client.get("/api/v1/submissions/ghost/evaluation-status").status_code == 404


def test_get_score_prefills_the_form(client, workspace):
    params = {"submission_id": "sub-1", "evaluator_id": "judge-a", "step_id": workspace.step(1).id}

    before = client.get("/api/v1/scores", params=params)
    assert before.status_code == 200
    assert before.json() == {"score": None, "has_scored": False}

    client.post("/api/v1/scores", json={**_payload(workspace, Team=8, Market=6, Product=10), "notes": "strong team"})

    body = client.get("/api/v1/scores", params=params).json()
    assert body["has_scored"] is True
    assert body["score"]["total_score"] == pytest.approx(2.4)
    assert body["score"]["notes"] == "strong team"
    assert client.get("/api/v1/scores", params={**params, "submission_id": "ghost"}).status_code == 404
