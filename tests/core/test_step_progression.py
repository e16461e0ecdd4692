from __future__ import annotations

import pytest
import structlog

from acceleval.schemas import SubmissionStatus
from acceleval.core import BatchResult, TransitionFailure


def test_partial_batch_advance(workspace, notifier):
    workspace.add_submissions("a", "b", "c")
    workspace.service.reject(["c"])
    notifier.sent.clear()

    result = workspace.service.advance(["a", "b", "c"], workspace.step(1).id)

    assert result.succeeded == ["a", "b"]
    assert [f.as_dict()["id"] for f in result.failed] == ["c"]
    assert result.failed[0].reason == "terminal"
    store = workspace.service.store
    assert store.submissions.get("a").current_step == 2
    assert store.submissions.get("b").current_step == 2
    assert store.submissions.get("c").current_step == 1
    assert [kind for kind, _ in notifier.sent] == ["advanced", "advanced"]
    assert notifier.sent[0][1] == {"submission_id": "a", "new_step": 2}


def test_advance_from_wrong_step_and_unknown_ids(workspace):
    workspace.add_submissions("a")
    workspace.service.advance(["a"], workspace.step(1).id)

    result = workspace.service.advance(["a", "ghost", "a"], workspace.step(1).id)

    assert result.succeeded == []
    assert [(f.submission_id, f.reason) for f in result.failed] == [
        ("a", "wrong_step"),
        ("ghost", "not_found"),
    ]


def test_advance_resets_average_to_new_step(workspace):
    workspace.add_submissions("a")
    workspace.add_evaluators(1, "judge-a")
    workspace.score("a", "judge-a", 1, Team=10, Market=10, Product=10)
    assert workspace.service.store.submissions.get("a").average_score == pytest.approx(3.0)

    workspace.service.advance(["a"], workspace.step(1).id)

    submission = workspace.service.store.submissions.get("a")
    assert submission.current_step == 2
    assert submission.status is SubmissionStatus.IN_REVIEW
    assert submission.average_score is None
    assert workspace.service.store.aggregates.get("a", workspace.step(1).id).average_score == pytest.approx(3.0)


def test_advancing_past_last_step_does_not_admit(workspace):
    workspace.add_submissions("a")
    workspace.service.advance(["a"], workspace.step(1).id)
    workspace.service.advance(["a"], workspace.step(2).id)

    submission = workspace.service.store.submissions.get("a")
    assert submission.current_step == 3
    assert submission.status is SubmissionStatus.IN_REVIEW


def test_admit_and_reject_are_terminal(workspace, notifier):
    workspace.add_submissions("a", "b")

    admitted = workspace.service.admit(["a"], application_id="app-1")
    rejected = workspace.service.reject(["a", "b"])

    assert admitted.succeeded == ["a"]
    assert rejected.succeeded == ["b"]
    assert rejected.failed[0].reason == "terminal"
    assert workspace.service.store.submissions.get("a").status is SubmissionStatus.ADMITTED
    assert ("admitted", {"submission_id": "a", "step": 1, "decision": "admitted"}) in notifier.sent


def test_decisions_respect_application_scope(workspace):
    workspace.add_submissions("a")

    result = workspace.service.reject(["a"], application_id="other-app")

    assert result.failed[0].reason == "wrong_application"
    assert workspace.service.store.submissions.get("a").status is SubmissionStatus.IN_REVIEW


def test_notification_failure_does_not_fail_transition(workspace, notifier):
    workspace.add_submissions("a")
    notifier.fail = True

    result = workspace.service.admit(["a"])

    assert result.succeeded == ["a"]
    assert notifier.sent == []
    assert workspace.service.store.submissions.get("a").status is SubmissionStatus.ADMITTED


def test_batch_summary_text():
    result = BatchResult(
        action="advance",
        succeeded=[f"s{idx}" for idx in range(48)],
        failed=[
            TransitionFailure("x", "terminal", "done"),
            TransitionFailure("y", "terminal", "done"),
        ],
    )
    assert result.summary() == "48 advanced, 2 failed: already decided"


def test_batch_events_share_a_batch_id(workspace, log_entries):
    workspace.add_submissions("a", "b")
    workspace.service.reject(["b"])
    log_entries.clear()

    workspace.service.advance(["a", "b"], workspace.step(1).id)

    failed = next(e for e in log_entries if e["event"] == "transition.failed")
    batch = next(e for e in log_entries if e["event"] == "transition.batch")
    assert failed["action"] == batch["action"] == "advance"
    assert failed["batch_id"] == batch["batch_id"]
    assert "batch_id" not in structlog.contextvars.get_contextvars()
