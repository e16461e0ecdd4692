from __future__ import annotations

import json
from pathlib import Path

import pytest


def _step(step_id: str, number: int, name: str, criteria: list[tuple[str, float]], **extra) -> dict:
    return {
        "id": step_id,
        "application_id": "app-1",
        "step_number": number,
        "name": name,
        "criteria": [
            {"id": cid, "step_id": step_id, "name": cid.title(), "weight": weight, "order": idx}
            for idx, (cid, weight) in enumerate(criteria)
        ],
        **extra,
    }


@pytest.fixture
def snapshot_document() -> dict:
    return {
        "programs": [{"id": "app-1", "name": "Spring Cohort", "kind": "application"}],
        "steps": [
            _step("s1", 1, "Screening", [("team", 1), ("market", 1), ("product", 1)], cutoff_score=2.0),
            _step("s2", 2, "Interview", [("vision", 3), ("execution", 2), ("traction", 5)]),
        ],
        "submissions": [
            {"id": "sub-a", "application_id": "app-1"},
            {"id": "sub-b", "application_id": "app-1"},
            {"id": "sub-c", "application_id": "app-1", "status": "REJECTED"},
        ],
        "evaluators": [
            {"evaluator_id": "judge-a", "step_id": "s1", "application_id": "app-1", "status": "ACCEPTED"},
            {"evaluator_id": "judge-b", "step_id": "s1", "application_id": "app-1", "status": "ACCEPTED"},
        ],
        "scores": [
            {
                "submission_id": "sub-a",
                "evaluator_id": "judge-a",
                "step_id": "s1",
                "criteria_scores": {"team": 10, "market": 10, "product": 10},
            },
            {
                "submission_id": "sub-a",
                "evaluator_id": "judge-b",
                "step_id": "s1",
                "criteria_scores": {"team": 8, "market": 6, "product": 10},
            },
            {
                "submission_id": "sub-b",
                "evaluator_id": "judge-a",
                "step_id": "s1",
                "criteria_scores": {"team": 5, "market": 5, "product": 5},
            },
        ],
    }


@pytest.fixture
def snapshot_path(tmp_path: Path, snapshot_document: dict) -> Path:
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(snapshot_document, ensure_ascii=False), encoding="utf-8")
    return path
