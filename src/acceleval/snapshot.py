"""Snapshot files: load evaluation state from JSON and write results back."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pendulum
import structlog
from pydantic import BaseModel

from . import __version__
from .errors import EvaluationError, StoreError
from .schemas import EvaluationStep, EvaluatorAssignment, Program, Score, Submission
from .service import EvaluationService


class SnapshotLoadError(ValueError):
    """Raised when a snapshot contains records that could not be loaded."""

    def __init__(self, errors: list[str], partial: EvaluationService):
        super().__init__("Snapshot loading failed")
        self.errors = errors
        self.partial = partial

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"Snapshot loading failed: {self.errors}"


class SnapshotLoader:
    """Populate an evaluation service from a snapshot document.

    The document holds ``programs``, ``steps``, ``submissions``,
    ``evaluators`` and ``scores`` lists. Score records carrying a
    ``total_score`` are restored as stored; the others are replayed through
    the scoring path so they are validated and totalled.
    """

    def __init__(self, service: EvaluationService):
        self._service = service
        self._logger = structlog.get_logger(__name__)

    def load(self, path: Path) -> EvaluationService:
        with path.open("r", encoding="utf-8") as handle:
            try:
                data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid snapshot JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError("Snapshot must be a JSON object")
        return self.populate(data)

    def populate(self, data: dict[str, Any]) -> EvaluationService:
        service = self._service
        store = service.store
        errors: list[str] = []

        self._each(data, "programs", Program, store.programs.add, errors)
        self._each(data, "steps", EvaluationStep, store.steps.add, errors)
        self._each(data, "submissions", Submission, store.submissions.add, errors)
        self._each(data, "evaluators", EvaluatorAssignment, store.evaluators.add, errors)

        replay: list[tuple[int, dict[str, Any]]] = []
        for idx, record in enumerate(data.get("scores") or []):
            if isinstance(record, dict) and "total_score" not in record:
                replay.append((idx, record))
                continue
            self._one("scores", idx, record, Score, store.scores.upsert, errors)

        application_ids = self._application_ids(data)
        for application_id in sorted(application_ids):
            service.rebuild(application_id)

        for idx, record in replay:
            try:
                service.submit_score(
                    record["submission_id"],
                    record["evaluator_id"],
                    record["step_id"],
                    record.get("criteria_scores") or {},
                    record.get("notes"),
                )
            except StoreError:
                raise
            except (EvaluationError, KeyError) as exc:
                errors.append(f"scores[{idx}]: {exc}")

        self._logger.info(
            "snapshot.loaded",
            applications=len(application_ids),
            replayed_scores=len(replay),
            errors=len(errors),
        )
        if errors:
            raise SnapshotLoadError(errors, service)
        return service

    @staticmethod
    def _application_ids(data: dict[str, Any]) -> set[str]:
        return {
            record["application_id"]
            for record in data.get("steps") or []
            if isinstance(record, dict) and isinstance(record.get("application_id"), str)
        }

    def _each(
        self,
        data: dict[str, Any],
        section: str,
        model: type[BaseModel],
        add: Callable[[Any], None],
        errors: list[str],
    ) -> None:
        for idx, record in enumerate(data.get(section) or []):
            self._one(section, idx, record, model, add, errors)

    @staticmethod
    def _one(
        section: str,
        idx: int,
        record: Any,
        model: type[BaseModel],
        add: Callable[[Any], None],
        errors: list[str],
    ) -> None:
        try:
            add(model.model_validate(record))
        except Exception as exc:  # noqa: BLE001
            errors.append(f"{section}[{idx}]: {exc}")


class OutputWriter:
    """Persist command results as pretty-printed JSON."""

    def write(self, path: Path, payload: dict | list[dict]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, default=_json_default),
            encoding="utf-8",
        )


def result_metadata(command: str, errors: list[str]) -> dict[str, Any]:
    return {
        "command": command,
        "errors": errors,
        "timestamp": pendulum.now("UTC").to_iso8601_string(),
        "app_version": __version__,
    }


def _json_default(value):  # type: ignore[override]
    if isinstance(value, pendulum.DateTime):
        return value.to_iso8601_string()
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class AuditLogger:
    """Append-only audit log of transition decisions, one JSON object per line."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: dict) -> None:
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=False, default=_json_default))
            handle.write("\n")
