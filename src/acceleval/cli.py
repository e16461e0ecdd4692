"""Typer CLI for offline scoreboards and batch transitions over snapshot files."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

import structlog
import typer
import yaml
from pydantic import ValidationError

from .container import create_container
from .errors import EvaluationError
from .logging import configure_logging
from .schemas.config import AppConfig, load_config
from .service import EvaluationService
from .snapshot import AuditLogger, OutputWriter, SnapshotLoader, SnapshotLoadError, result_metadata

app = typer.Typer(help="Accelerator evaluation CLI.")


class Action(str, Enum):
    advance = "advance"
    reject = "reject"
    admit = "admit"


def _read_config(path: Path | None) -> AppConfig:
    settings: dict[str, Any] = {}
    if path:
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
            if not isinstance(loaded, dict):
                raise typer.BadParameter("Config file must be a YAML object", param_name="config")
            settings = loaded
    try:
        return load_config(settings)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_name="config") from exc


def _bootstrap(
    snapshot: Path,
    config: Path | None,
    log_level: str | None,
) -> tuple[EvaluationService, list[str]]:
    app_config = _read_config(config)
    configure_logging(log_level or app_config.logging.level)

    container = create_container(settings=app_config.to_settings())
    loader = SnapshotLoader(container.service())
    try:
        return loader.load(snapshot), []
    except SnapshotLoadError as exc:
        structlog.get_logger(__name__).warning("snapshot.partial_load", errors=exc.errors)
        return exc.partial, list(exc.errors)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_name="snapshot") from exc


@app.command()
def scoreboard(
    snapshot: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Snapshot JSON path."),
    output: Path = typer.Option(..., dir_okay=False, resolve_path=True, help="Output JSON path."),
    step: Optional[str] = typer.Option(None, help="Step id to rank."),
    event: Optional[str] = typer.Option(None, help="Demo-day event id to rank (uses its final step)."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: Optional[str] = typer.Option(None, help="Log level for structured logging."),
) -> None:
    """Rank the submissions of one step or demo-day event."""
    if (step is None) == (event is None):
        raise typer.BadParameter("Provide exactly one of --step or --event")

    service, load_errors = _bootstrap(snapshot, config, log_level)
    try:
        board = service.scoreboard(step_id=step, event_id=event)
    except EvaluationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    OutputWriter().write(
        output,
        {"metadata": result_metadata("scoreboard", load_errors), "scoreboard": board.as_dict()},
    )
    typer.echo(f"Ranked {len(board.entries)} submissions. Results saved to {output}.")


@app.command()
def transition(
    snapshot: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Snapshot JSON path."),
    output: Path = typer.Option(..., dir_okay=False, resolve_path=True, help="Updated snapshot output path."),
    action: Action = typer.Option(..., case_sensitive=False, help="Transition to apply."),
    ids: List[str] = typer.Option(..., "--id", help="Submission id (repeatable)."),
    step: Optional[str] = typer.Option(None, help="Step id the submissions advance from."),
    application: Optional[str] = typer.Option(None, help="Restrict reject/admit to one application."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: Optional[str] = typer.Option(None, help="Log level for structured logging."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
) -> None:
    """Advance, reject or admit a batch of submissions."""
    if action is Action.advance and step is None:
        raise typer.BadParameter("--step is required for advance", param_name="step")

    service, load_errors = _bootstrap(snapshot, config, log_level)
    try:
        if action is Action.advance:
            result = service.advance(ids, step)
        elif action is Action.reject:
            result = service.reject(ids, application_id=application)
        else:
            result = service.admit(ids, application_id=application)
    except EvaluationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if audit_log:
        audit = AuditLogger(audit_log)
        for submission_id in result.succeeded:
            audit.append({"action": action.value, "submission_id": submission_id, "outcome": "succeeded"})
        for failure in result.failed:
            audit.append(
                {
                    "action": action.value,
                    "submission_id": failure.submission_id,
                    "outcome": "failed",
                    "reason": failure.reason,
                }
            )

    payload = service.store.export()
    payload["metadata"] = result_metadata("transition", load_errors)
    payload["result"] = result.as_dict()
    OutputWriter().write(output, payload)
    typer.echo(f"{result.summary()}. Snapshot saved to {output}.")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
