"""
Evaluation API - HTTP surface of the scoring engine.

Authentication and workspace permission checks are done by the upstream
gateway; every route here assumes an authorised caller. The only visibility
rule enforced in this module is the public-results gate of demo-day events.
"""

from __future__ import annotations

from typing import Any

import pendulum
from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .errors import (
    EvaluationError,
    EvaluatorNotAssignedError,
    InactiveStepError,
    NotFoundError,
    ScoreValidationError,
    StepConfigurationError,
    StoreError,
    SubmissionClosedError,
)
from .schemas import EvaluatorStatus, StepDraft
from .service import EvaluationService

router = APIRouter(prefix="/api/v1", tags=["Evaluation"])


#  Request bodies

class ScoreRequest(BaseModel):
    submission_id: str = Field(min_length=1)
    evaluator_id: str = Field(min_length=1)
    step_id: str = Field(min_length=1)
    criteria_scores: dict[str, Any]
    notes: str | None = Field(default=None, max_length=5000)

    model_config = ConfigDict(extra="forbid")


class BatchRequest(BaseModel):
    submission_ids: list[str] = Field(min_length=1)
    application_id: str | None = None

    model_config = ConfigDict(extra="forbid")


class StepSetupRequest(BaseModel):
    steps: list[StepDraft] = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")


class CutoffRequest(BaseModel):
    cutoff_score: float | None

    model_config = ConfigDict(extra="forbid")


class EvaluatorStatusRequest(BaseModel):
    status: EvaluatorStatus

    model_config = ConfigDict(extra="forbid")


def get_service(request: Request) -> EvaluationService:
    return request.app.state.service


#  Error mapping

_STATUS_BY_ERROR: list[tuple[type[EvaluationError], int]] = [
    (ScoreValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (SubmissionClosedError, status.HTTP_409_CONFLICT),
    (InactiveStepError, status.HTTP_409_CONFLICT),
    (EvaluatorNotAssignedError, status.HTTP_409_CONFLICT),
    (StepConfigurationError, status.HTTP_400_BAD_REQUEST),
    (StoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


async def evaluation_exception_handler(request: Request, exc: EvaluationError) -> JSONResponse:
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break

    body: dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, ScoreValidationError):
        body["field_errors"] = exc.field_errors()
        body["violations"] = [v.as_dict() for v in exc.violations]
    if isinstance(exc, StepConfigurationError):
        body["errors"] = exc.errors
    return JSONResponse(status_code=status_code, content={"error": body})


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": {"type": "ValueError", "message": str(exc)}},
    )


#  Step setup

@router.post("/applications/{application_id}/steps", status_code=status.HTTP_201_CREATED)
def configure_steps(
    application_id: str,
    body: StepSetupRequest,
    service: EvaluationService = Depends(get_service),
) -> list[dict[str, Any]]:
    steps = service.configure_steps(application_id, body.steps)
    return [step.model_dump(mode="json") for step in steps]


@router.get("/applications/{application_id}/steps")
def list_steps(
    application_id: str,
    service: EvaluationService = Depends(get_service),
) -> list[dict[str, Any]]:
    return [step.model_dump(mode="json") for step in service.list_steps(application_id)]


@router.patch("/steps/{step_id}/cutoff")
def update_cutoff(
    step_id: str,
    body: CutoffRequest,
    service: EvaluationService = Depends(get_service),
) -> dict[str, Any]:
    return service.set_cutoff(step_id, body.cutoff_score).model_dump(mode="json")


@router.put("/steps/{step_id}/evaluators/{evaluator_id}/status")
def update_evaluator_status(
    step_id: str,
    evaluator_id: str,
    body: EvaluatorStatusRequest,
    service: EvaluationService = Depends(get_service),
) -> dict[str, Any]:
    current = service.set_evaluator_status(evaluator_id, step_id, body.status)
    return {"evaluator_id": evaluator_id, "step_id": step_id, "status": current.value if current else None}


#  Scoring

@router.post("/scores", status_code=status.HTTP_201_CREATED)
def submit_score(
    body: ScoreRequest,
    service: EvaluationService = Depends(get_service),
) -> dict[str, Any]:
    outcome = service.submit_score(
        body.submission_id,
        body.evaluator_id,
        body.step_id,
        body.criteria_scores,
        body.notes,
    )
    return outcome.as_dict()


@router.get("/scores")
def get_score(
    submission_id: str = Query(...),
    evaluator_id: str = Query(...),
    step_id: str = Query(...),
    service: EvaluationService = Depends(get_service),
) -> dict[str, Any]:
    score = service.get_score(submission_id, evaluator_id, step_id)
    return {
        "score": score.model_dump(mode="json") if score is not None else None,
        "has_scored": score is not None,
    }


#  Transitions

@router.post("/steps/{step_id}/advance")
def advance(
    step_id: str,
    body: BatchRequest,
    service: EvaluationService = Depends(get_service),
) -> dict[str, Any]:
    return service.advance(body.submission_ids, step_id).as_dict()


@router.post("/submissions/reject")
def reject(
    body: BatchRequest,
    service: EvaluationService = Depends(get_service),
) -> dict[str, Any]:
    return service.reject(body.submission_ids, application_id=body.application_id).as_dict()


@router.post("/submissions/admit")
def admit(
    body: BatchRequest,
    service: EvaluationService = Depends(get_service),
) -> dict[str, Any]:
    return service.admit(body.submission_ids, application_id=body.application_id).as_dict()


#  Reads

@router.get("/scoreboard")
def scoreboard(
    step_id: str | None = Query(default=None),
    event_id: str | None = Query(default=None),
    service: EvaluationService = Depends(get_service),
) -> dict[str, Any]:
    return service.scoreboard(step_id=step_id, event_id=event_id).as_dict()


@router.get("/public/events/{event_id}/results")
def public_results(
    event_id: str,
    service: EvaluationService = Depends(get_service),
) -> JSONResponse:
    program = service.get_program(event_id)
    if not program.results_public(pendulum.now("UTC")):
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"error": {"type": "ResultsNotPublic", "message": "Results are not public yet"}},
        )
    board = service.scoreboard(event_id=event_id)
    entries = [
        {"submission_id": e.submission_id, "average_score": e.average_score, "rank": e.rank}
        for e in board.entries
    ]
    return JSONResponse(content={"event_id": event_id, "max_total": board.max_total, "entries": entries})


@router.get("/completion-status")
def completion_status(
    step_id: str = Query(...),
    evaluator_id: str | None = Query(default=None),
    submission_id: str | None = Query(default=None),
    service: EvaluationService = Depends(get_service),
) -> dict[str, Any]:
    if (evaluator_id is None) == (submission_id is None):
        raise ValueError("Provide exactly one of evaluator_id or submission_id")
    if evaluator_id is not None:
        return service.evaluator_progress(evaluator_id, step_id).as_dict()
    return service.submission_completion(submission_id, step_id).as_dict()


@router.get("/steps/{step_id}/stats")
def judging_stats(
    step_id: str,
    service: EvaluationService = Depends(get_service),
) -> dict[str, Any]:
    return service.judging_stats(step_id).as_dict()


@router.get("/submissions/{submission_id}/evaluation-status")
def evaluation_status(
    submission_id: str,
    service: EvaluationService = Depends(get_service),
) -> dict[str, Any]:
    return service.evaluation_status(submission_id).as_dict()


@router.get("/health", tags=["Health"])
def health() -> dict[str, str]:
    return {"status": "ok", "version": __version__}


def create_app(service: EvaluationService | None = None) -> FastAPI:
    """Build the FastAPI application around ``service`` (or a fresh container)."""
    if service is None:
        from .container import create_container

        service = create_container().service()

    app = FastAPI(
        title="Accelerator Evaluation API",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )
    app.state.service = service
    app.add_exception_handler(EvaluationError, evaluation_exception_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.include_router(router)
    return app
