"""Pydantic schema definitions shared by the engine and its collaborators."""

from __future__ import annotations

from .evaluation import (
    Criterion,
    CriterionDraft,
    EvaluationStep,
    Program,
    StepDraft,
)
from .score import CriteriaScores, Score, StepAggregate
from .submission import (
    ACTIVE_EVALUATOR_STATUSES,
    TERMINAL_STATUSES,
    EvaluatorAssignment,
    EvaluatorStatus,
    Submission,
    SubmissionStatus,
)

__all__ = [
    "ACTIVE_EVALUATOR_STATUSES",
    "TERMINAL_STATUSES",
    "CriteriaScores",
    "Criterion",
    "CriterionDraft",
    "EvaluationStep",
    "EvaluatorAssignment",
    "EvaluatorStatus",
    "Program",
    "Score",
    "StepAggregate",
    "StepDraft",
    "Submission",
    "SubmissionStatus",
]
