"""Evaluation and scoring engine components."""

from __future__ import annotations

# NOTE: keep imports explicit for export clarity.
from .aggregator import mean_total, weighted_total
from .completion import CompletionStatus, CompletionTracker, EvaluatorProgress
from .ledger import ScoreLedger, ScoringOutcome
from .progression import BatchResult, StepProgression, TransitionFailure
from .scoreboard import (
    JudgingStats,
    Scoreboard,
    ScoreboardBuilder,
    ScoreboardEntry,
    competition_ranks,
)
from .steps import StepCatalog
from .unit_of_work import KeyedLocks, UnitOfWork

__all__ = [
    "BatchResult",
    "CompletionStatus",
    "CompletionTracker",
    "EvaluatorProgress",
    "JudgingStats",
    "KeyedLocks",
    "ScoreLedger",
    "Scoreboard",
    "ScoreboardBuilder",
    "ScoreboardEntry",
    "ScoringOutcome",
    "StepCatalog",
    "StepProgression",
    "TransitionFailure",
    "UnitOfWork",
    "competition_ranks",
    "mean_total",
    "weighted_total",
]
