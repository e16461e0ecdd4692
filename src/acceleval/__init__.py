"""Evaluation and scoring engine for accelerator programs."""

__version__ = "0.1.0"
