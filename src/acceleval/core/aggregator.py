"""Weighted score aggregation."""

from __future__ import annotations

from typing import Iterable, Mapping

from ..schemas import Criterion


def weighted_total(
    criteria: Iterable[Criterion],
    raw_scores: Mapping[str, float],
    scale_max: float,
) -> float:
    """Return ``sum(raw / scale_max * weight)`` over ``criteria``.

    The result lies on a ``0..total_weight`` scale and is not divided by the
    total weight. Input must already be range-checked; nothing is clamped.
    """
    total = 0.0
    total_weight = 0.0
    for criterion in criteria:
        total_weight += criterion.weight
        if criterion.id in raw_scores:
            total += (raw_scores[criterion.id] / scale_max) * criterion.weight
    if total_weight == 0:
        return 0.0
    return total


def mean_total(totals: Iterable[float]) -> float | None:
    """Mean of evaluator totals, ``None`` when nobody has scored."""
    values = list(totals)
    if not values:
        return None
    return sum(values) / len(values)
