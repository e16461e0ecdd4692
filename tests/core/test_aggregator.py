from __future__ import annotations

import pytest

from acceleval.core import mean_total, weighted_total
from acceleval.schemas import Criterion


def _criteria(*weights: float) -> list[Criterion]:
    return [
        Criterion(id=f"c{idx}", step_id="s1", name=f"C{idx}", weight=weight, order=idx)
        for idx, weight in enumerate(weights)
    ]


def test_equal_weights_sum_normalized_scores():
    total = weighted_total(_criteria(1, 1, 1), {"c0": 8, "c1": 6, "c2": 10}, 10)
    assert total == pytest.approx(2.4)


def test_full_marks_reach_total_weight():
    total = weighted_total(_criteria(3, 2, 5), {"c0": 10, "c1": 10, "c2": 10}, 10)
    assert total == pytest.approx(10.0)


def test_total_is_not_divided_by_weight():
    total = weighted_total(_criteria(3, 2, 5), {"c0": 5, "c1": 5, "c2": 5}, 10)
    assert total == pytest.approx(5.0)


def test_mean_total_of_nothing_is_none():
    assert mean_total([]) is None
    assert mean_total([2.0, 3.0]) == pytest.approx(2.5)
