from __future__ import annotations

import pytest

from conftest import make_case
from jurimetria.derived import complexity, complexity_score, derive_case, duration_bucket, efficiency
from jurimetria.models import Complexity, DurationBucket


@pytest.mark.parametrize(
    "events, days, expected",
    [
        (0, 0, Complexity.LOW),
        (41, 0, Complexity.LOW),  # 24.6
        (42, 0, Complexity.MEDIUM),  # 25.2
        (0, 1875, Complexity.MEDIUM),  # exactly 25
        (83, 0, Complexity.MEDIUM),  # 49.8
        (70, 750, Complexity.HIGH),  # 42 + 10
    ],
)
def test_complexity_bands(events, days, expected):
    assert complexity(events, days) is expected


def test_complexity_score_weights():
    assert complexity_score(10, 300) == pytest.approx(10 * 0.6 + 10 * 0.4)


def test_efficiency_guards_zero_days():
    assert efficiency(10, 0) == 0
    assert efficiency(10, 5) == 2


@pytest.mark.parametrize(
    "days, expected",
    [
        (0, DurationBucket.FAST),
        (90, DurationBucket.FAST),
        (91, DurationBucket.NORMAL),
        (365, DurationBucket.NORMAL),
        (366, DurationBucket.SLOW),
        (730, DurationBucket.SLOW),
        (731, DurationBucket.VERY_SLOW),
    ],
)
def test_duration_bucket_edges(days, expected):
    assert duration_bucket(days) is expected


def test_bucket_labels():
    assert [b.value for b in DurationBucket] == ["Fast(≤3mo)", "Normal(3mo–1y)", "Slow(1–2y)", "VerySlow(>2y)"]


def test_derive_case_is_idempotent():
    case = make_case(events=30, days=400)
    assert derive_case(case.core) == case
    assert case.filed_month_key == "2023-01"
    assert case.efficiency == pytest.approx(30 / 400)
