from __future__ import annotations

from datetime import date

from jurimetria.models import CaseCore, CaseView, Complexity, DurationBucket


# Events signal procedural activity, so they weigh more than elapsed months.
COMPLEXITY_EVENT_WEIGHT = 0.6
COMPLEXITY_DURATION_WEIGHT = 0.4
COMPLEXITY_MEDIUM_FROM = 25.0
COMPLEXITY_HIGH_FROM = 50.0

FAST_MAX_DAYS = 90
NORMAL_MAX_DAYS = 365
SLOW_MAX_DAYS = 730


def complexity_score(event_count: float, days_in_progress: float) -> float:
    return event_count * COMPLEXITY_EVENT_WEIGHT + (days_in_progress / 30) * COMPLEXITY_DURATION_WEIGHT


def complexity(event_count: float, days_in_progress: float) -> Complexity:
    score = complexity_score(event_count, days_in_progress)
    if score < COMPLEXITY_MEDIUM_FROM:
        return Complexity.LOW
    if score < COMPLEXITY_HIGH_FROM:
        return Complexity.MEDIUM
    return Complexity.HIGH


def efficiency(event_count: float, days_in_progress: float) -> float:
    return event_count / days_in_progress if days_in_progress > 0 else 0.0


def duration_bucket(days_in_progress: float) -> DurationBucket:
    if days_in_progress <= FAST_MAX_DAYS:
        return DurationBucket.FAST
    if days_in_progress <= NORMAL_MAX_DAYS:
        return DurationBucket.NORMAL
    if days_in_progress <= SLOW_MAX_DAYS:
        return DurationBucket.SLOW
    return DurationBucket.VERY_SLOW


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def derive_case(core: CaseCore) -> CaseView:
    return CaseView(
        core=core,
        complexity=complexity(core.event_count, core.days_in_progress),
        efficiency=efficiency(core.event_count, core.days_in_progress),
        duration_bucket=duration_bucket(core.days_in_progress),
        filed_month_key=month_key(core.filed_date),
        filed_year=core.filed_date.year,
    )
