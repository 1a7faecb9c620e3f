from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

import pandas as pd

from jurimetria.config import DEFAULT_SELECTED_METRICS, DEFAULT_TOP_N, LEDGER_METRICS
from jurimetria.data import as_date, parse_period_label
from jurimetria.models import CaseView, LedgerRow


T = TypeVar("T")

PERIOD_PRESETS = ["last_month", "last_quarter", "last_semester", "last_year", "last_2_years", "last_3_years", "all"]
DEFAULT_PRESET = "last_2_years"


@dataclass(frozen=True)
class PeriodFilter:
    """Inclusive date range; a missing side is unbounded."""

    start: Optional[date] = None
    end: Optional[date] = None

    def contains(self, value: date) -> bool:
        return (self.start is None or value >= self.start) and (self.end is None or value <= self.end)


@dataclass(frozen=True)
class DashboardFilters:
    period: PeriodFilter = field(default_factory=PeriodFilter)
    selected_metrics: List[str] = field(default_factory=lambda: list(DEFAULT_SELECTED_METRICS))
    top_n: int = DEFAULT_TOP_N


def record_date(record: object) -> date:
    if isinstance(record, LedgerRow):
        return record.period_date
    if isinstance(record, CaseView):
        return record.core.filed_date
    raise TypeError(f"no date for {type(record).__name__}")


def filter_by_period(
    records: Iterable[T],
    start: Optional[date] = None,
    end: Optional[date] = None,
    *,
    key: Callable[[T], date] = record_date,  # type: ignore[assignment]
) -> List[T]:
    """Records whose date lies in ``[start, end]``; the input is left untouched."""
    period = PeriodFilter(start=start, end=end)
    return [r for r in records if period.contains(key(r))]


def parse_boundary(value: object) -> Optional[date]:
    """A filter boundary from a date, ISO text (``2023-02-01``) or a period label (``fev/23``)."""
    if value is None:
        return None
    cell_date = as_date(value)
    if cell_date is not None:
        return cell_date
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.strptime(text[:10], "%Y-%m-%d").date()
    except ValueError:
        pass
    parsed = parse_period_label(text)
    return parsed[1] if parsed else None


def _shift(value: date, *, months: int = 0, years: int = 0) -> date:
    return (pd.Timestamp(value) - pd.DateOffset(months=months, years=years)).date()


def _end_of_month(value: date) -> date:
    return (pd.Timestamp(value) + pd.offsets.MonthEnd(0)).date()


def preset_period(name: str, *, today: Optional[date] = None, rows: Sequence[LedgerRow] = ()) -> PeriodFilter:
    today = today or date.today()
    if name == "last_month":
        prev = _shift(today, months=1)
        return PeriodFilter(start=prev.replace(day=1), end=_end_of_month(prev))
    if name == "last_quarter":
        return PeriodFilter(start=_shift(today, months=3).replace(day=1), end=today)
    if name == "last_semester":
        return PeriodFilter(start=_shift(today, months=6).replace(day=1), end=today)
    if name == "last_year":
        return PeriodFilter(start=_shift(today, years=1), end=today)
    if name == "last_2_years":
        return PeriodFilter(start=_shift(today, years=2), end=today)
    if name == "last_3_years":
        return PeriodFilter(start=_shift(today, years=3), end=today)
    if name == "all":
        if not rows:
            return PeriodFilter()
        return PeriodFilter(start=rows[0].period_date, end=rows[-1].period_date)
    raise ValueError(f"unknown period preset '{name}'")


def normalize_filters(raw: dict, *, rows: Sequence[LedgerRow] = (), today: Optional[date] = None) -> DashboardFilters:
    preset = raw.get("preset")
    start, end = parse_boundary(raw.get("start")), parse_boundary(raw.get("end"))
    if start or end:
        period = PeriodFilter(start=start, end=end)
    elif preset in PERIOD_PRESETS:
        period = preset_period(str(preset), today=today, rows=rows)
    else:
        period = PeriodFilter()

    selected = [str(m) for m in (raw.get("selected_metrics") or []) if str(m) in LEDGER_METRICS]
    if not selected:
        selected = list(DEFAULT_SELECTED_METRICS)

    top_n = raw.get("top_n", DEFAULT_TOP_N)
    try:
        top_n = int(top_n)
    except Exception:
        top_n = DEFAULT_TOP_N
    top_n = max(1, min(50, top_n))

    return DashboardFilters(period=period, selected_metrics=selected, top_n=top_n)
