from __future__ import annotations

import math
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from jurimetria.config import (
    COMPOSITION_SLICES,
    INCOMING_METRIC,
    KPI_METRICS,
    LEDGER_METRICS,
    PRODUCTIVITY_METRIC,
    PROCEDURE_ENFORCEMENT,
    PROCEDURE_KNOWLEDGE,
    RESOLVED_METRIC,
)
from jurimetria.models import CaseView, Complexity, DurationBucket, LedgerRow, PerformanceTier


IQR_FACTOR = 1.5
EXCELLENT_FROM_PCT = 20.0
ATTENTION_FROM_PCT = -20.0

CATEGORICAL_FIELDS = {
    "conclusion_type": lambda c: c.core.conclusion_type,
    "case_class": lambda c: c.core.case_class,
    "subject": lambda c: c.core.subject,
    "procedure_type": lambda c: c.core.procedure_type,
    "duration_bucket": lambda c: c.duration_bucket.value,
    "complexity": lambda c: c.complexity.value,
    "filed_month_key": lambda c: c.filed_month_key,
}
CASE_METRICS = {
    "event_count": lambda c: c.core.event_count,
    "days_in_progress": lambda c: c.core.days_in_progress,
    "days_concluded": lambda c: c.core.days_concluded,
    "efficiency": lambda c: c.efficiency,
}


# ---------------- Scalar statistics ----------------
def _values(values: Iterable[float]) -> List[float]:
    out = []
    for v in values:
        f = float(v)
        if not math.isnan(f):
            out.append(f)
    return out


def mean(values: Iterable[float]) -> Optional[float]:
    vals = _values(values)
    return float(np.mean(vals)) if vals else None


def median(values: Iterable[float]) -> Optional[float]:
    vals = sorted(_values(values))
    if not vals:
        return None
    mid = len(vals) // 2
    if len(vals) % 2 == 0:
        return (vals[mid - 1] + vals[mid]) / 2
    return vals[mid]


def maximum(values: Iterable[float]) -> Optional[float]:
    vals = _values(values)
    return max(vals) if vals else None


def minimum(values: Iterable[float]) -> Optional[float]:
    vals = _values(values)
    return min(vals) if vals else None


def describe(values: Iterable[float]) -> Optional[Dict[str, float]]:
    vals = _values(values)
    if not vals:
        return None
    return {"mean": mean(vals), "median": median(vals), "max": maximum(vals), "min": minimum(vals)}


def metric_values(rows: Sequence[LedgerRow], metric: str) -> List[float]:
    return [r.value(metric) for r in rows]


def case_metric_values(cases: Sequence[CaseView], metric: str) -> List[float]:
    getter = CASE_METRICS[metric]
    return [float(getter(c)) for c in cases]


# ---------------- Ledger aggregates ----------------
def ledger_frame(rows: Sequence[LedgerRow], metrics: Sequence[str] = LEDGER_METRICS) -> pd.DataFrame:
    columns = ["period_label", "period_date", *metrics]
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(
        [{"period_label": r.period_label, "period_date": r.period_date, **{m: r.value(m) for m in metrics}} for r in rows],
        columns=columns,
    )


def stats_table(rows: Sequence[LedgerRow], metrics: Sequence[str] = LEDGER_METRICS) -> List[Dict[str, Any]]:
    table = []
    for metric in metrics:
        stats = describe(metric_values(rows, metric))
        if stats is None:
            continue
        table.append({"metric": metric, **stats})
    return table


def kpi_averages(rows: Sequence[LedgerRow], metrics: Sequence[str] = KPI_METRICS) -> List[Dict[str, Any]]:
    if not rows:
        return []
    return [{"name": m, "value": mean(metric_values(rows, m))} for m in metrics]


def productivity_comparison(rows: Sequence[LedgerRow], metric: str = PRODUCTIVITY_METRIC) -> Optional[Dict[str, Any]]:
    """Last period's productivity against the mean of the filtered range."""
    if not rows:
        return None
    current = rows[-1].value(metric)
    average = mean(metric_values(rows, metric)) or 0.0
    pct = (current - average) / average * 100 if average != 0 else 0.0
    if pct >= EXCELLENT_FROM_PCT:
        tier = PerformanceTier.EXCELLENT
    elif pct >= 0:
        tier = PerformanceTier.GOOD
    elif pct >= ATTENTION_FROM_PCT:
        tier = PerformanceTier.ATTENTION
    else:
        tier = PerformanceTier.INTERVENTION
    return {
        "period_label": rows[-1].period_label,
        "current_month": current,
        "average_period": average,
        "percent_vs_average": pct,
        "performance": tier.value,
    }


def flow_totals(rows: Sequence[LedgerRow]) -> Optional[Dict[str, Any]]:
    if not rows:
        return None
    incoming = float(sum(metric_values(rows, INCOMING_METRIC)))
    resolved = float(sum(metric_values(rows, RESOLVED_METRIC)))
    net = incoming - resolved
    return {
        "incoming": incoming,
        "resolved": resolved,
        "net_balance": net,
        "resolution_rate": resolved / incoming * 100 if incoming != 0 else 0.0,
        "trend": "grew" if net > 0 else ("shrank" if net < 0 else "stable"),
    }


def caseload_composition(rows: Sequence[LedgerRow]) -> List[Dict[str, Any]]:
    """Split of the last period's caseload; empty slices are left out."""
    if not rows:
        return []
    last = rows[-1]
    slices = [{"name": name, "value": last.value(col)} for name, col in COMPOSITION_SLICES]
    return [s for s in slices if s["value"] > 0]


def heatmap(rows: Sequence[LedgerRow], metrics: Sequence[str] = LEDGER_METRICS) -> List[Dict[str, Any]]:
    if not rows:
        return []
    df = ledger_frame(rows, metrics)
    maxima = df[list(metrics)].max()
    cells = []
    for _, rec in df.iterrows():
        for metric in metrics:
            value = float(rec[metric])
            top = float(maxima[metric])
            cells.append(
                {
                    "month": rec["period_label"],
                    "metric": metric,
                    "value": value,
                    "normalized_value": value / top if top > 0 else 0.0,
                }
            )
    return cells


def metric_totals(rows: Sequence[LedgerRow], metrics: Sequence[str] = LEDGER_METRICS) -> List[Dict[str, Any]]:
    if not rows:
        return []
    return [{"name": m, "value": float(sum(metric_values(rows, m)))} for m in metrics]


# ---------------- Case aggregates ----------------
def grouped_counts(cases: Sequence[CaseView], field: str) -> List[Dict[str, Any]]:
    """Counts per distinct value, in order of first appearance."""
    getter = CATEGORICAL_FIELDS[field]
    counts = Counter(getter(c) for c in cases)
    return [{"name": name, "value": count} for name, count in counts.items()]


def top_n(counts: List[Dict[str, Any]], n: int) -> List[Dict[str, Any]]:
    return sorted(counts, key=lambda item: item["value"], reverse=True)[: max(0, n)]


def grouped_mean(cases: Sequence[CaseView], field: str, metric: str) -> List[Dict[str, Any]]:
    getter = CATEGORICAL_FIELDS[field]
    value_of = CASE_METRICS[metric]
    groups: Dict[str, List[float]] = {}
    for c in cases:
        groups.setdefault(getter(c), []).append(float(value_of(c)))
    return [{"name": name, "value": mean(vals)} for name, vals in groups.items()]


def quartiles(values: Iterable[float]) -> Optional[Dict[str, float]]:
    """Q1/Q3 as plain order statistics at ``floor(0.25n)`` and ``floor(0.75n)``."""
    vals = sorted(_values(values))
    if not vals:
        return None
    n = len(vals)
    q1 = vals[math.floor(0.25 * n)]
    q3 = vals[math.floor(0.75 * n)]
    return {"q1": q1, "q3": q3, "iqr": q3 - q1, "upper_fence": q3 + IQR_FACTOR * (q3 - q1)}


def outliers(cases: Sequence[CaseView], metrics: Sequence[str] = ("event_count", "days_in_progress")) -> Dict[str, Any]:
    """Cases above ``Q3 + 1.5 * IQR`` on any of ``metrics``, each counted once."""
    fences: Dict[str, Optional[float]] = {}
    for metric in metrics:
        q = quartiles(case_metric_values(cases, metric))
        fences[metric] = q["upper_fence"] if q else None

    flagged: List[Dict[str, Any]] = []
    for c in cases:
        tripped = [m for m in metrics if fences[m] is not None and CASE_METRICS[m](c) > fences[m]]
        if not tripped:
            continue
        flagged.append(
            {
                "case_id": c.case_id,
                "metrics": tripped,
                **{m: CASE_METRICS[m](c) for m in metrics},
            }
        )
    return {"thresholds": fences, "count": len(flagged), "cases": flagged}


def _ordered_counts(cases: Sequence[CaseView], field: str, order: Sequence[str]) -> List[Dict[str, Any]]:
    counts = {item["name"]: item["value"] for item in grouped_counts(cases, field)}
    return [{"name": name, "value": counts[name]} for name in order if name in counts]


def case_summary(cases: Sequence[CaseView], *, n: int = 5) -> Optional[Dict[str, Any]]:
    if not cases:
        return None
    procedures = [c.core.procedure_type for c in cases]
    by_month = sorted(grouped_counts(cases, "filed_month_key"), key=lambda item: item["name"])
    return {
        "total_cases": len(cases),
        "mean_events": mean(case_metric_values(cases, "event_count")),
        "knowledge_count": procedures.count(PROCEDURE_KNOWLEDGE),
        "enforcement_count": procedures.count(PROCEDURE_ENFORCEMENT),
        "oldest_case_days": int(maximum(case_metric_values(cases, "days_in_progress")) or 0),
        "mean_efficiency": mean(case_metric_values(cases, "efficiency")),
        "by_conclusion_type": grouped_counts(cases, "conclusion_type"),
        "by_duration_bucket": _ordered_counts(cases, "duration_bucket", [b.value for b in DurationBucket]),
        "by_complexity": _ordered_counts(cases, "complexity", [c.value for c in Complexity]),
        "top_classes": top_n(grouped_counts(cases, "case_class"), n),
        "top_subjects": top_n(grouped_counts(cases, "subject"), n),
        "mean_days_by_procedure": grouped_mean(cases, "procedure_type", "days_in_progress"),
        "filings_by_month": by_month,
        "event_stats": describe(case_metric_values(cases, "event_count")),
        "duration_stats": describe(case_metric_values(cases, "days_in_progress")),
    }

