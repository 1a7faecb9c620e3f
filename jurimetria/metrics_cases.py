from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Sequence

from jurimetria.aggregates import case_summary, outliers
from jurimetria.alerts import alert_to_dict, evaluate_alerts, severity_counts
from jurimetria.charts import case_scatter, count_bars, filings_line
from jurimetria.data import cases_to_records
from jurimetria.filters import DashboardFilters, filter_by_period
from jurimetria.models import CaseView


def _case_row(case: CaseView) -> Dict[str, Any]:
    row = cases_to_records([case])[0]
    row.update(
        {
            "complexity": case.complexity.value,
            "efficiency": case.efficiency,
            "duration_bucket": case.duration_bucket.value,
            "filed_month_key": case.filed_month_key,
            "filed_year": case.filed_year,
        }
    )
    return row


def compute_case_report(
    filters: DashboardFilters,
    cases: Sequence[CaseView],
    *,
    severity: str = "All",
    q: str = "",
) -> Dict[str, Any]:
    """Case page payload. ``severity`` and ``q`` narrow the alert list only."""
    filtered = filter_by_period(cases, filters.period.start, filters.period.end)

    alerts = evaluate_alerts(filtered)
    counts = severity_counts(alerts)
    shown = alerts
    if severity != "All":
        shown = [a for a in shown if a.severity.value == severity.lower()]
    query = (q or "").strip().casefold()
    if query:
        shown = [a for a in shown if query in a.case_id.casefold() or query in a.message.casefold()]

    summary = case_summary(filtered, n=filters.top_n)
    flagged = outliers(filtered)
    outlier_ids = {c["case_id"] for c in flagged["cases"]}

    charts: Dict[str, Any] = {}
    if summary is not None:
        charts = {
            "duration_buckets": count_bars(summary["by_duration_bucket"], title="Processos"),
            "complexity": count_bars(summary["by_complexity"], title="Processos"),
            "conclusion_types": count_bars(summary["by_conclusion_type"], title="Processos", horizontal=True),
            "top_classes": count_bars(summary["top_classes"], title="Processos", horizontal=True),
            "top_subjects": count_bars(summary["top_subjects"], title="Processos", horizontal=True),
            "mean_days_by_procedure": count_bars(summary["mean_days_by_procedure"], title="Dias (média)"),
            "filings_by_month": filings_line(summary["filings_by_month"]),
            "events_vs_duration": case_scatter(
                [
                    {
                        "case_id": c.case_id,
                        "event_count": c.core.event_count,
                        "days_in_progress": c.core.days_in_progress,
                        "complexity": c.complexity.value,
                        "outlier": c.case_id in outlier_ids,
                    }
                    for c in filtered
                ]
            ),
        }

    return {
        "filters": asdict(filters),
        "case_count": len(filtered),
        "total_cases": len(cases),
        "summary": summary,
        "outliers": flagged,
        "alert_counts": counts,
        "alerts": [alert_to_dict(a) for a in shown],
        "cases": [_case_row(c) for c in filtered],
        "charts": charts,
    }
