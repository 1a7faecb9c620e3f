from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional, Sequence

from jurimetria.aggregates import (
    caseload_composition,
    flow_totals,
    heatmap,
    kpi_averages,
    metric_totals,
    productivity_comparison,
    stats_table,
)
from jurimetria.charts import composition_pie, flow_bars, heatmap_grid, metric_lines
from jurimetria.config import INCOMING_METRIC, RESOLVED_METRIC
from jurimetria.data import ledger_to_records
from jurimetria.filters import DashboardFilters, filter_by_period
from jurimetria.models import LedgerRow, Milestone


def compute_ledger_report(
    filters: DashboardFilters,
    rows: Sequence[LedgerRow],
    milestones: Sequence[Milestone] = (),
    *,
    colors: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    filtered = filter_by_period(rows, filters.period.start, filters.period.end)

    charts: Dict[str, Any] = {}
    if filtered:
        composition = caseload_composition(filtered)
        cells = heatmap(filtered)
        charts = {
            "metric_trend": metric_lines(filtered, filters.selected_metrics, milestones, colors),
            "flow": flow_bars(filtered, INCOMING_METRIC, RESOLVED_METRIC),
            "composition": composition_pie(composition),
            "heatmap": heatmap_grid(cells, [r.period_label for r in filtered]),
        }
    else:
        composition, cells = [], []

    return {
        "filters": asdict(filters),
        "row_count": len(filtered),
        "total_rows": len(rows),
        "periods": [r.period_label for r in filtered],
        "rows": ledger_to_records(filtered),
        "kpis": kpi_averages(filtered),
        "stats_table": stats_table(filtered),
        "productivity": productivity_comparison(filtered),
        "flow": flow_totals(filtered),
        "composition": composition,
        "metric_totals": metric_totals(filtered),
        "heatmap": cells,
        "milestones": [{"date": m.date.isoformat(), "description": m.description} for m in milestones],
        "charts": charts,
    }
