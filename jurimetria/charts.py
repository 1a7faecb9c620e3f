from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import altair as alt
import pandas as pd

from jurimetria.config import METRIC_COLORS
from jurimetria.data import period_label_for
from jurimetria.models import LedgerRow, Milestone

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _color_scale(metrics: Sequence[str], colors: Optional[Dict[str, str]] = None) -> alt.Scale:
    colors = {**METRIC_COLORS, **(colors or {})}
    return alt.Scale(domain=list(metrics), range=[colors.get(m, "#888888") for m in metrics])


def milestone_labels(milestones: Sequence[Milestone], rows: Sequence[LedgerRow]) -> List[Dict[str, str]]:
    """Milestones placed on the period axis; ones outside the shown periods are dropped."""
    shown = {r.period_label for r in rows}
    placed = []
    for m in milestones:
        label = period_label_for(m.date)
        if label in shown:
            placed.append({"period_label": label, "description": m.description})
    return placed


def metric_lines(
    rows: Sequence[LedgerRow],
    metrics: Sequence[str],
    milestones: Sequence[Milestone] = (),
    colors: Optional[Dict[str, str]] = None,
) -> Optional[Dict[str, Any]]:
    if not rows or not metrics:
        return None
    order = [r.period_label for r in rows]
    long = pd.DataFrame(
        [{"period_label": r.period_label, "metric": m, "value": r.value(m)} for r in rows for m in metrics]
    )
    hover = alt.selection_point(fields=["metric"], on="mouseover", empty="all")
    lines = (
        alt.Chart(long)
        .mark_line(point={"filled": True, "size": 50})
        .encode(
            x=alt.X("period_label:N", sort=order, title="Mês/Ano", axis=alt.Axis(grid=False, labelAngle=-45)),
            y=alt.Y("value:Q", title=None, axis=alt.Axis(gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("metric:N", scale=_color_scale(metrics, colors), title=None),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.2)),
            tooltip=["period_label", "metric", alt.Tooltip("value:Q", format=",.0f")],
        )
        .add_params(hover)
        .properties(height=300)
    )
    placed = milestone_labels(milestones, rows)
    if not placed:
        return to_vega_spec(lines)
    rules = (
        alt.Chart(pd.DataFrame(placed))
        .mark_rule(color="#d62728", strokeDash=[4, 4])
        .encode(x=alt.X("period_label:N", sort=order), tooltip=["period_label", "description"])
    )
    text = (
        alt.Chart(pd.DataFrame(placed))
        .mark_text(align="left", dx=4, dy=-120, color="#d62728")
        .encode(x=alt.X("period_label:N", sort=order), text="description:N")
    )
    return to_vega_spec(alt.layer(lines, rules, text))


def flow_bars(rows: Sequence[LedgerRow], incoming: str, resolved: str) -> Optional[Dict[str, Any]]:
    if not rows:
        return None
    order = [r.period_label for r in rows]
    long = pd.DataFrame(
        [{"period_label": r.period_label, "metric": m, "value": r.value(m)} for r in rows for m in (incoming, resolved)]
    )
    chart = (
        alt.Chart(long)
        .mark_bar()
        .encode(
            x=alt.X("period_label:N", sort=order, title="Mês/Ano", axis=alt.Axis(labelAngle=-45)),
            xOffset="metric:N",
            y=alt.Y("value:Q", title=None),
            color=alt.Color("metric:N", scale=_color_scale([incoming, resolved]), title=None),
            tooltip=["period_label", "metric", alt.Tooltip("value:Q", format=",.0f")],
        )
        .properties(height=260)
    )
    return to_vega_spec(chart)


def composition_pie(slices: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not slices:
        return None
    chart = (
        alt.Chart(pd.DataFrame(slices))
        .mark_arc(innerRadius=50)
        .encode(
            theta=alt.Theta("value:Q"),
            color=alt.Color("name:N", title=None),
            tooltip=["name", alt.Tooltip("value:Q", format=",.0f")],
        )
        .properties(height=260)
    )
    return to_vega_spec(chart)


def heatmap_grid(cells: List[Dict[str, Any]], order: Sequence[str]) -> Optional[Dict[str, Any]]:
    if not cells:
        return None
    chart = (
        alt.Chart(pd.DataFrame(cells))
        .mark_rect()
        .encode(
            x=alt.X("month:N", sort=list(order), title="Mês/Ano"),
            y=alt.Y("metric:N", title=None),
            color=alt.Color("normalized_value:Q", scale=alt.Scale(scheme="blues", domain=[0, 1]), title=None),
            tooltip=["month", "metric", alt.Tooltip("value:Q", format=",.0f")],
        )
        .properties(height=320)
    )
    return to_vega_spec(chart)


def count_bars(counts: List[Dict[str, Any]], *, title: str, horizontal: bool = False) -> Optional[Dict[str, Any]]:
    """Bar chart of ``{"name", "value"}`` items, in the given order."""
    if not counts:
        return None
    order = [c["name"] for c in counts]
    df = pd.DataFrame(counts)
    if horizontal:
        enc = {"y": alt.Y("name:N", sort=order, title=None), "x": alt.X("value:Q", title=title)}
    else:
        enc = {"x": alt.X("name:N", sort=order, title=None, axis=alt.Axis(labelAngle=0)), "y": alt.Y("value:Q", title=title)}
    chart = (
        alt.Chart(df)
        .mark_bar(cornerRadiusEnd=3)
        .encode(**enc, tooltip=["name", alt.Tooltip("value:Q", format=",.1f")])
        .properties(height=260)
    )
    return to_vega_spec(chart)


def filings_line(counts: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not counts:
        return None
    chart = (
        alt.Chart(pd.DataFrame(counts))
        .mark_line(point=True)
        .encode(
            x=alt.X("name:O", title="Mês de autuação"),
            y=alt.Y("value:Q", title="Processos"),
            tooltip=["name", "value"],
        )
        .properties(height=240)
    )
    return to_vega_spec(chart)


def case_scatter(points: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Events against days in progress; outliers highlighted."""
    if not points:
        return None
    chart = (
        alt.Chart(pd.DataFrame(points))
        .mark_circle(size=60)
        .encode(
            x=alt.X("days_in_progress:Q", title="Dias em Tramitação"),
            y=alt.Y("event_count:Q", title="Eventos"),
            color=alt.condition(alt.datum.outlier, alt.value("#d62728"), alt.value("#1f77b4")),
            tooltip=["case_id", "event_count", "days_in_progress", "complexity"],
        )
        .properties(height=300)
    )
    return to_vega_spec(chart)
