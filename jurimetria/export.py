"""Printable HTML report of the filtered ledger."""

from __future__ import annotations

import html
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from jurimetria.aggregates import kpi_averages, stats_table
from jurimetria.config import EXPORT_PERIODS, PERIOD_COLUMN, REPORT_STATS_METRICS
from jurimetria.data import plain_number
from jurimetria.filters import PeriodFilter
from jurimetria.models import LedgerRow

REPORT_TITLE = "Relatório de Produtividade Judicial"
TABLE_COLUMNS = [
    ("Conclusos", "Conclusos"),
    ("Produtividade", "Produtividade"),
    ("Entrada Total", "Entrada - Total"),
    ("Baixados", "Baixados"),
    ("Acervo Total", "Acervo total"),
]

_STYLE = """
body { font-family: Arial, sans-serif; margin: 20px; color: #333; }
.header { text-align: center; margin-bottom: 30px; border-bottom: 2px solid #007bff; padding-bottom: 20px; }
.title { font-size: 24px; font-weight: bold; color: #007bff; margin-bottom: 10px; }
.subtitle { font-size: 14px; color: #666; }
.section { margin: 25px 0; }
.section-title { font-size: 18px; font-weight: bold; margin-bottom: 15px; color: #007bff; border-bottom: 1px solid #ddd; padding-bottom: 5px; }
.kpi-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 15px; margin: 20px 0; }
.kpi-card { background: #f8f9fa; padding: 15px; border-radius: 8px; border-left: 4px solid #007bff; }
.kpi-title { font-size: 12px; color: #666; margin-bottom: 5px; }
.kpi-value { font-size: 20px; font-weight: bold; color: #333; }
table { width: 100%; border-collapse: collapse; margin: 15px 0; }
th, td { padding: 8px 12px; text-align: left; border-bottom: 1px solid #ddd; }
th { background-color: #f8f9fa; font-weight: bold; color: #007bff; }
tr:nth-child(even) { background-color: #f9f9f9; }
.data-table th, .data-table td { text-align: center; font-size: 11px; }
.footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #ddd; text-align: center; color: #666; font-size: 12px; }
@media print { body { margin: 10px; } .section { page-break-inside: avoid; } }
"""


def _esc(value: object) -> str:
    return html.escape(str(value), quote=True)


def _fmt(value: Optional[float], digits: int = 1) -> str:
    if value is None:
        return "-"
    return f"{value:,.{digits}f}".replace(",", "X").replace(".", ",").replace("X", ".")


def _fmt_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def period_caption(period: PeriodFilter, row_count: int) -> str:
    if period.start and period.end:
        return f"{_fmt_date(period.start)} a {_fmt_date(period.end)}"
    return f"Todo o histórico ({row_count} registros)"


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"relatorio-produtividade-{now:%Y-%m-%d-%H%M}.html"


def _kpi_section(kpis: List[Dict[str, Any]]) -> str:
    cards = "".join(
        f'<div class="kpi-card"><div class="kpi-title">{_esc(k["name"])}</div>'
        f'<div class="kpi-value">{_esc(_fmt(k["value"]))}</div></div>'
        for k in kpis
    )
    return (
        '<div class="section"><div class="section-title">Indicadores Principais (Médias do Período)</div>'
        f'<div class="kpi-grid">{cards}</div></div>'
    )


def _stats_section(stats: List[Dict[str, Any]]) -> str:
    by_metric = {s["metric"]: s for s in stats}
    body = ""
    for metric in REPORT_STATS_METRICS:
        s = by_metric.get(metric)
        if s is None:
            continue
        body += (
            f"<tr><td><strong>{_esc(metric)}</strong></td><td>{_esc(_fmt(s['mean']))}</td>"
            f"<td>{_esc(_fmt(s['median']))}</td><td>{_esc(_fmt(s['min'], 0))}</td>"
            f"<td>{_esc(_fmt(s['max'], 0))}</td></tr>"
        )
    return (
        '<div class="section"><div class="section-title">Resumo Estatístico (Top 5 Métricas)</div>'
        "<table><thead><tr><th>Métrica</th><th>Média</th><th>Mediana</th><th>Mínimo</th><th>Máximo</th></tr></thead>"
        f"<tbody>{body}</tbody></table></div>"
    )


def _rows_section(rows: Sequence[LedgerRow]) -> str:
    head = "".join(f"<th>{_esc(title)}</th>" for title, _ in TABLE_COLUMNS)
    body = "".join(
        f"<tr><td><strong>{_esc(r.period_label)}</strong></td>"
        + "".join(f"<td>{_esc(plain_number(r.value(col)))}</td>" for _, col in TABLE_COLUMNS)
        + "</tr>"
        for r in rows
    )
    return (
        f'<div class="section"><div class="section-title">Dados Mensais Detalhados (Últimos {EXPORT_PERIODS} Períodos)</div>'
        f'<table class="data-table"><thead><tr><th>{_esc(PERIOD_COLUMN)}</th>{head}</tr></thead>'
        f"<tbody>{body}</tbody></table></div>"
    )


def render_report(
    rows: Sequence[LedgerRow],
    period: PeriodFilter = PeriodFilter(),
    *,
    generated_at: Optional[datetime] = None,
) -> str:
    """A standalone HTML document (inline styles, no scripts) for ``rows``."""
    generated_at = generated_at or datetime.now()
    sections = ""
    if rows:
        sections += _kpi_section(kpi_averages(rows))
        sections += _stats_section(stats_table(rows, REPORT_STATS_METRICS))
    sections += _rows_section(list(rows)[-EXPORT_PERIODS:])
    return (
        "<!DOCTYPE html>\n<html lang=\"pt-BR\"><head><meta charset=\"utf-8\">"
        f"<title>{_esc(REPORT_TITLE)}</title><style>{_STYLE}</style></head><body>"
        f'<div class="header"><div class="title">{_esc(REPORT_TITLE)}</div>'
        f'<div class="subtitle">Período: {_esc(period_caption(period, len(rows)))}</div>'
        f'<div class="subtitle">Gerado em: {generated_at:%d/%m/%Y %H:%M}</div></div>'
        f"{sections}"
        '<div class="footer"><p>Relatório gerado automaticamente pelo Sistema de Análise de Produtividade Judicial</p>'
        "<p>Para salvar como PDF, use Ctrl+P e selecione \"Salvar como PDF\"</p></div>"
        "</body></html>\n"
    )
