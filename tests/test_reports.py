from __future__ import annotations

from datetime import date

from conftest import make_case
from jurimetria.charts import milestone_labels
from jurimetria.data import normalize_case_rows, normalize_ledger_rows
from jurimetria.filters import DashboardFilters, PeriodFilter
from jurimetria.metrics_cases import compute_case_report
from jurimetria.metrics_ledger import compute_ledger_report
from jurimetria.models import Milestone


def test_ledger_report_payload(ledger_records):
    rows = normalize_ledger_rows(ledger_records)
    filters = DashboardFilters(period=PeriodFilter(start=date(2023, 2, 1)))
    report = compute_ledger_report(filters, rows, [Milestone(date(2023, 3, 20), "Mutirão")])
    assert report["periods"] == ["fev/23", "mar/23"]
    assert report["total_rows"] == 3
    assert report["flow"]["incoming"] == 90
    assert report["productivity"]["period_label"] == "mar/23"
    assert set(report["charts"]) == {"metric_trend", "flow", "composition", "heatmap"}
    assert report["charts"]["metric_trend"]["layer"]
    assert report["rows"][0]["Mês/Ano"] == "fev/23"


def test_ledger_report_empty_range(ledger_records):
    rows = normalize_ledger_rows(ledger_records)
    report = compute_ledger_report(DashboardFilters(period=PeriodFilter(start=date(2030, 1, 1))), rows)
    assert report["row_count"] == 0
    assert report["productivity"] is None
    assert report["flow"] is None
    assert report["charts"] == {}


def test_milestones_outside_the_range_are_not_drawn(ledger_records):
    rows = normalize_ledger_rows(ledger_records)
    placed = milestone_labels([Milestone(date(2023, 2, 14), "A"), Milestone(date(2025, 1, 1), "B")], rows)
    assert placed == [{"period_label": "fev/23", "description": "A"}]


def test_case_report_payload(case_records):
    cases = normalize_case_rows(case_records)
    report = compute_case_report(DashboardFilters(), cases)
    assert report["case_count"] == 2
    assert report["summary"]["total_cases"] == 2
    assert report["alert_counts"]["critical"] == 1
    assert report["alerts"][0]["id"].startswith("critical-excessive-duration-")
    assert report["cases"][0]["complexity"] in {"Low", "Medium", "High"}
    assert report["charts"]["duration_buckets"] is not None


def test_case_report_alert_search():
    cases = [make_case("AAA", concluded=130), make_case("BBB", concluded=70)]
    report = compute_case_report(DashboardFilters(), cases, q="bbb")
    assert [a["case_id"] for a in report["alerts"]] == ["BBB"]
    assert report["alert_counts"] == {"critical": 1, "high": 0, "medium": 1, "low": 0}
    only_medium = compute_case_report(DashboardFilters(), cases, severity="medium")
    assert [a["severity"] for a in only_medium["alerts"]] == ["medium"]
