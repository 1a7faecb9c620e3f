from __future__ import annotations

from datetime import date

import pytest

from conftest import make_case
from jurimetria.data import normalize_ledger_rows
from jurimetria.filters import (
    PeriodFilter,
    filter_by_period,
    normalize_filters,
    parse_boundary,
    preset_period,
)


@pytest.fixture()
def quarter():
    return normalize_ledger_rows([{"Mês/Ano": label} for label in ["jan/23", "fev/23", "mar/23"]])


def test_start_boundary_is_inclusive(quarter):
    kept = filter_by_period(quarter, start=parse_boundary("fev/23"))
    assert [r.period_label for r in kept] == ["fev/23", "mar/23"]


def test_end_boundary_is_inclusive(quarter):
    kept = filter_by_period(quarter, end=date(2023, 2, 1))
    assert [r.period_label for r in kept] == ["jan/23", "fev/23"]


def test_unbounded_keeps_everything_and_input_is_untouched(quarter):
    before = list(quarter)
    assert filter_by_period(quarter) == quarter
    assert filter_by_period(quarter, start=date(2030, 1, 1)) == []
    assert quarter == before


def test_filter_cases_by_filing_date():
    cases = [make_case("1", filed=date(2022, 12, 31)), make_case("2", filed=date(2023, 1, 1))]
    assert [c.case_id for c in filter_by_period(cases, start=date(2023, 1, 1))] == ["2"]


def test_parse_boundary_forms():
    assert parse_boundary("2023-02-01") == date(2023, 2, 1)
    assert parse_boundary("2023-02-01T10:00:00") == date(2023, 2, 1)
    assert parse_boundary("fev/23") == date(2023, 2, 1)
    assert parse_boundary(date(2023, 2, 1)) == date(2023, 2, 1)
    assert parse_boundary("") is None
    assert parse_boundary(None) is None
    assert parse_boundary("whenever") is None


def test_presets():
    today = date(2024, 3, 15)
    assert preset_period("last_month", today=today) == PeriodFilter(date(2024, 2, 1), date(2024, 2, 29))
    assert preset_period("last_quarter", today=today) == PeriodFilter(date(2023, 12, 1), today)
    assert preset_period("last_2_years", today=today) == PeriodFilter(date(2022, 3, 15), today)
    assert preset_period("all", today=today) == PeriodFilter()
    with pytest.raises(ValueError):
        preset_period("forever", today=today)


def test_all_preset_spans_the_ledger(quarter):
    assert preset_period("all", rows=quarter) == PeriodFilter(date(2023, 1, 1), date(2023, 3, 1))


def test_normalize_filters():
    f = normalize_filters({"start": "jan/23", "end": "2023-06-30", "selected_metrics": ["Baixados", "bogus"], "top_n": "500"})
    assert f.period == PeriodFilter(date(2023, 1, 1), date(2023, 6, 30))
    assert f.selected_metrics == ["Baixados"]
    assert f.top_n == 50

    defaults = normalize_filters({"top_n": "many"})
    assert defaults.period == PeriodFilter()
    assert defaults.selected_metrics == ["Conclusos", "Produtividade"]
    assert defaults.top_n == 5


def test_explicit_range_wins_over_preset(quarter):
    f = normalize_filters({"preset": "last_2_years", "start": "fev/23"}, rows=quarter)
    assert f.period == PeriodFilter(start=date(2023, 2, 1))
    assert normalize_filters({"preset": "bogus"}).period == PeriodFilter()
