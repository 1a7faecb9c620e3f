from __future__ import annotations

import io
import math
from datetime import date, datetime

import pandas as pd
import pytest

from conftest import to_xlsx
from jurimetria.data import (
    cases_to_records,
    coerce_number,
    detect_row_shape,
    ledger_to_records,
    normalize_case_rows,
    normalize_ledger_rows,
    parse_filed_date,
    parse_pasted_table,
    parse_period_label,
    read_spreadsheet,
)
from jurimetria.errors import RowShapeError, SpreadsheetReadError


# ---------------------------------------------------------------------------
# Cell coercion
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12,5", 12.5),
        ("1.234,5", 0.0),
        ("1.5", 1.5),
        (" R$ 300 ", 300.0),
        ("-7", -7.0),
        ("abc", 0.0),
        ("", 0.0),
        (None, 0.0),
        (float("nan"), 0.0),
        (42, 42.0),
        (3.25, 3.25),
    ],
)
def test_coerce_number(raw, expected):
    out = coerce_number(raw)
    assert not math.isnan(out)
    assert out == pytest.approx(expected)


def test_parse_period_label_variants():
    assert parse_period_label("jan/23") == ("jan/23", date(2023, 1, 1))
    assert parse_period_label(" FEV/23 ") == ("fev/23", date(2023, 2, 1))
    assert parse_period_label("Dezembro/2024") == ("dez/24", date(2024, 12, 1))
    assert parse_period_label(datetime(2023, 5, 17)) == ("mai/23", date(2023, 5, 1))


@pytest.mark.parametrize("raw", ["xyz/23", "jan/ab", "jan23", "", None, "nan"])
def test_parse_period_label_rejects(raw):
    assert parse_period_label(raw) is None


def test_parse_filed_date():
    assert parse_filed_date("15/03/2021") == date(2021, 3, 15)
    assert parse_filed_date("2021-03-15") == date(2021, 3, 15)
    assert parse_filed_date(datetime(2021, 3, 15, 10, 30)) == date(2021, 3, 15)
    assert parse_filed_date(None) == date(1970, 1, 1)
    assert parse_filed_date("31/02/2021") is None


# ---------------------------------------------------------------------------
# Ledger rows
# ---------------------------------------------------------------------------


def test_normalize_ledger_rows_sorts_and_coerces(ledger_records):
    rows = normalize_ledger_rows(ledger_records)
    assert [r.period_label for r in rows] == ["jan/23", "fev/23", "mar/23"]
    assert rows[1].value("Conclusos") == 20.0
    # Columns absent from the upload still exist, as zero.
    assert rows[0].value("Enviados Conclusos") == 0.0
    assert set(rows[0].metrics) == set(rows[2].metrics)


def test_malformed_period_row_is_dropped(ledger_records):
    rows = normalize_ledger_rows(ledger_records + [{"Mês/Ano": "xyz/23", "Conclusos": 99}])
    assert len(rows) == 3
    assert all(r.value("Conclusos") != 99 for r in rows)


def test_repeated_period_keeps_later_row():
    rows = normalize_ledger_rows([{"Mês/Ano": "jan/23", "Conclusos": 1}, {"Mês/Ano": "JAN/23", "Conclusos": 2}])
    assert len(rows) == 1
    assert rows[0].value("Conclusos") == 2


def test_ledger_records_strip_the_date(ledger_records):
    records = ledger_to_records(normalize_ledger_rows(ledger_records))
    assert records[0]["Mês/Ano"] == "jan/23"
    assert records[0]["Conclusos"] == 10
    assert "period_date" not in records[0]


# ---------------------------------------------------------------------------
# Case rows
# ---------------------------------------------------------------------------


def test_normalize_case_rows(case_records):
    cases = normalize_case_rows(case_records)
    assert [c.case_id for c in cases] == ["5000001-10.2019.8.24.0001", "5000002-10.2023.8.24.0001"]
    second = cases[1]
    assert second.core.event_count == 12
    assert second.core.days_concluded == 75
    assert second.core.filed_date == date(2023, 5, 2)
    assert second.filed_month_key == "2023-05"
    assert second.filed_year == 2023


def test_case_placeholders_and_epoch_default():
    cases = normalize_case_rows([{"Processo": "123", "Eventos": None}])
    core = cases[0].core
    assert core.procedure_type == "Não especificado"
    assert core.case_class == "Não especificada"
    assert core.subject == "Não especificado"
    assert core.conclusion_type == "Não especificado"
    assert core.filed_date == date(1970, 1, 1)
    assert core.event_count == 0


def test_case_with_unreadable_filing_date_is_dropped():
    cases = normalize_case_rows([{"Processo": "1", "Autuação": "ontem"}, {"Processo": "2", "Autuação": "01/02/2020"}])
    assert [c.case_id for c in cases] == ["2"]


def test_case_records_round_trip(case_records):
    cases = normalize_case_rows(case_records)
    again = normalize_case_rows(cases_to_records(cases))
    assert [c.core for c in again] == [c.core for c in cases]
    assert again == cases


def test_row_shape_is_checked(ledger_records, case_records):
    assert detect_row_shape(ledger_records) == "ledger"
    assert detect_row_shape(case_records) == "case"
    with pytest.raises(RowShapeError):
        detect_row_shape([{"Foo": 1}])
    with pytest.raises(RowShapeError):
        normalize_ledger_rows(case_records)
    with pytest.raises(RowShapeError):
        normalize_case_rows(ledger_records)


# ---------------------------------------------------------------------------
# Spreadsheet input
# ---------------------------------------------------------------------------


def test_read_xlsx(ledger_records):
    raw = read_spreadsheet(to_xlsx(ledger_records), "relatorio.xlsx")
    rows = normalize_ledger_rows(raw)
    assert [r.period_label for r in rows] == ["jan/23", "fev/23", "mar/23"]
    assert rows[2].value("Produtividade") == 130


def test_read_xlsx_with_title_rows_above_header():
    buf = io.BytesIO()
    frame = pd.DataFrame(
        [
            ["Relatório da Vara", None],
            ["Mês/Ano", "Conclusos"],
            ["jan/24", 5],
        ]
    )
    frame.to_excel(buf, index=False, header=False)
    rows = normalize_ledger_rows(read_spreadsheet(buf.getvalue(), "vara.xlsx"))
    assert [(r.period_label, r.value("Conclusos")) for r in rows] == [("jan/24", 5.0)]


def test_read_xlsx_cases_with_date_cells():
    content = to_xlsx([{"Processo": "77", "Eventos": 4, "Autuação": datetime(2022, 8, 9), "Dias em Tramitação": 30}])
    cases = normalize_case_rows(read_spreadsheet(content, "processos.xlsx"))
    assert cases[0].core.filed_date == date(2022, 8, 9)


def test_read_csv():
    content = "Mês/Ano,Conclusos,Produtividade\njan/23,10,20\nfev/23,11,21\n".encode("utf-8")
    rows = normalize_ledger_rows(read_spreadsheet(content, "dados.csv"))
    assert [r.value("Produtividade") for r in rows] == [20.0, 21.0]


def test_unreadable_file_fails_as_a_whole():
    with pytest.raises(SpreadsheetReadError) as excinfo:
        read_spreadsheet(b"definitely not a workbook", "dados.xlsx")
    assert "Não foi possível ler o arquivo" in str(excinfo.value)


def test_parse_pasted_table():
    text = "Mês/Ano\tConclusos\tProdutividade\njan/23\t10\t1,5\n\nfev/23\t11\n"
    raw = parse_pasted_table(text)
    assert raw == [
        {"Mês/Ano": "jan/23", "Conclusos": "10", "Produtividade": "1,5"},
        {"Mês/Ano": "fev/23", "Conclusos": "11", "Produtividade": None},
    ]
    rows = normalize_ledger_rows(raw)
    assert rows[0].value("Produtividade") == 1.5
    assert parse_pasted_table("   ") == []
