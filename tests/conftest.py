"""Shared fixtures: raw spreadsheet-like rows and a state backed by memory."""

from __future__ import annotations

import io
import pathlib
import sys
from datetime import date
from typing import Any, Dict, List

import pandas as pd
import pytest

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from jurimetria.derived import derive_case  # noqa: E402
from jurimetria.models import CaseCore, CaseView  # noqa: E402
from jurimetria.state import AppState  # noqa: E402
from jurimetria.store import DatasetRepository, InMemoryKeyValueStore  # noqa: E402


def make_case(
    case_id: str = "0001",
    *,
    events: int = 10,
    days: int = 100,
    concluded: int = 0,
    procedure: str = "Conhecimento",
    case_class: str = "Procedimento Comum",
    subject: str = "Obrigações",
    conclusion: str = "Despacho",
    filed: date = date(2023, 1, 10),
) -> CaseView:
    return derive_case(
        CaseCore(
            case_id=case_id,
            event_count=events,
            procedure_type=procedure,
            case_class=case_class,
            subject=subject,
            conclusion_type=conclusion,
            days_concluded=concluded,
            filed_date=filed,
            days_in_progress=days,
        )
    )


def to_xlsx(records: List[Dict[str, Any]]) -> bytes:
    buf = io.BytesIO()
    pd.DataFrame(records).to_excel(buf, index=False)
    return buf.getvalue()


@pytest.fixture()
def ledger_records() -> List[Dict[str, Any]]:
    return [
        {"Mês/Ano": "mar/23", "Conclusos": 30, "Produtividade": 130, "Entrada - Total": 50, "Baixados": 40, "Acervo total": 1000},
        {"Mês/Ano": "jan/23", "Conclusos": 10, "Produtividade": 100, "Entrada - Total": 60, "Baixados": 30, "Acervo total": 980},
        {"Mês/Ano": "fev/23", "Conclusos": "20", "Produtividade": "100", "Entrada - Total": "40", "Baixados": "50", "Acervo total": "990"},
    ]


@pytest.fixture()
def case_records() -> List[Dict[str, Any]]:
    return [
        {
            "Processo": "5000001-10.2019.8.24.0001",
            "Eventos": 60,
            "Procedimento": "Conhecimento",
            "Classe": "Procedimento Comum",
            "Assunto": "Obrigações",
            "Tipo de Conclusão": "Sentença",
            "Dias Conclusos": 10,
            "Autuação": "15/03/2019",
            "Dias em Tramitação": 2000,
        },
        {
            "Processo": "5000002-10.2023.8.24.0001",
            "Eventos": "12",
            "Procedimento": "Execução Judicial",
            "Classe": "Cumprimento de Sentença",
            "Assunto": "Alimentos",
            "Tipo de Conclusão": "Despacho",
            "Dias Conclusos": "75",
            "Autuação": "02/05/2023",
            "Dias em Tramitação": "200",
        },
        {
            "Processo": "",
            "Eventos": 3,
            "Autuação": "01/01/2023",
            "Dias em Tramitação": 10,
        },
    ]


@pytest.fixture()
def repository() -> DatasetRepository:
    return DatasetRepository(InMemoryKeyValueStore())


@pytest.fixture()
def state(repository: DatasetRepository) -> AppState:
    return AppState(repository)
