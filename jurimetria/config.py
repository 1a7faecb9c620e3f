from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


DATA_DIR = Path(__file__).resolve().parents[1]

# Dataset keys in the key-value store.
LEDGER_DATASET_KEY = "relatorio-padrao-data"
CASES_DATASET_KEY = "jurimetria-data"
LAST_UPDATED_KEY = "last-updated"

PERIOD_COLUMN = "Mês/Ano"

LEDGER_COLUMNS = [
    PERIOD_COLUMN,
    "Acervo total",
    "Acervo em andamento",
    "Conclusos",
    "Conclusos - 100 dias",
    "Conclusos + 365",
    "Entradas - Casos novos",
    "Entradas - Outras",
    "Entrada - Total",
    "Enviados Conclusos",
    "Produtividade",
    "Baixados",
]
LEDGER_METRICS = [c for c in LEDGER_COLUMNS if c != PERIOD_COLUMN]

PRODUCTIVITY_METRIC = "Produtividade"
INCOMING_METRIC = "Entrada - Total"
RESOLVED_METRIC = "Baixados"

KPI_METRICS = ["Conclusos", "Entrada - Total", "Enviados Conclusos", "Produtividade", "Acervo total", "Baixados"]
REPORT_STATS_METRICS = ["Conclusos", "Produtividade", "Entrada - Total", "Baixados", "Acervo total"]
DEFAULT_SELECTED_METRICS = ["Conclusos", "Produtividade"]

# Slices of the caseload shown for the last period, as (label, source column).
COMPOSITION_SLICES = [
    ("Em Andamento", "Acervo em andamento"),
    ("Conclusos", "Conclusos"),
    ("Conclusos -100 dias", "Conclusos - 100 dias"),
    ("Conclusos +365 dias", "Conclusos + 365"),
]

METRIC_COLORS: Dict[str, str] = {
    "Acervo total": "#8884d8",
    "Produtividade": "#82ca9d",
    "Baixados": "#ffc658",
    "Conclusos": "#ff8042",
    "Entrada - Total": "#0088FE",
    "Acervo em andamento": "#AB63FA",
    "Conclusos - 100 dias": "#FFA500",
    "Conclusos + 365": "#EF553B",
    "Entradas - Casos novos": "#19D3F3",
    "Entradas - Outras": "#FF6692",
    "Enviados Conclusos": "#4CAF50",
}

MONTH_ABBREVIATIONS = ["jan", "fev", "mar", "abr", "mai", "jun", "jul", "ago", "set", "out", "nov", "dez"]
MONTH_INDEX: Dict[str, int] = {abbr: idx for idx, abbr in enumerate(MONTH_ABBREVIATIONS)}

# Case spreadsheet headers.
CASE_COLUMNS = {
    "Processo": "case_id",
    "Eventos": "event_count",
    "Procedimento": "procedure_type",
    "Classe": "case_class",
    "Assunto": "subject",
    "Tipo de Conclusão": "conclusion_type",
    "Dias Conclusos": "days_concluded",
    "Autuação": "filed_date",
    "Dias em Tramitação": "days_in_progress",
}
CASE_ID_COLUMN = "Processo"
FILED_DATE_COLUMN = "Autuação"

PLACEHOLDER_UNSPECIFIED = "Não especificado"
PLACEHOLDER_UNSPECIFIED_FEM = "Não especificada"
STRING_PLACEHOLDERS = {
    "procedure_type": PLACEHOLDER_UNSPECIFIED,
    "case_class": PLACEHOLDER_UNSPECIFIED_FEM,
    "subject": PLACEHOLDER_UNSPECIFIED,
    "conclusion_type": PLACEHOLDER_UNSPECIFIED,
}

PROCEDURE_KNOWLEDGE = "Conhecimento"
PROCEDURE_ENFORCEMENT = "Execução Judicial"

DEFAULT_TOP_N = 5
EXPORT_PERIODS = 12
DEFAULT_MILESTONES = [("2024-10-01", "Nova Gestão"), ("2025-01-27", "HomeOffice")]


class Settings(BaseSettings):
    """Runtime settings read from the environment (prefix ``JURIMETRIA_``)."""

    app_password: Optional[str] = Field(default=None)
    store_path: str = Field(default=str(DATA_DIR / "jurimetria.db"))
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"])
    log_level: str = Field(default="INFO")

    model_config = {
        "env_prefix": "JURIMETRIA_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
