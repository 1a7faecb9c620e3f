from __future__ import annotations

import io
import logging
import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from pathlib import PurePath
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from jurimetria.config import (
    CASE_COLUMNS,
    CASE_ID_COLUMN,
    FILED_DATE_COLUMN,
    LEDGER_COLUMNS,
    MONTH_ABBREVIATIONS,
    MONTH_INDEX,
    PERIOD_COLUMN,
    STRING_PLACEHOLDERS,
)
from jurimetria.derived import derive_case
from jurimetria.errors import RowShapeError, SpreadsheetReadError
from jurimetria.models import CaseCore, CaseView, LedgerRow


logger = logging.getLogger(__name__)

RawRow = Mapping[str, Any]

EPOCH = date(1970, 1, 1)
HEADER_SEARCH_ROWS = 25
NA_TOKENS = {"nan", "none", "null", "<na>", "nat"}

_NUMERIC_JUNK = re.compile(r"[^0-9.,-]+")
_YEAR_TOKEN = re.compile(r"\d{1,4}")


# ---------------- Cell helpers ----------------
def is_missing(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip() or value.strip().lower() in NA_TOKENS
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def coerce_number(value: object) -> float:
    """Coerce a spreadsheet cell to a float; anything unreadable becomes 0.

    Text keeps only digits, ``.``, ``,`` and ``-``; the Brazilian decimal comma
    becomes a dot, first comma only. Text that still fails to parse becomes 0.
    """
    if value is None or isinstance(value, (date, datetime)):
        return 0.0
    if isinstance(value, str):
        s = _NUMERIC_JUNK.sub("", value)
        s = s.replace(",", ".", 1)
        try:
            out = float(s)
        except ValueError:
            return 0.0
    else:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0.0
    if math.isnan(out) or math.isinf(out):
        return 0.0
    return out


def coerce_int(value: object) -> int:
    return int(coerce_number(value))


def plain_number(value: float) -> float | int:
    """Integral floats as ints, for compact persisted records."""
    return int(value) if float(value).is_integer() else float(value)


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def clean_text(value: object, default: str) -> str:
    if is_missing(value):
        return default
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def as_date(value: object) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


# ---------------- Period labels ----------------
def period_label_for(value: date) -> str:
    return f"{MONTH_ABBREVIATIONS[value.month - 1]}/{value.year % 100:02d}"


def parse_period_label(value: object) -> Optional[Tuple[str, date]]:
    """Parse ``"jan/23"``-style labels into ``(canonical label, first of month)``.

    The month is matched on its first three letters against the Portuguese
    table; a two-digit year means ``20YY``. Returns None for anything else.
    """
    if is_missing(value):
        return None
    cell_date = as_date(value)
    if cell_date is not None:
        return period_label_for(cell_date), date(cell_date.year, cell_date.month, 1)
    month_token, sep, year_token = str(value).strip().lower().partition("/")
    if not sep:
        return None
    month = MONTH_INDEX.get(month_token.strip()[:3])
    year_token = year_token.strip()
    if month is None or not _YEAR_TOKEN.fullmatch(year_token):
        return None
    year = 2000 + int(year_token) if len(year_token) == 2 else int(year_token)
    if year < 1:
        return None
    first_of_month = date(year, month + 1, 1)
    return period_label_for(first_of_month), first_of_month


def parse_filed_date(value: object) -> Optional[date]:
    """Filing date from a date cell, ``dd/MM/yyyy`` or ISO text; missing means 1970-01-01."""
    if is_missing(value):
        return EPOCH
    cell_date = as_date(value)
    if cell_date is not None:
        return cell_date
    text = str(value).strip()
    for fmt in ("%d/%m/%Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    return None


# ---------------- Row shapes ----------------
def _headers(rows: Sequence[RawRow]) -> set:
    headers: set = set()
    for row in rows:
        headers.update(str(k).strip() for k in row.keys())
    return headers


def detect_row_shape(rows: Sequence[RawRow]) -> str:
    """Classify a batch of raw rows as ``"ledger"`` or ``"case"``."""
    headers = _headers(rows)
    if PERIOD_COLUMN in headers:
        return "ledger"
    if CASE_ID_COLUMN in headers:
        return "case"
    raise RowShapeError(
        f"Cabeçalho não reconhecido: esperava a coluna '{PERIOD_COLUMN}' ou '{CASE_ID_COLUMN}'."
    )


def _require_shape(rows: Sequence[RawRow], expected: str) -> None:
    if rows and detect_row_shape(rows) != expected:
        raise RowShapeError(f"As linhas enviadas não correspondem ao conjunto '{expected}'.")


def _strip_keys(row: RawRow) -> Dict[str, Any]:
    return {str(k).strip(): v for k, v in row.items()}


# ---------------- Normalizers ----------------
def normalize_ledger_row(row: RawRow, numeric_columns: Sequence[str]) -> Optional[LedgerRow]:
    row = _strip_keys(row)
    parsed = parse_period_label(row.get(PERIOD_COLUMN))
    if parsed is None:
        return None
    label, period_date = parsed
    metrics = {col: coerce_number(row.get(col)) for col in numeric_columns}
    return LedgerRow(period_label=label, period_date=period_date, metrics=metrics)


def normalize_ledger_rows(
    rows: Sequence[RawRow], expected_columns: Sequence[str] = LEDGER_COLUMNS
) -> List[LedgerRow]:
    """Typed, chronologically sorted ledger rows; rows with a bad period are skipped."""
    _require_shape(rows, "ledger")
    numeric_columns = [c for c in expected_columns if c != PERIOD_COLUMN]
    by_label: Dict[str, LedgerRow] = {}
    dropped = 0
    for row in rows:
        parsed = normalize_ledger_row(row, numeric_columns)
        if parsed is None:
            dropped += 1
            logger.debug("dropping ledger row with period %r", row.get(PERIOD_COLUMN))
            continue
        if parsed.period_label in by_label:
            logger.debug("period %s repeated; keeping the later row", parsed.period_label)
            del by_label[parsed.period_label]
        by_label[parsed.period_label] = parsed
    if dropped:
        logger.info("skipped %d ledger rows with an unreadable '%s'", dropped, PERIOD_COLUMN)
    return sorted(by_label.values(), key=lambda r: r.period_date)


def normalize_case_core(row: RawRow) -> Optional[CaseCore]:
    row = _strip_keys(row)
    case_id = clean_text(row.get(CASE_ID_COLUMN), "")
    if not case_id:
        return None
    filed_date = parse_filed_date(row.get(FILED_DATE_COLUMN))
    if filed_date is None:
        return None
    fields: Dict[str, Any] = {"case_id": case_id, "filed_date": filed_date}
    for header, name in CASE_COLUMNS.items():
        if name in fields:
            continue
        if name in STRING_PLACEHOLDERS:
            fields[name] = clean_text(row.get(header), STRING_PLACEHOLDERS[name])
        else:
            fields[name] = max(0, coerce_int(row.get(header)))
    return CaseCore(**fields)


def normalize_case_cores(rows: Sequence[RawRow]) -> List[CaseCore]:
    _require_shape(rows, "case")
    cores: List[CaseCore] = []
    dropped = 0
    for row in rows:
        core = normalize_case_core(row)
        if core is None:
            dropped += 1
            continue
        cores.append(core)
    if dropped:
        logger.info("skipped %d case rows without an id or with an unreadable filing date", dropped)
    return cores


def normalize_case_rows(rows: Sequence[RawRow]) -> List[CaseView]:
    """Typed case records with derived metrics attached."""
    return [derive_case(core) for core in normalize_case_cores(rows)]


# ---------------- Persisted forms ----------------
def ledger_to_records(rows: Iterable[LedgerRow]) -> List[Dict[str, Any]]:
    """Flat records keyed by column header; the period date is left out."""
    records: List[Dict[str, Any]] = []
    for row in rows:
        record: Dict[str, Any] = {PERIOD_COLUMN: row.period_label}
        for metric, value in row.metrics.items():
            record[metric] = plain_number(value)
        records.append(record)
    return records


def cases_to_records(cases: Iterable[CaseCore | CaseView]) -> List[Dict[str, Any]]:
    """Flat records of the persisted case fields only."""
    records: List[Dict[str, Any]] = []
    for case in cases:
        core = case.core if isinstance(case, CaseView) else case
        record: Dict[str, Any] = {}
        for header, name in CASE_COLUMNS.items():
            value = getattr(core, name)
            record[header] = value.isoformat() if isinstance(value, date) else value
        records.append(record)
    return records


# ---------------- Spreadsheet input ----------------
def frame_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    df = df.loc[:, ~df.columns.duplicated()].copy()
    df.columns = [str(c).strip() for c in df.columns]
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def find_header_row(df: pd.DataFrame, keywords: Iterable[str], search_rows: int = HEADER_SEARCH_ROWS) -> Optional[int]:
    lowered = [k.lower() for k in keywords]
    for idx in range(min(search_rows, len(df))):
        row = df.iloc[idx].astype(str).str.strip().str.lower().tolist()
        if any(k in row for k in lowered):
            return idx
    return None


def _read_excel(content: bytes, header_keywords: Sequence[str]) -> pd.DataFrame:
    df = pd.read_excel(io.BytesIO(content), sheet_name=0)
    if not header_keywords or any(str(c).strip() in header_keywords for c in df.columns):
        return df
    raw = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None)
    header_row = find_header_row(raw, header_keywords)
    if header_row is None:
        return df
    return pd.read_excel(io.BytesIO(content), sheet_name=0, header=header_row)


def read_spreadsheet(
    content: bytes, filename: str, *, header_keywords: Sequence[str] = (PERIOD_COLUMN, CASE_ID_COLUMN)
) -> List[Dict[str, Any]]:
    """Rows of the first sheet (or the CSV) keyed by column header.

    Any failure while reading the file aborts the whole upload.
    """
    suffix = PurePath(filename or "").suffix.lower()
    try:
        if suffix == ".csv":
            df = pd.read_csv(io.BytesIO(content), dtype=str, encoding="utf-8-sig", sep=None, engine="python")
        else:
            df = _read_excel(content, header_keywords)
        return frame_to_rows(df)
    except Exception as exc:
        logger.exception("could not read spreadsheet %s", filename)
        raise SpreadsheetReadError(
            "Não foi possível ler o arquivo. Verifique o formato e as colunas do arquivo."
        ) from exc


def parse_pasted_table(text: str) -> List[Dict[str, Optional[str]]]:
    """Rows from cells copied out of a spreadsheet: tab-separated, header line first."""
    lines = [line for line in (text or "").strip().splitlines() if line.strip()]
    if not lines:
        return []
    header = [h.strip() for h in lines[0].split("\t")]
    rows: List[Dict[str, Optional[str]]] = []
    for line in lines[1:]:
        values = line.split("\t")
        rows.append({key: (values[idx] if idx < len(values) else None) for idx, key in enumerate(header)})
    return rows
