"""Application state: the active datasets, milestones and colors, with one owner.

Every mutation goes through ``AppState`` so derived views are always rebuilt
from the current rows. Loads and saves of the same dataset never overlap: a
second one while the first is running raises ``DatasetBusyError``.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from jurimetria.config import (
    CASES_DATASET_KEY,
    DEFAULT_MILESTONES,
    LEDGER_DATASET_KEY,
    LEDGER_METRICS,
    METRIC_COLORS,
    PERIOD_COLUMN,
)
from jurimetria.data import (
    coerce_number,
    normalize_case_rows,
    normalize_ledger_rows,
    parse_pasted_table,
    parse_period_label,
    period_label_for,
    read_spreadsheet,
)
from jurimetria.errors import DatasetBusyError, InvalidEditError, NoValidRowsError
from jurimetria.export import export_filename, render_report
from jurimetria.filters import DashboardFilters, filter_by_period, normalize_filters, parse_boundary
from jurimetria.metrics_cases import compute_case_report
from jurimetria.metrics_ledger import compute_ledger_report
from jurimetria.models import CaseView, LedgerRow, Milestone
from jurimetria.store import DatasetRepository

logger = logging.getLogger(__name__)


def default_milestones() -> List[Milestone]:
    return [Milestone(date=date.fromisoformat(d), description=text) for d, text in DEFAULT_MILESTONES]


def _next_month(value: date) -> date:
    return date(value.year + 1, 1, 1) if value.month == 12 else date(value.year, value.month + 1, 1)


class AppState:
    def __init__(self, repository: DatasetRepository):
        self.repository = repository
        self.ledger: List[LedgerRow] = []
        self.cases: List[CaseView] = []
        self.milestones: List[Milestone] = default_milestones()
        self.colors: Dict[str, str] = dict(METRIC_COLORS)
        self._mutex = threading.RLock()
        self._flights = {LEDGER_DATASET_KEY: threading.Lock(), CASES_DATASET_KEY: threading.Lock()}

    @contextmanager
    def single_flight(self, key: str) -> Iterator[None]:
        lock = self._flights[key]
        if not lock.acquire(blocking=False):
            raise DatasetBusyError(f"Já existe uma operação em andamento para '{key}'.")
        try:
            yield
        finally:
            lock.release()

    # ---------------- Ledger ----------------
    def _install_ledger(self, rows: List[LedgerRow], source: str) -> List[LedgerRow]:
        if not rows:
            raise NoValidRowsError("Nenhuma linha pôde ser processada. Verifique a coluna 'Mês/Ano'.")
        with self._mutex:
            self.ledger = rows
        logger.info("installed %d ledger rows from %s", len(rows), source)
        return rows

    def load_ledger_rows(self, raw_rows: Sequence[Mapping[str, Any]], *, source: str = "rows") -> List[LedgerRow]:
        with self.single_flight(LEDGER_DATASET_KEY):
            return self._install_ledger(normalize_ledger_rows(raw_rows), source)

    def load_ledger_upload(self, content: bytes, filename: str) -> List[LedgerRow]:
        with self.single_flight(LEDGER_DATASET_KEY):
            raw = read_spreadsheet(content, filename)
            return self._install_ledger(normalize_ledger_rows(raw), filename)

    def load_ledger_paste(self, text: str) -> List[LedgerRow]:
        with self.single_flight(LEDGER_DATASET_KEY):
            return self._install_ledger(normalize_ledger_rows(parse_pasted_table(text)), "pasted table")

    def load_ledger_from_store(self) -> List[LedgerRow]:
        """Replace the ledger with the persisted one; an empty store leaves it untouched."""
        with self.single_flight(LEDGER_DATASET_KEY):
            rows = self.repository.load_ledger()
            if rows:
                self._install_ledger(rows, "store")
            return rows

    def save_ledger(self) -> Dict[str, Any]:
        with self.single_flight(LEDGER_DATASET_KEY):
            with self._mutex:
                rows = list(self.ledger)
            return self.repository.save_ledger(rows)

    def _row(self, index: int) -> LedgerRow:
        if not 0 <= index < len(self.ledger):
            raise InvalidEditError(f"Linha {index} não existe.")
        return self.ledger[index]

    def _check_unique(self, label: str, skip: Optional[LedgerRow] = None) -> None:
        if any(r.period_label == label and r is not skip for r in self.ledger):
            raise InvalidEditError(f"O período '{label}' já existe.")

    def edit_cell(self, index: int, column: str, value: Any) -> LedgerRow:
        """Set one cell; editing the period re-sorts the ledger."""
        with self._mutex:
            row = self._row(index)
            if column == PERIOD_COLUMN:
                parsed = parse_period_label(value)
                if parsed is None:
                    raise InvalidEditError(f"Período inválido: '{value}'.")
                self._check_unique(parsed[0], skip=row)
                row.period_label, row.period_date = parsed
                self.ledger.sort(key=lambda r: r.period_date)
            elif column in LEDGER_METRICS:
                row.metrics[column] = coerce_number(value)
            else:
                raise InvalidEditError(f"Coluna desconhecida: '{column}'.")
            return row

    def append_row(self, values: Optional[Mapping[str, Any]] = None) -> LedgerRow:
        """Add a period; without a label it follows the last one (or is the current month)."""
        values = dict(values or {})
        with self._mutex:
            label_value = values.pop(PERIOD_COLUMN, None)
            if label_value:
                parsed = parse_period_label(label_value)
                if parsed is None:
                    raise InvalidEditError(f"Período inválido: '{label_value}'.")
                label, period_date = parsed
            else:
                base = _next_month(self.ledger[-1].period_date) if self.ledger else date.today().replace(day=1)
                label, period_date = period_label_for(base), base
            self._check_unique(label)
            unknown = [k for k in values if k not in LEDGER_METRICS]
            if unknown:
                raise InvalidEditError(f"Coluna desconhecida: '{unknown[0]}'.")
            metrics = {m: coerce_number(values.get(m)) for m in LEDGER_METRICS}
            row = LedgerRow(period_label=label, period_date=period_date, metrics=metrics)
            self.ledger.append(row)
            self.ledger.sort(key=lambda r: r.period_date)
            return row

    # ---------------- Cases ----------------
    def _install_cases(self, cases: List[CaseView], source: str) -> List[CaseView]:
        if not cases:
            raise NoValidRowsError("Nenhum processo pôde ser processado. Verifique a coluna 'Processo'.")
        with self._mutex:
            self.cases = cases
        logger.info("installed %d cases from %s", len(cases), source)
        return cases

    def load_case_rows(self, raw_rows: Sequence[Mapping[str, Any]], *, source: str = "rows") -> List[CaseView]:
        with self.single_flight(CASES_DATASET_KEY):
            return self._install_cases(normalize_case_rows(raw_rows), source)

    def load_cases_upload(self, content: bytes, filename: str) -> List[CaseView]:
        with self.single_flight(CASES_DATASET_KEY):
            raw = read_spreadsheet(content, filename)
            return self._install_cases(normalize_case_rows(raw), filename)

    def load_cases_from_store(self) -> List[CaseView]:
        with self.single_flight(CASES_DATASET_KEY):
            cases = self.repository.load_cases()
            if cases:
                self._install_cases(cases, "store")
            return cases

    def save_cases(self) -> Dict[str, Any]:
        with self.single_flight(CASES_DATASET_KEY):
            with self._mutex:
                cases = list(self.cases)
            return self.repository.save_cases(cases)

    # ---------------- Milestones and colors ----------------
    def add_milestone(self, when: Any, description: str) -> Milestone:
        parsed = parse_boundary(when)
        text = (description or "").strip()
        if parsed is None or not text:
            raise InvalidEditError("Marco precisa de data e descrição.")
        milestone = Milestone(date=parsed, description=text)
        with self._mutex:
            self.milestones.append(milestone)
            self.milestones.sort(key=lambda m: m.date)
        return milestone

    def delete_milestone(self, index: int) -> Milestone:
        with self._mutex:
            if not 0 <= index < len(self.milestones):
                raise InvalidEditError(f"Marco {index} não existe.")
            return self.milestones.pop(index)

    def set_metric_color(self, metric: str, color: str) -> None:
        if metric not in LEDGER_METRICS:
            raise InvalidEditError(f"Coluna desconhecida: '{metric}'.")
        with self._mutex:
            self.colors[metric] = color

    # ---------------- Views ----------------
    def snapshot_ledger(self) -> List[LedgerRow]:
        """Copies of the ledger rows, safe to read while edits continue."""
        with self._mutex:
            return [replace(r, metrics=dict(r.metrics)) for r in self.ledger]

    def ledger_filters(self, raw: Mapping[str, Any]) -> DashboardFilters:
        return normalize_filters(dict(raw), rows=self.ledger)

    def case_filters(self, raw: Mapping[str, Any]) -> DashboardFilters:
        return normalize_filters(dict(raw))

    def ledger_report(self, raw_filters: Mapping[str, Any]) -> Dict[str, Any]:
        with self._mutex:
            rows = self.snapshot_ledger()
            milestones = list(self.milestones)
            colors = dict(self.colors)
        return compute_ledger_report(self.ledger_filters(raw_filters), rows, milestones, colors=colors)

    def case_report(self, raw_filters: Mapping[str, Any], *, severity: str = "All", q: str = "") -> Dict[str, Any]:
        with self._mutex:
            cases = list(self.cases)
        return compute_case_report(self.case_filters(raw_filters), cases, severity=severity, q=q)

    def export_report(self, raw_filters: Mapping[str, Any]) -> Dict[str, str]:
        filters = self.ledger_filters(raw_filters)
        rows = filter_by_period(self.snapshot_ledger(), filters.period.start, filters.period.end)
        return {"filename": export_filename(), "html": render_report(rows, filters.period)}
