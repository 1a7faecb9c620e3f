"""Key-value persistence for the two datasets and the last-updated stamp."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from jurimetria.config import CASES_DATASET_KEY, LAST_UPDATED_KEY, LEDGER_DATASET_KEY, PERIOD_COLUMN
from jurimetria.data import cases_to_records, ledger_to_records, normalize_case_rows, normalize_ledger_rows
from jurimetria.errors import JurimetriaError, StoreError
from jurimetria.models import CaseView, LedgerRow

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Whole-value get/set of JSON-serializable values."""

    def get(self, key: str) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value, ensure_ascii=False)
        with self._lock:
            self._data[key] = encoded


class SqliteKeyValueStore(KeyValueStore):
    """One ``kv`` table; values are stored as JSON text."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.ensure_schema()

    def get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def ensure_schema(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self.get_connection()
            try:
                with conn:
                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS kv (
                            key TEXT PRIMARY KEY,
                            value TEXT NOT NULL,
                            updated_at TEXT NOT NULL
                        )
                        """
                    )
            finally:
                conn.close()
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(f"could not open store at {self.db_path}: {exc}") from exc

    def get(self, key: str) -> Any:
        try:
            conn = self.get_connection()
            try:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StoreError(f"could not read '{key}': {exc}") from exc
        return None if row is None else json.loads(row["value"])

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value, ensure_ascii=False)
        try:
            conn = self.get_connection()
            try:
                with conn:
                    conn.execute(
                        "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                        (key, encoded, datetime.now(timezone.utc).isoformat()),
                    )
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StoreError(f"could not write '{key}': {exc}") from exc


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class DatasetRepository:
    """Save/load of the persisted datasets, keyed as the dashboard keys them."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def save(self, key: str, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        try:
            self.store.set(key, records)
            self.store.set(LAST_UPDATED_KEY, utc_now_iso())
        except Exception as exc:
            logger.exception("save of %s failed", key)
            return {"success": False, "error": str(exc)}
        logger.info("saved %d records to %s", len(records), key)
        return {"success": True}

    def load(self, key: str) -> List[Dict[str, Any]]:
        try:
            value = self.store.get(key)
        except Exception:
            logger.exception("load of %s failed", key)
            return []
        if not isinstance(value, list):
            return []
        return [r for r in value if isinstance(r, dict)]

    def save_ledger(self, rows: List[LedgerRow]) -> Dict[str, Any]:
        return self.save(LEDGER_DATASET_KEY, ledger_to_records(rows))

    def load_ledger(self) -> List[LedgerRow]:
        records = self.load(LEDGER_DATASET_KEY)
        if not records:
            return []
        try:
            return normalize_ledger_rows(records)
        except JurimetriaError:
            logger.exception("stored %s is unreadable", LEDGER_DATASET_KEY)
            return []

    def save_cases(self, cases: List[CaseView]) -> Dict[str, Any]:
        return self.save(CASES_DATASET_KEY, cases_to_records(cases))

    def load_cases(self) -> List[CaseView]:
        records = self.load(CASES_DATASET_KEY)
        if not records:
            return []
        try:
            return normalize_case_rows(records)
        except JurimetriaError:
            logger.exception("stored %s is unreadable", CASES_DATASET_KEY)
            return []

    def last_updated(self) -> Optional[str]:
        try:
            value = self.store.get(LAST_UPDATED_KEY)
        except Exception:
            logger.exception("load of %s failed", LAST_UPDATED_KEY)
            return None
        return value if isinstance(value, str) else None

    def get_update_info(self) -> Dict[str, Optional[str]]:
        """Timestamp of the last save and the persisted ledger's span, ``"jan/23 - dez/24"``."""
        records = self.load(LEDGER_DATASET_KEY)
        labels = [r.get(PERIOD_COLUMN) for r in records if r.get(PERIOD_COLUMN)]
        period = f"{labels[0]} - {labels[-1]}" if labels else None
        return {"timestamp": self.last_updated(), "period": period}


def make_store(path: Optional[str]) -> KeyValueStore:
    if not path or path == ":memory:":
        return InMemoryKeyValueStore()
    return SqliteKeyValueStore(path)
