from __future__ import annotations

from datetime import datetime

import pytest

from jurimetria.config import CASES_DATASET_KEY, LAST_UPDATED_KEY, LEDGER_DATASET_KEY
from jurimetria.data import normalize_case_rows, normalize_ledger_rows
from jurimetria.errors import StoreError
from jurimetria.store import DatasetRepository, InMemoryKeyValueStore, SqliteKeyValueStore, make_store


class BrokenStore(InMemoryKeyValueStore):
    def get(self, key):
        raise StoreError("connection refused")

    def set(self, key, value):
        raise StoreError("connection refused")


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path) -> DatasetRepository:
    if request.param == "memory":
        return DatasetRepository(InMemoryKeyValueStore())
    return DatasetRepository(SqliteKeyValueStore(str(tmp_path / "kv.db")))


def test_load_missing_key_is_empty(repo):
    assert repo.load(LEDGER_DATASET_KEY) == []
    assert repo.load_cases() == []
    assert repo.get_update_info() == {"timestamp": None, "period": None}


def test_case_round_trip_preserves_core_fields(repo, case_records):
    cases = normalize_case_rows(case_records)
    assert repo.save_cases(cases) == {"success": True}
    loaded = repo.load_cases()
    assert [c.core for c in loaded] == [c.core for c in cases]
    assert [c.complexity for c in loaded] == [c.complexity for c in cases]


def test_ledger_round_trip_and_update_info(repo, ledger_records):
    rows = normalize_ledger_rows(ledger_records)
    assert repo.save_ledger(rows)["success"] is True
    assert repo.load_ledger() == rows
    stored = repo.load(LEDGER_DATASET_KEY)
    assert "period_date" not in stored[0]
    info = repo.get_update_info()
    assert info["period"] == "jan/23 - mar/23"
    assert datetime.fromisoformat(info["timestamp"].replace("Z", "+00:00")).tzinfo is not None


def test_save_stamps_last_updated(repo):
    repo.save(CASES_DATASET_KEY, [])
    assert isinstance(repo.store.get(LAST_UPDATED_KEY), str)


def test_sqlite_survives_reopen(tmp_path, ledger_records):
    path = str(tmp_path / "nested" / "kv.db")
    DatasetRepository(SqliteKeyValueStore(path)).save_ledger(normalize_ledger_rows(ledger_records))
    again = DatasetRepository(SqliteKeyValueStore(path))
    assert [r.period_label for r in again.load_ledger()] == ["jan/23", "fev/23", "mar/23"]


def test_store_failures_are_reported_not_raised():
    repo = DatasetRepository(BrokenStore())
    assert repo.load(LEDGER_DATASET_KEY) == []
    result = repo.save(LEDGER_DATASET_KEY, [{"Mês/Ano": "jan/23"}])
    assert result["success"] is False
    assert "connection refused" in result["error"]
    assert repo.get_update_info() == {"timestamp": None, "period": None}


def test_unreadable_stored_rows_load_as_empty():
    store = InMemoryKeyValueStore()
    store.set(LEDGER_DATASET_KEY, [{"foo": 1}])
    store.set(CASES_DATASET_KEY, [{"Mês/Ano": "jan/23", "Conclusos": 4}])
    repo = DatasetRepository(store)
    assert repo.load_ledger() == []
    assert repo.load_cases() == []


def test_make_store():
    assert isinstance(make_store(None), InMemoryKeyValueStore)
    assert isinstance(make_store(":memory:"), InMemoryKeyValueStore)
