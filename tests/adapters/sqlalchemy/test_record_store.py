from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, text

from numisync.adapters.sqlalchemy import SqlAlchemyRecordStore
from numisync.domain.errors import ProtectedFieldError, ValidationError
from numisync.domain.ports import RecordStore

if TYPE_CHECKING:
    from pathlib import Path


def test_open_rejects_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        SqlAlchemyRecordStore.open(tmp_path / "missing.db")


def test_rejects_database_without_coins_table(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'other.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE things (id INTEGER PRIMARY KEY)"))

    with pytest.raises(ValidationError):
        SqlAlchemyRecordStore(engine)


def test_store_satisfies_port(collection_db: Path) -> None:
    assert isinstance(SqlAlchemyRecordStore.open(collection_db), RecordStore)


def test_get_by_id(collection_db: Path) -> None:
    store = SqlAlchemyRecordStore.open(collection_db)

    record = store.get_by_id(1)

    assert record is not None
    assert record["title"] == "10 Kopeks 1943"
    assert record["year"] == 1943
    assert store.get_by_id(404) is None


def test_update_writes_known_columns(collection_db: Path) -> None:
    store = SqlAlchemyRecordStore.open(collection_db)

    assert store.update(1, {"country": "Soviet Union", "catalognum4": "3011"})

    record = store.get_by_id(1)
    assert record is not None
    assert record["country"] == "Soviet Union"
    assert record["catalognum4"] == "3011"


def test_update_drops_protected_and_unknown_columns(
    collection_db: Path, caplog: pytest.LogCaptureFixture
) -> None:
    store = SqlAlchemyRecordStore.open(collection_db)

    with caplog.at_level(logging.WARNING):
        changed = store.update(3, {"obverseimg": 99, "id": 7, "bogus": 1, "title": "Morgan"})

    record = store.get_by_id(3)
    assert changed
    assert record is not None
    assert record["title"] == "Morgan"
    assert record["obverseimg"] == 17
    assert "protected" in caplog.text


def test_update_with_nothing_to_write(collection_db: Path) -> None:
    store = SqlAlchemyRecordStore.open(collection_db)

    assert not store.update(1, {"obverseimg": 5})
    assert not store.update(1, {"bogus": 5})
    assert not store.update(404, {"title": "ghost"})


def test_strict_mode_refuses_protected_only_update(collection_db: Path) -> None:
    store = SqlAlchemyRecordStore.open(collection_db, strict=True)

    with pytest.raises(ProtectedFieldError):
        store.update(1, {"reverseimg": 1})


def test_search_matches_any_field(collection_db: Path) -> None:
    store = SqlAlchemyRecordStore.open(collection_db)

    assert [record["id"] for record in store.search("kopek")] == [1]
    assert [record["id"] for record in store.search("United", ["country"])] == [3]
    assert store.search("   ") == []
    assert store.search("kopek", ["no_such_column"]) == []


def test_all_sorts_filters_and_pages(collection_db: Path) -> None:
    store = SqlAlchemyRecordStore.open(collection_db)

    titles = [record["title"] for record in store.all()]
    modern = store.all(lambda record: int(record["year"] or 0) > 1945)  # type: ignore[arg-type]
    page = store.all(sort_by="year", limit=1, offset=1)

    assert titles == ["1 Mark", "10 Kopeks 1943", "Morgan Dollar"]
    assert [record["id"] for record in modern] == [2]
    assert [record["id"] for record in page] == [1]
