from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from numisync.adapters.cache import PersistentCache
from tests.helpers.clock import FakeClock
from tests.helpers.collection import make_collection
from tests.helpers.numista import FakeNumistaApi

if TYPE_CHECKING:
    from collections.abc import Callable

DATA_DIR = Path(__file__).resolve().parent / "data"


@pytest.fixture
def numista_payloads() -> dict[str, object]:
    directory = DATA_DIR / "numista"
    return {
        path.stem: json.loads(path.read_text(encoding="utf-8"))
        for path in sorted(directory.glob("*.json"))
    }


@pytest.fixture
def numista_api(numista_payloads: dict[str, object]) -> FakeNumistaApi:
    return FakeNumistaApi(
        routes={
            "/types": numista_payloads["search_10_kopeks"],
            "/types/3011": numista_payloads["type_10_kopeks"],
            "/types/3011/issues": numista_payloads["issues_10_kopeks"],
            "/types/3011/issues/55002/prices": numista_payloads["prices_55002"],
            "/issuers": numista_payloads["issuers"],
        }
    )


@pytest.fixture
def collection_db(tmp_path: Path) -> Path:
    return make_collection(tmp_path / "collection.db")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_factory(tmp_path: Path, clock: FakeClock) -> Callable[..., PersistentCache]:
    def factory(path: Path | None = None, *, lock_timeout_ms: int = 1_000) -> PersistentCache:
        return PersistentCache(
            path or tmp_path / "api-cache.json",
            lock_timeout_ms=lock_timeout_ms,
            clock=clock,
        )

    return factory
