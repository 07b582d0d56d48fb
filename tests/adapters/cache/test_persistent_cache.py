from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import pytest

from numisync.adapters.cache import PersistentCache, usage_key_for
from numisync.adapters.cache.store import (
    DEFAULT_MONTHLY_LIMIT,
    DEFAULT_USAGE_KEY,
    MANUAL_USAGE_BUCKET,
    month_key,
    previous_month_key,
)
from tests.helpers.clock import START_MS

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from tests.helpers.clock import FakeClock

    CacheFactory = Callable[..., PersistentCache]

JANUARY_15_MS = 1_768_478_400_000  # 2026-01-15T12:00:00Z


def _read(path: Path) -> dict[str, object]:
    return json.loads(path.read_text(encoding="utf-8"))


def test_month_keys() -> None:
    assert month_key(START_MS) == "2026-03"
    assert previous_month_key(START_MS) == "2026-02"
    assert month_key(JANUARY_15_MS) == "2026-01"
    assert previous_month_key(JANUARY_15_MS) == "2025-12"


def test_set_and_get(cache_factory: CacheFactory) -> None:
    cache = cache_factory()

    asyncio.run(cache.set("type:1:en", {"id": 1, "tags": ["a"]}, 60_000))
    value = cache.get("type:1:en")

    assert value == {"id": 1, "tags": ["a"]}
    assert isinstance(value, dict)
    value["tags"].append("b")
    assert cache.get("type:1:en") == {"id": 1, "tags": ["a"]}
    assert cache.has("type:1:en")
    assert not cache.has("type:2:en")


def test_non_positive_ttl_is_not_cached(cache_factory: CacheFactory) -> None:
    cache = cache_factory()

    asyncio.run(cache.set("key", {"a": 1}, 0))

    assert cache.get("key") is None
    assert not cache.path.exists()


def test_entries_expire(cache_factory: CacheFactory, clock: FakeClock) -> None:
    cache = cache_factory()
    asyncio.run(cache.set("key", "value", 1_000))

    clock.advance(1_001)

    assert cache.get("key") is None
    assert cache.get_stats().entry_count == 0


def test_entries_survive_reload(cache_factory: CacheFactory) -> None:
    first = cache_factory()
    asyncio.run(first.set("key", [1, 2, 3], 60_000))

    second = cache_factory()

    assert second.get("key") == [1, 2, 3]
    assert _read(second.path)["version"] == "1.0"


@pytest.mark.parametrize("content", ["{not json", json.dumps({"version": "0.1", "entries": {}})])
def test_unreadable_file_starts_fresh(
    cache_factory: CacheFactory, tmp_path: Path, content: str
) -> None:
    path = tmp_path / "api-cache.json"
    path.write_text(content, encoding="utf-8")

    cache = cache_factory(path)

    assert cache.get_stats().entry_count == 0
    assert cache.get_monthly_limit() == DEFAULT_MONTHLY_LIMIT


def test_prune_removes_expired_entries_and_old_months(
    cache_factory: CacheFactory, tmp_path: Path, clock: FakeClock
) -> None:
    path = tmp_path / "api-cache.json"
    now = clock()
    path.write_text(
        json.dumps(
            {
                "version": "1.0",
                "entries": {
                    "old": {"data": 1, "cachedAt": now - 10_000, "ttl": 5_000},
                    "fresh": {"data": 2, "cachedAt": now - 10_000, "ttl": 1_000_000},
                },
                "monthlyUsage": {
                    "2026-03": {"getType": 2},
                    "2026-02": {"getType": 5},
                    "2025-12": {"getType": 9},
                },
                "monthlyLimit": 1500,
            }
        ),
        encoding="utf-8",
    )
    cache = cache_factory(path)

    assert asyncio.run(cache.prune())
    assert not asyncio.run(cache.prune())

    stored = _read(path)
    assert list(stored["entries"]) == ["fresh"]  # type: ignore[arg-type]
    assert set(stored["monthlyUsage"]) == {"2026-03", "2026-02"}  # type: ignore[arg-type]
    assert stored["monthlyLimit"] == 1500


def test_clear_keeps_usage_and_limit(cache_factory: CacheFactory) -> None:
    cache = cache_factory()

    async def scenario() -> None:
        await cache.set("key", 1, 60_000)
        await cache.increment_usage("getType")
        await cache.set_monthly_limit(500)
        await cache.clear()

    asyncio.run(scenario())

    assert cache.get("key") is None
    assert cache.get_monthly_usage().total == 1
    assert cache.get_monthly_limit() == 500


def test_usage_is_shared_between_instances(cache_factory: CacheFactory) -> None:
    first = cache_factory()
    second = cache_factory()

    asyncio.run(first.increment_usage("searchTypes"))
    asyncio.run(second.increment_usage("getType"))
    asyncio.run(first.increment_usage("searchTypes"))

    usage = second.get_monthly_usage()
    assert usage.month == "2026-03"
    assert usage.by_endpoint == {"searchTypes": 2, "getType": 1}
    assert usage.total == 3
    assert usage.as_dict()["total"] == 3


def test_usage_ignores_stored_total(cache_factory: CacheFactory, tmp_path: Path) -> None:
    path = tmp_path / "api-cache.json"
    path.write_text(
        json.dumps({"version": "1.0", "monthlyUsage": {"2026-03": {"getType": 4, "total": 99}}}),
        encoding="utf-8",
    )

    assert cache_factory(path).get_monthly_usage().total == 4


def test_monthly_limit_has_floor(cache_factory: CacheFactory) -> None:
    cache = cache_factory()

    assert asyncio.run(cache.set_monthly_limit(50)) == 100
    assert asyncio.run(cache.set_monthly_limit(2500.7)) == 2500
    assert cache_factory().get_monthly_limit() == 2500


def test_set_usage_total_without_breakdown(cache_factory: CacheFactory) -> None:
    usage = asyncio.run(cache_factory().set_monthly_usage_total(42))

    assert usage.by_endpoint == {MANUAL_USAGE_BUCKET: 42}


def test_set_usage_total_scales_breakdown(cache_factory: CacheFactory) -> None:
    cache = cache_factory()

    async def scenario() -> None:
        for _ in range(3):
            await cache.increment_usage("searchTypes")
        await cache.increment_usage("getType")

    asyncio.run(scenario())
    usage = asyncio.run(cache.set_monthly_usage_total(8))

    assert usage.by_endpoint == {"searchTypes": 6, "getType": 2}
    assert usage.total == 8


def test_usage_key_for() -> None:
    assert usage_key_for("ABCDEF123456") == "abcdef12"
    assert usage_key_for(None) == DEFAULT_USAGE_KEY
    assert usage_key_for("") == DEFAULT_USAGE_KEY


def test_usage_is_bucketed_per_api_key(cache_factory: CacheFactory, tmp_path: Path) -> None:
    first = cache_factory()
    second = cache_factory()
    first.set_active_key("AAAA1111-first")
    second.set_active_key("bbbb2222-second")

    asyncio.run(first.increment_usage("getType"))
    asyncio.run(second.increment_usage("getType"))
    asyncio.run(second.increment_usage("searchTypes"))

    assert first.get_monthly_usage().by_endpoint == {"getType": 1}
    assert first.get_monthly_usage().key == "aaaa1111"
    assert second.get_monthly_usage().total == 2
    by_key = first.get_usage_by_key()
    assert {key: usage.total for key, usage in by_key.items()} == {"aaaa1111": 1, "bbbb2222": 2}
    stored = _read(tmp_path / "api-cache.json")["monthlyUsage"]
    assert stored == {  # type: ignore[comparison-overlap]
        "2026-03": {
            "keys": {
                "aaaa1111": {"getType": 1},
                "bbbb2222": {"getType": 1, "searchTypes": 1},
            }
        }
    }


def test_flat_usage_moves_under_active_key(cache_factory: CacheFactory, tmp_path: Path) -> None:
    path = tmp_path / "api-cache.json"
    path.write_text(
        json.dumps({"version": "1.0", "monthlyUsage": {"2026-03": {"getType": 4}}}),
        encoding="utf-8",
    )
    cache = cache_factory(path)
    cache.set_active_key("cafe0000-key")

    assert cache.get_monthly_usage().by_endpoint == {"getType": 4}

    asyncio.run(cache.increment_usage("getIssues"))

    stored = _read(path)["monthlyUsage"]
    assert stored == {  # type: ignore[comparison-overlap]
        "2026-03": {"keys": {"cafe0000": {"getType": 4, "getIssues": 1}}}
    }


def test_set_usage_total_only_touches_active_key(cache_factory: CacheFactory) -> None:
    other = cache_factory()
    other.set_active_key("other-key")
    asyncio.run(other.increment_usage("getType"))

    cache = cache_factory()
    usage = asyncio.run(cache.set_monthly_usage_total(10))

    assert usage.by_endpoint == {MANUAL_USAGE_BUCKET: 10}
    assert other.get_monthly_usage().by_endpoint == {"getType": 1}


def test_open_persists_load_time_pruning(
    tmp_path: Path, clock: FakeClock
) -> None:
    path = tmp_path / "api-cache.json"
    path.write_text(
        json.dumps(
            {
                "version": "1.0",
                "entries": {"old": {"data": 1, "cachedAt": clock() - 10_000, "ttl": 5_000}},
                "monthlyUsage": {"2025-11": {"getType": 9}},
            }
        ),
        encoding="utf-8",
    )

    asyncio.run(PersistentCache.open(path, lock_timeout_ms=1_000, clock=clock))

    stored = _read(path)
    assert stored["entries"] == {}
    assert stored["monthlyUsage"] == {}
