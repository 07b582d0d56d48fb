from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from numisync.adapters.cache import CacheLock, lock_path_for
from numisync.adapters.cache.lock import STALE_THRESHOLD_MS
from numisync.domain.enums import LockStatus
from numisync.domain.errors import LockTimeoutError

if TYPE_CHECKING:
    from tests.helpers.clock import FakeClock


def _write_lock(path: Path, **record: object) -> None:
    path.write_text(json.dumps(record), encoding="utf-8")


def test_lock_path_for() -> None:
    assert lock_path_for(Path("/data/api-cache.json")) == Path("/data/api-cache.lock")
    assert lock_path_for(Path("/data/cache.db")) == Path("/data/cache.db.lock")


def test_acquire_and_release(tmp_path: Path, clock: FakeClock) -> None:
    lock = CacheLock(tmp_path / "api-cache.json", clock=clock)

    asyncio.run(lock.acquire())

    record = json.loads(lock.lock_path.read_text(encoding="utf-8"))
    assert record["ownerId"] == lock.owner_id
    assert record["acquiredAt"] == int(clock())
    assert lock.is_owner

    lock.release()

    assert not lock.lock_path.exists()
    assert not lock.is_owner


def test_second_holder_times_out(tmp_path: Path, clock: FakeClock) -> None:
    cache_path = tmp_path / "api-cache.json"
    holder = CacheLock(cache_path, clock=clock)
    waiter = CacheLock(cache_path, timeout_ms=250, clock=clock)

    async def scenario() -> None:
        async with holder:
            await waiter.acquire()

    with pytest.raises(LockTimeoutError):
        asyncio.run(scenario())
    assert not holder.lock_path.exists()


def test_concurrent_acquires_hold_the_lock_one_at_a_time(
    tmp_path: Path, clock: FakeClock
) -> None:
    cache_path = tmp_path / "api-cache.json"
    locks = [CacheLock(cache_path, timeout_ms=5_000, clock=clock) for _ in range(3)]
    holders: list[str] = []
    overlaps: list[int] = []

    async def hold(lock: CacheLock) -> None:
        async with lock:
            holders.append(lock.owner_id)
            overlaps.append(len(holders))
            await asyncio.sleep(0.15)
            holders.remove(lock.owner_id)

    async def scenario() -> None:
        await asyncio.gather(*(hold(lock) for lock in locks))

    asyncio.run(scenario())

    assert overlaps == [1, 1, 1]
    assert list(tmp_path.iterdir()) == []


def test_lock_file_is_complete_when_visible(tmp_path: Path, clock: FakeClock) -> None:
    lock = CacheLock(tmp_path / "api-cache.json", clock=clock)

    asyncio.run(lock.acquire())

    assert [path.name for path in tmp_path.iterdir()] == ["api-cache.lock"]
    assert not lock.is_stale()
    lock.release()


def test_stale_lock_is_taken_over(
    tmp_path: Path, clock: FakeClock, caplog: pytest.LogCaptureFixture
) -> None:
    lock = CacheLock(tmp_path / "api-cache.json", clock=clock)
    _write_lock(lock.lock_path, ownerId="ghost", acquiredAt=clock() - STALE_THRESHOLD_MS - 1)

    with caplog.at_level(logging.WARNING):
        asyncio.run(lock.acquire(timeout_ms=500))

    assert lock.is_owner
    assert json.loads(lock.lock_path.read_text(encoding="utf-8"))["ownerId"] == lock.owner_id
    assert "stale" in caplog.text


def test_unreadable_lock_is_stale(tmp_path: Path, clock: FakeClock) -> None:
    lock = CacheLock(tmp_path / "api-cache.json", clock=clock)
    lock.lock_path.write_text("{not json", encoding="utf-8")

    assert lock.is_stale()
    asyncio.run(lock.acquire(timeout_ms=500))
    assert lock.is_owner


def test_release_leaves_foreign_lock(tmp_path: Path, clock: FakeClock) -> None:
    lock = CacheLock(tmp_path / "api-cache.json", clock=clock)
    asyncio.run(lock.acquire())
    _write_lock(lock.lock_path, ownerId="someone-else", acquiredAt=clock())

    lock.release()

    assert lock.lock_path.exists()
    assert not lock.is_owner


def test_check_status_states(tmp_path: Path, clock: FakeClock) -> None:
    cache_path = tmp_path / "api-cache.json"
    lock_path = lock_path_for(cache_path)

    assert CacheLock.check_status(cache_path, clock=clock).status is LockStatus.NONE

    cache_path.write_text("{}", encoding="utf-8")
    assert CacheLock.check_status(cache_path, clock=clock).status is LockStatus.UNLOCKED

    _write_lock(lock_path, ownerId="x", hostname="box", pid=42, acquiredAt=clock() - 1_000)
    locked = CacheLock.check_status(cache_path, clock=clock)
    assert locked.status is LockStatus.LOCKED
    assert locked.lock_age_ms == 1_000
    assert locked.owner is not None
    assert locked.owner.hostname == "box"
    assert locked.owner.pid == 42

    clock.advance(STALE_THRESHOLD_MS)
    assert CacheLock.check_status(cache_path, clock=clock).status is LockStatus.STALE

    lock_path.write_text("garbage", encoding="utf-8")
    corrupt = CacheLock.check_status(cache_path, clock=clock)
    assert corrupt.status is LockStatus.STALE
    assert corrupt.error


def test_cache_file_metadata(tmp_path: Path) -> None:
    cache_path = tmp_path / "api-cache.json"

    assert CacheLock.cache_file_metadata(cache_path) is None

    cache_path.write_text(
        json.dumps({"version": "1.0", "entries": {"a": {}, "b": {}}}), encoding="utf-8"
    )
    metadata = CacheLock.cache_file_metadata(cache_path)
    assert metadata is not None
    assert metadata.valid
    assert metadata.entry_count == 2
    assert metadata.version == "1.0"

    cache_path.write_text("{broken", encoding="utf-8")
    broken = CacheLock.cache_file_metadata(cache_path)
    assert broken is not None
    assert not broken.valid
    assert broken.error
