"""Cross-process advisory lock guarding the persistent API cache file.

The lock is a sibling file. Its JSON body is written to a private staging file
first and then hard-linked into place, so only one process can create it and
nobody ever sees it half written. The body records the owner; locks older than five
minutes, or whose body cannot be read, are treated as abandoned and removed.
"""

from __future__ import annotations

import asyncio
import json
import os
import socket
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Final

from numisync.config.storage import DEFAULT_LOCK_TIMEOUT_MS
from numisync.domain.enums import LockStatus
from numisync.domain.errors import LockError, LockTimeoutError

if TYPE_CHECKING:
    from types import TracebackType

log = getLogger(__name__)

STALE_THRESHOLD_MS: Final[int] = 5 * 60 * 1000
RETRY_INTERVAL_SECONDS: Final[float] = 0.1
CACHE_FILE_VERSION: Final[str] = "1.0"

type Clock = Callable[[], float]


def epoch_ms() -> float:
    return time.time() * 1000


def lock_path_for(cache_path: Path) -> Path:
    if cache_path.suffix == ".json":
        return cache_path.with_suffix(".lock")
    return cache_path.with_name(cache_path.name + ".lock")


@dataclass(frozen=True, slots=True)
class LockOwner:
    hostname: str | None
    pid: int | None
    acquired_at: datetime


@dataclass(frozen=True, slots=True)
class LockStatusReport:
    status: LockStatus
    cache_exists: bool
    lock_exists: bool
    lock_age_ms: float | None = None
    owner: LockOwner | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class CacheFileMetadata:
    exists: bool
    valid: bool
    size: int | None = None
    last_modified: datetime | None = None
    entry_count: int | None = None
    version: str | None = None
    error: str | None = None


def _read_lock_record(lock_path: Path) -> dict[str, object]:
    payload = json.loads(lock_path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict) or not isinstance(payload.get("acquiredAt"), int | float):
        raise ValueError("lock file has no acquiredAt timestamp")
    return payload


class CacheLock:
    def __init__(
        self,
        cache_path: Path,
        *,
        timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
        clock: Clock = epoch_ms,
    ) -> None:
        self.cache_path = cache_path
        self.lock_path = lock_path_for(cache_path)
        self.timeout_ms = timeout_ms
        self.owner_id = str(uuid.uuid4())
        self.is_owner = False
        self._clock = clock

    async def __aenter__(self) -> CacheLock:
        await self.acquire()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    async def acquire(self, timeout_ms: int | None = None) -> None:
        """Wait for the lock, removing stale lock files along the way."""

        timeout = self.timeout_ms if timeout_ms is None else timeout_ms
        started = time.monotonic()
        while (time.monotonic() - started) * 1000 < timeout:
            if self.is_stale():
                log.warning("Removing stale cache lock %s", self.lock_path)
                self.lock_path.unlink(missing_ok=True)

            record = {
                "ownerId": self.owner_id,
                "hostname": socket.gethostname(),
                "pid": os.getpid(),
                "acquiredAt": int(self._clock()),
            }
            try:
                self._publish(record)
            except FileExistsError:
                await asyncio.sleep(RETRY_INTERVAL_SECONDS)
                continue
            except OSError as exc:
                raise LockError(f"Failed to create lock file {self.lock_path}: {exc}") from exc

            self.is_owner = True
            log.debug("Acquired cache lock %s", self.lock_path)
            return

        raise LockTimeoutError(
            f"Cache lock timeout after {timeout}ms - another process may be using the cache"
        )

    def _publish(self, record: dict[str, object]) -> None:
        staging = self.lock_path.with_name(f"{self.lock_path.name}.{self.owner_id}.tmp")
        try:
            staging.write_text(json.dumps(record, indent=2), encoding="utf-8")
            os.link(staging, self.lock_path)
        finally:
            staging.unlink(missing_ok=True)

    def release(self) -> None:
        """Remove the lock file if this instance still owns it. Never raises."""

        if not self.is_owner:
            return
        try:
            if self.lock_path.exists():
                record = _read_lock_record(self.lock_path)
                if record.get("ownerId") == self.owner_id:
                    self.lock_path.unlink(missing_ok=True)
        except (OSError, ValueError) as exc:
            log.warning("Failed to release cache lock %s: %s", self.lock_path, exc)
        finally:
            self.is_owner = False

    def is_stale(self) -> bool:
        if not self.lock_path.exists():
            return False
        try:
            record = _read_lock_record(self.lock_path)
        except (OSError, ValueError):
            return True
        age = self._clock() - float(record["acquiredAt"])  # type: ignore[arg-type]
        return age > STALE_THRESHOLD_MS

    @staticmethod
    def check_status(cache_path: Path, *, clock: Clock = epoch_ms) -> LockStatusReport:
        """Describe the lock state next to ``cache_path`` without touching it."""

        lock_path = lock_path_for(cache_path)
        cache_exists = cache_path.exists()
        lock_exists = lock_path.exists()
        if not cache_exists and not lock_exists:
            return LockStatusReport(status=LockStatus.NONE, cache_exists=False, lock_exists=False)
        if not lock_exists:
            return LockStatusReport(
                status=LockStatus.UNLOCKED, cache_exists=cache_exists, lock_exists=False
            )

        try:
            record = _read_lock_record(lock_path)
        except (OSError, ValueError) as exc:
            return LockStatusReport(
                status=LockStatus.STALE,
                cache_exists=cache_exists,
                lock_exists=True,
                error=str(exc),
            )

        acquired_at = float(record["acquiredAt"])  # type: ignore[arg-type]
        age = clock() - acquired_at
        pid = record.get("pid")
        hostname = record.get("hostname")
        owner = LockOwner(
            hostname=hostname if isinstance(hostname, str) else None,
            pid=pid if isinstance(pid, int) else None,
            acquired_at=datetime.fromtimestamp(acquired_at / 1000, tz=UTC),
        )
        return LockStatusReport(
            status=LockStatus.STALE if age > STALE_THRESHOLD_MS else LockStatus.LOCKED,
            cache_exists=cache_exists,
            lock_exists=True,
            lock_age_ms=age,
            owner=owner,
        )

    @staticmethod
    def cache_file_metadata(cache_path: Path) -> CacheFileMetadata | None:
        if not cache_path.exists():
            return None
        try:
            stat = cache_path.stat()
            payload = json.loads(cache_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            return CacheFileMetadata(exists=True, valid=False, error=str(exc))
        if not isinstance(payload, dict):
            return CacheFileMetadata(exists=True, valid=False, error="cache file is not an object")

        entries = payload.get("entries")
        version = payload.get("version")
        return CacheFileMetadata(
            exists=True,
            valid=version == CACHE_FILE_VERSION,
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
            entry_count=len(entries) if isinstance(entries, dict) else 0,
            version=version if isinstance(version, str) else None,
        )
