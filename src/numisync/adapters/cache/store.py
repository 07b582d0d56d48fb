"""Durable TTL cache for catalog responses plus monthly API usage counters.

On-disk layout::

    {
      "version": "1.0",
      "entries": {"<key>": {"data": ..., "cachedAt": <epoch ms>, "ttl": <ms>}},
      "monthlyUsage": {"2026-02": {"keys": {"ab12cd34": {"searchTypes": 5}}}},
      "monthlyLimit": 2000
    }

Entries live in memory and are written through on every change. Usage counters
and the limit are always re-read from disk under the lock before a write, so
several processes sharing one cache file add to each other's counts instead of
overwriting them.

Usage is bucketed per API key, identified by the key's first eight characters
lowercased (``default`` without a key). Months still in the older flat
``{endpoint: count}`` shape are read as the active key's counts and moved under
it on the next usage write.
"""

from __future__ import annotations

import copy
import json
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from numisync.config.storage import DEFAULT_LOCK_TIMEOUT_MS

from .lock import CACHE_FILE_VERSION, CacheLock, Clock, epoch_ms

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)

DEFAULT_MONTHLY_LIMIT: Final[int] = 2000
MINIMUM_MONTHLY_LIMIT: Final[int] = 100
MANUAL_USAGE_BUCKET: Final[str] = "manual"
DEFAULT_USAGE_KEY: Final[str] = "default"
USAGE_KEY_LENGTH: Final[int] = 8

type CachePayload = dict[str, object]
type UsageCounts = dict[str, int]
type UsageByMonth = dict[str, dict[str, object]]


@dataclass(frozen=True, slots=True)
class MonthlyUsage:
    month: str
    by_endpoint: UsageCounts = field(default_factory=dict)
    key: str = DEFAULT_USAGE_KEY

    @property
    def total(self) -> int:
        return sum(self.by_endpoint.values())

    def as_dict(self) -> dict[str, int]:
        return {**self.by_endpoint, "total": self.total}


@dataclass(frozen=True, slots=True)
class CacheStats:
    entry_count: int
    monthly_usage: MonthlyUsage


def month_key(epoch_millis: float) -> str:
    moment = datetime.fromtimestamp(epoch_millis / 1000, tz=UTC)
    return f"{moment.year:04d}-{moment.month:02d}"


def previous_month_key(epoch_millis: float) -> str:
    moment = datetime.fromtimestamp(epoch_millis / 1000, tz=UTC)
    if moment.month == 1:
        return f"{moment.year - 1:04d}-12"
    return f"{moment.year:04d}-{moment.month - 1:02d}"


def usage_key_for(api_key: str | None) -> str:
    return api_key[:USAGE_KEY_LENGTH].lower() if api_key else DEFAULT_USAGE_KEY


def _counts(raw: object) -> UsageCounts:
    if not isinstance(raw, dict):
        return {}
    return {
        endpoint: int(count)
        for endpoint, count in raw.items()
        if isinstance(count, int | float) and not isinstance(count, bool) and endpoint != "total"
    }


def _empty_payload() -> CachePayload:
    return {
        "version": CACHE_FILE_VERSION,
        "entries": {},
        "monthlyUsage": {},
        "monthlyLimit": DEFAULT_MONTHLY_LIMIT,
    }


def _is_expired(entry: object, now: float) -> bool:
    if not isinstance(entry, dict):
        return True
    cached_at = entry.get("cachedAt")
    ttl = entry.get("ttl")
    if not isinstance(cached_at, int | float) or not isinstance(ttl, int | float):
        return True
    return now - cached_at > ttl


class PersistentCache:
    def __init__(
        self,
        path: Path,
        *,
        lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
        clock: Clock = epoch_ms,
        api_key: str | None = None,
    ) -> None:
        self.path = path
        self._clock = clock
        self.active_key = usage_key_for(api_key)
        self.lock = CacheLock(path, timeout_ms=lock_timeout_ms, clock=clock)
        self._data = self._load()
        self._needs_persist = self._prune_in_memory()

    @classmethod
    async def open(
        cls,
        path: Path,
        *,
        lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
        clock: Clock = epoch_ms,
        api_key: str | None = None,
    ) -> PersistentCache:
        """Load the cache and persist whatever load-time pruning removed."""

        cache = cls(path, lock_timeout_ms=lock_timeout_ms, clock=clock, api_key=api_key)
        await cache.prune()
        return cache

    def set_active_key(self, api_key: str | None) -> None:
        self.active_key = usage_key_for(api_key)

    # -- loading -------------------------------------------------------------

    def _load(self) -> CachePayload:
        if not self.path.exists():
            return _empty_payload()
        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Failed to load cache file %s, starting fresh: %s", self.path, exc)
            return _empty_payload()
        if not isinstance(parsed, dict) or parsed.get("version") != CACHE_FILE_VERSION:
            log.warning("Cache file %s has an unsupported version, starting fresh", self.path)
            return _empty_payload()

        payload = _empty_payload()
        if isinstance(parsed.get("entries"), dict):
            payload["entries"] = parsed["entries"]
        if isinstance(parsed.get("monthlyUsage"), dict):
            payload["monthlyUsage"] = parsed["monthlyUsage"]
        if isinstance(parsed.get("monthlyLimit"), int) and parsed["monthlyLimit"] > 0:
            payload["monthlyLimit"] = parsed["monthlyLimit"]
        return payload

    def _read_disk(self) -> CachePayload | None:
        if not self.path.exists():
            return None
        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        return parsed if isinstance(parsed, dict) else None

    def _refresh_usage_from_disk(self, *, include_limit: bool = False) -> None:
        disk = self._read_disk()
        if disk is None:
            return
        if isinstance(disk.get("monthlyUsage"), dict):
            self._data["monthlyUsage"] = disk["monthlyUsage"]
        if include_limit and isinstance(disk.get("monthlyLimit"), int):
            self._data["monthlyLimit"] = disk["monthlyLimit"]

    # -- persistence ---------------------------------------------------------

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
        self._needs_persist = False

    async def _save(self) -> None:
        async with self.lock:
            self._refresh_usage_from_disk(include_limit=True)
            self._prune_usage()
            try:
                self._write()
            except OSError:
                log.exception("Failed to save cache file %s", self.path)
                raise

    # -- entries -------------------------------------------------------------

    @property
    def _entries(self) -> dict[str, dict[str, object]]:
        return self._data["entries"]  # type: ignore[return-value]

    @property
    def _usage(self) -> UsageByMonth:
        return self._data["monthlyUsage"]  # type: ignore[return-value]

    def get(self, key: str) -> object | None:
        """Return cached data, or ``None`` when missing or expired (and evict it)."""

        entry = self._entries.get(key)
        if entry is None:
            return None
        if _is_expired(entry, self._clock()):
            del self._entries[key]
            return None
        return copy.deepcopy(entry.get("data"))

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    async def set(self, key: str, data: object, ttl_ms: int) -> None:
        """Store ``data`` under ``key``; a non-positive TTL disables caching."""

        if ttl_ms <= 0:
            return
        self._entries[key] = {"data": data, "cachedAt": int(self._clock()), "ttl": ttl_ms}
        await self._save()

    async def clear(self) -> None:
        """Drop every entry, keeping usage counters and the monthly limit."""

        self._data["entries"] = {}
        await self._save()

    def get_stats(self) -> CacheStats:
        now = self._clock()
        live = sum(1 for entry in self._entries.values() if not _is_expired(entry, now))
        return CacheStats(entry_count=live, monthly_usage=self.get_monthly_usage())

    # -- pruning -------------------------------------------------------------

    def _prune_entries(self) -> bool:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if _is_expired(entry, now)]
        for key in expired:
            del self._entries[key]
        return bool(expired)

    def _prune_usage(self) -> bool:
        now = self._clock()
        keep = {month_key(now), previous_month_key(now)}
        stale = [month for month in self._usage if month not in keep]
        for month in stale:
            del self._usage[month]
        return bool(stale)

    def _prune_in_memory(self) -> bool:
        entries_changed = self._prune_entries()
        usage_changed = self._prune_usage()
        return entries_changed or usage_changed

    async def prune(self) -> bool:
        """Evict expired entries and old usage months; persist when anything changed."""

        changed = self._prune_in_memory() or self._needs_persist
        if changed:
            await self._save()
        return changed

    # -- usage ---------------------------------------------------------------

    def _usage_by_key(self, month: str) -> dict[str, UsageCounts]:
        month_data = self._usage.get(month)
        if not isinstance(month_data, dict):
            return {}
        keys = month_data.get("keys")
        if not isinstance(keys, dict):
            return {self.active_key: _counts(month_data)}
        return {key: _counts(counts) for key, counts in keys.items()}

    def _month_keys(self, month: str) -> dict[str, UsageCounts]:
        """Key buckets for ``month``, created or moved out of the flat shape as needed."""

        month_data = self._usage.get(month)
        if not isinstance(month_data, dict):
            month_data = {"keys": {}}
        elif not isinstance(month_data.get("keys"), dict):
            log.info("Moving flat usage for %s under key %s", month, self.active_key)
            month_data = {"keys": {self.active_key: _counts(month_data)}}
        self._usage[month] = month_data
        return month_data["keys"]  # type: ignore[return-value]

    async def increment_usage(self, endpoint: str) -> None:
        async with self.lock:
            self._refresh_usage_from_disk()
            self._prune_usage()
            bucket = self._month_keys(month_key(self._clock())).setdefault(self.active_key, {})
            bucket[endpoint] = int(bucket.get(endpoint, 0)) + 1
            self._write()

    def get_monthly_usage(self) -> MonthlyUsage:
        """Current month's per-endpoint counts for the active key.

        Re-read from disk so counts written by other processes show up.
        """

        self._refresh_usage_from_disk()
        month = month_key(self._clock())
        counts = self._usage_by_key(month).get(self.active_key, {})
        return MonthlyUsage(month=month, by_endpoint=counts, key=self.active_key)

    def get_usage_by_key(self) -> dict[str, MonthlyUsage]:
        self._refresh_usage_from_disk()
        month = month_key(self._clock())
        return {
            key: MonthlyUsage(month=month, by_endpoint=counts, key=key)
            for key, counts in self._usage_by_key(month).items()
        }

    def get_monthly_limit(self) -> int:
        limit = self._data.get("monthlyLimit")
        return limit if isinstance(limit, int) and limit > 0 else DEFAULT_MONTHLY_LIMIT

    async def set_monthly_limit(self, limit: float) -> int:
        async with self.lock:
            self._refresh_usage_from_disk()
            self._data["monthlyLimit"] = max(MINIMUM_MONTHLY_LIMIT, int(limit // 1))
            self._write()
        return self.get_monthly_limit()

    async def set_monthly_usage_total(self, total: float) -> MonthlyUsage:
        """Overwrite this month's total for the active key.

        With no existing breakdown the total lands in a ``manual`` bucket; otherwise
        each endpoint count is scaled so the relative shape is kept.
        """

        async with self.lock:
            self._refresh_usage_from_disk(include_limit=True)
            keys = self._month_keys(month_key(self._clock()))
            current = _counts(keys.get(self.active_key))
            current_total = sum(current.values())
            if current_total == 0:
                keys[self.active_key] = {MANUAL_USAGE_BUCKET: max(0, int(total // 1))}
            else:
                ratio = total / current_total
                keys[self.active_key] = {
                    endpoint: max(0, math.floor(count * ratio + 0.5))
                    for endpoint, count in current.items()
                }
            self._write()
        return self.get_monthly_usage()
