"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from numisync.adapters.cache import CacheLock, PersistentCache
from numisync.adapters.numista import NumistaClient
from numisync.adapters.sqlalchemy import SqlAlchemyRecordStore
from numisync.config import get_numista_config, get_storage_config
from numisync.domain.enrichment import enrich_record
from numisync.domain.errors import ValidationError
from numisync.domain.merge import FieldMergeEngine
from numisync.domain.progress import records_matching, summarize_progress

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from pathlib import Path

    from numisync.adapters.cache import (
        CacheFileMetadata,
        CacheStats,
        LockStatusReport,
        MonthlyUsage,
    )
    from numisync.adapters.numista import ScoredCandidate
    from numisync.adapters.numista.client import ClientFactory
    from numisync.config import NumistaConfig, StorageConfig
    from numisync.domain.enrichment import EnrichmentResult
    from numisync.domain.metadata import FetchSelection
    from numisync.domain.progress import CollectionProgress, ProgressFilter
    from numisync.domain.records import LocalRecord

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheReport:
    path: Path
    lock: LockStatusReport
    file: CacheFileMetadata | None
    stats: CacheStats
    monthly_limit: int
    usage_by_key: dict[str, MonthlyUsage]


async def open_cache(
    storage: StorageConfig | None = None,
    *,
    api_key: str | None = None,
) -> PersistentCache:
    """Open the shared API cache, persisting load-time pruning.

    Usage is counted against ``api_key``, or the configured key when omitted.
    """

    settings = storage or get_storage_config()
    key = api_key if api_key is not None else get_numista_config(require_api_key=False).api_key
    return await PersistentCache.open(
        settings.api_cache_path(),
        lock_timeout_ms=settings.lock_timeout_ms,
        api_key=key,
    )


async def _catalog(
    config: NumistaConfig | None,
    cache: PersistentCache | None,
    client_factory: ClientFactory | None,
) -> NumistaClient:
    settings = config or get_numista_config()
    return NumistaClient(
        config=settings,
        cache=cache if cache is not None else await open_cache(api_key=settings.api_key),
        client_factory=client_factory,
    )


def search_record(
    db_path: Path,
    record_id: int,
    *,
    config: NumistaConfig | None = None,
    cache: PersistentCache | None = None,
    client_factory: ClientFactory | None = None,
) -> list[ScoredCandidate]:
    """Search the catalog for one collection record, best candidates first."""

    store = SqlAlchemyRecordStore.open(db_path)
    record = store.get_by_id(record_id)
    if record is None:
        raise ValidationError(f"Record {record_id} not found")

    async def run() -> list[ScoredCandidate]:
        async with await _catalog(config, cache, client_factory) as catalog:
            return await catalog.search(record)

    candidates = asyncio.run(run())
    log.info("Found %d catalog candidates for record %s", len(candidates), record_id)
    return candidates


def enrich_collection_record(
    db_path: Path,
    record_id: int,
    type_id: int,
    *,
    fetch: FetchSelection,
    config: NumistaConfig | None = None,
    cache: PersistentCache | None = None,
    client_factory: ClientFactory | None = None,
) -> EnrichmentResult:
    """Merge every differing catalog field into one record and persist its status."""

    store = SqlAlchemyRecordStore.open(db_path)

    async def run() -> EnrichmentResult:
        async with await _catalog(config, cache, client_factory) as catalog:
            result = await enrich_record(
                record_id,
                type_id,
                store=store,
                catalog=catalog,
                engine=FieldMergeEngine(),
                fetch=fetch,
            )
            result.api_calls = catalog.session_calls
            return result

    return asyncio.run(run())


def collection_progress(db_path: Path, *, fetch: FetchSelection) -> CollectionProgress:
    store = SqlAlchemyRecordStore.open(db_path)
    notes = [record.get("note") for record in store.all()]
    return summarize_progress(
        (note if isinstance(note, str) else None for note in notes),
        fetch,
    )


def matching_records(
    db_path: Path,
    *,
    fetch: FetchSelection,
    record_filter: ProgressFilter,
) -> list[LocalRecord]:
    """Records whose enrichment state meets ``record_filter``, by ascending id."""

    records = {
        int(record["id"]): record  # type: ignore[call-overload]
        for record in SqlAlchemyRecordStore.open(db_path).all(sort_by="id")
    }
    notes: dict[int, str | None] = {}
    for record_id, record in records.items():
        note = record.get("note")
        notes[record_id] = note if isinstance(note, str) else None
    return [records[record_id] for record_id in records_matching(notes, fetch, record_filter)]


def _with_cache[T](
    storage: StorageConfig | None,
    action: Callable[[PersistentCache], Awaitable[T]],
) -> T:
    async def run() -> T:
        return await action(await open_cache(storage))

    return asyncio.run(run())


def cache_report(storage: StorageConfig | None = None) -> CacheReport:
    settings = storage or get_storage_config()
    path = settings.api_cache_path(ensure=False)
    lock = CacheLock.check_status(path)
    metadata = CacheLock.cache_file_metadata(path)

    async def snapshot(cache: PersistentCache) -> CacheReport:
        return CacheReport(
            path=path,
            lock=lock,
            file=metadata,
            stats=cache.get_stats(),
            monthly_limit=cache.get_monthly_limit(),
            usage_by_key=cache.get_usage_by_key(),
        )

    return _with_cache(settings, snapshot)


def monthly_usage(storage: StorageConfig | None = None) -> tuple[MonthlyUsage, int]:
    async def read(cache: PersistentCache) -> tuple[MonthlyUsage, int]:
        return cache.get_monthly_usage(), cache.get_monthly_limit()

    return _with_cache(storage, read)


def clear_cache(storage: StorageConfig | None = None) -> None:
    _with_cache(storage, lambda cache: cache.clear())
    log.info("Cleared API cache entries")


def set_monthly_limit(limit: int, storage: StorageConfig | None = None) -> int:
    return _with_cache(storage, lambda cache: cache.set_monthly_limit(limit))


def set_monthly_usage(total: int, storage: StorageConfig | None = None) -> MonthlyUsage:
    return _with_cache(storage, lambda cache: cache.set_monthly_usage_total(total))
