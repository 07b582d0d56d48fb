"""Port for the remote catalog consulted during enrichment."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from numisync.domain.catalog import CoinData
    from numisync.domain.metadata import FetchSelection
    from numisync.domain.records import LocalRecord


@runtime_checkable
class CatalogSource(Protocol):
    async def fetch_coin_data(
        self,
        type_id: int,
        record: LocalRecord,
        fetch: FetchSelection,
    ) -> CoinData: ...
