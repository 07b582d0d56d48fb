"""Port for the local collection record store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from numisync.domain.records import LocalRecord

type RecordFilter = Callable[[LocalRecord], bool]


@runtime_checkable
class RecordStore(Protocol):
    """Persistence contract for local collection records.

    Implementations refuse to write primary-key and image foreign-key columns.
    """

    def get_by_id(self, record_id: int) -> LocalRecord | None: ...

    def update(self, record_id: int, fields: Mapping[str, object]) -> bool: ...

    def search(
        self, query: str, fields: Sequence[str] | None = None
    ) -> list[LocalRecord]: ...

    def all(self, record_filter: RecordFilter | None = None) -> list[LocalRecord]: ...
