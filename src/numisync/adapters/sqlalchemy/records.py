"""Record store over an OpenNumismat collection's ``coins`` table.

The table is reflected rather than declared: OpenNumismat owns the schema and
its column set varies between versions.
"""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Final

from sqlalchemy import MetaData, Table, create_engine, inspect, or_, select, update

from numisync.domain.errors import ProtectedFieldError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy.engine import Engine

    from numisync.domain.ports.records import RecordFilter
    from numisync.domain.records import LocalRecord

log = getLogger(__name__)

COINS_TABLE: Final[str] = "coins"
PROTECTED_FIELDS: Final[frozenset[str]] = frozenset(
    {"id", "obverseimg", "reverseimg", "edgeimg", "image"}
)
DEFAULT_SEARCH_FIELDS: Final[tuple[str, ...]] = ("title", "country", "series", "catalognum1")
SEARCH_LIMIT: Final[int] = 100


class SqlAlchemyRecordStore:
    def __init__(self, engine: Engine, *, strict: bool = False) -> None:
        if not inspect(engine).has_table(COINS_TABLE):
            raise ValidationError("Not a valid OpenNumismat database: missing coins table")
        self.engine = engine
        self.strict = strict
        self.table = Table(COINS_TABLE, MetaData(), autoload_with=engine)

    @classmethod
    def open(cls, path: Path | str, *, strict: bool = False) -> SqlAlchemyRecordStore:
        db_path = Path(path)
        if not db_path.exists():
            raise ValidationError(f"Database file not found: {db_path}")
        return cls(create_engine(f"sqlite:///{db_path}"), strict=strict)

    @property
    def columns(self) -> frozenset[str]:
        return frozenset(self.table.c.keys())

    def get_by_id(self, record_id: int) -> LocalRecord | None:
        stmt = select(self.table).where(self.table.c.id == record_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def update(self, record_id: int, fields: Mapping[str, object]) -> bool:
        """Write ``fields`` to one record, dropping protected and unknown columns.

        Returns ``False`` when nothing was left to write or no row matched. In
        strict mode an update made only of protected fields raises
        ``ProtectedFieldError``.
        """

        allowed: dict[str, object] = {}
        blocked: list[str] = []
        for name, value in fields.items():
            if name in PROTECTED_FIELDS:
                blocked.append(name)
            elif name not in self.columns:
                log.warning("Ignoring unknown column %s for record %s", name, record_id)
            else:
                allowed[name] = value
        if blocked:
            log.warning("Blocked attempt to update protected fields: %s", ", ".join(blocked))
        if not allowed:
            if blocked and self.strict:
                raise ProtectedFieldError(
                    f"Update for record {record_id} only touches protected fields: "
                    + ", ".join(blocked)
                )
            log.debug("No fields to update for record %s", record_id)
            return False

        stmt = update(self.table).where(self.table.c.id == record_id).values(**allowed)
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        log.debug("Updated record %s fields: %s", record_id, ", ".join(sorted(allowed)))
        return result.rowcount > 0

    def search(self, query: str, fields: Sequence[str] | None = None) -> list[LocalRecord]:
        names = [name for name in (fields or DEFAULT_SEARCH_FIELDS) if name in self.columns]
        if not names or not query.strip():
            return []
        pattern = f"%{query.strip()}%"
        stmt = (
            select(self.table)
            .where(or_(*(self.table.c[name].like(pattern) for name in names)))
            .limit(SEARCH_LIMIT)
        )
        if "title" in self.columns:
            stmt = stmt.order_by(self.table.c.title)
        with self.engine.connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]

    def all(
        self,
        record_filter: RecordFilter | None = None,
        *,
        sort_by: str = "title",
        limit: int | None = None,
        offset: int = 0,
    ) -> list[LocalRecord]:
        stmt = select(self.table)
        if sort_by in self.columns:
            stmt = stmt.order_by(self.table.c[sort_by], self.table.c.id)
        if limit is not None:
            stmt = stmt.limit(limit).offset(offset)
        elif offset:
            stmt = stmt.offset(offset)
        with self.engine.connect() as conn:
            records: list[LocalRecord] = [dict(row) for row in conn.execute(stmt).mappings()]
        if record_filter is None:
            return records
        return [record for record in records if record_filter(record)]
