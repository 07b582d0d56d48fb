"""Catalog-side value objects consumed by matching and merging.

These are translated from validated API payloads and are immutable once built.
``raw`` keeps the original payload so field mappings can address any path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from numisync.domain.matching.issues import IssueMatch


@dataclass(frozen=True, slots=True, kw_only=True)
class CatalogIssuer:
    code: str
    name: str
    level: int = 0


@dataclass(frozen=True, slots=True, kw_only=True)
class CatalogCandidate:
    """A catalog type, either from search results or the full type detail."""

    id: int
    title: str
    issuer: CatalogIssuer | None = None
    min_year: int | None = None
    max_year: int | None = None
    value_text: str | None = None
    numeric_value: float | None = None
    category: str | None = None
    object_type: str | None = None
    raw: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True, kw_only=True)
class Issue:
    """A year/mint/variant-specific issue of a catalog type."""

    id: int
    year: int | None = None
    gregorian_year: int | None = None
    mint_letter: str | None = None
    comment: str | None = None
    mintage: int | None = None
    marks: tuple[str, ...] = ()
    signatures: tuple[str, ...] = ()
    raw: Mapping[str, object] = field(default_factory=dict)

    def matches_year(self, year: int) -> bool:
        return self.year == year or self.gregorian_year == year


@dataclass(frozen=True, slots=True)
class GradePrice:
    grade: str
    price: float


@dataclass(frozen=True, slots=True, kw_only=True)
class PricingSnapshot:
    currency: str
    prices: tuple[GradePrice, ...] = ()

    def price_for(self, grade: str) -> float | None:
        for entry in self.prices:
            if entry.grade == grade:
                return entry.price
        return None


@dataclass(slots=True)
class CoinData:
    """Everything fetched for one local record against one catalog type."""

    basic: CatalogCandidate
    issue_match: IssueMatch | None = None
    issue: Issue | None = None
    pricing: PricingSnapshot | None = None
    pricing_error: str | None = None
