"""Translate validated Numista payloads into catalog value objects."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from numisync.domain.catalog import (
    CatalogCandidate,
    CatalogIssuer,
    GradePrice,
    Issue,
    PricingSnapshot,
)

from .schema import NumistaIssue, NumistaIssuer, NumistaPrices, NumistaType

if TYPE_CHECKING:
    from collections.abc import Sequence


def _describe(entries: Sequence[Mapping[str, object]]) -> tuple[str, ...]:
    described: list[str] = []
    for entry in entries:
        for key in ("title", "name", "signer_name", "id"):
            value = entry.get(key)
            if value not in (None, ""):
                described.append(str(value))
                break
    return tuple(sorted(described))


def translate_issuer(payload: NumistaIssuer) -> CatalogIssuer:
    return CatalogIssuer(code=payload.code, name=payload.name, level=payload.level or 0)


def translate_type(payload: NumistaType) -> CatalogCandidate:
    return CatalogCandidate(
        id=payload.id,
        title=payload.title,
        issuer=translate_issuer(payload.issuer) if payload.issuer else None,
        min_year=payload.min_year,
        max_year=payload.max_year,
        value_text=payload.value.text if payload.value else None,
        numeric_value=payload.value.numeric_value if payload.value else None,
        category=payload.category,
        object_type=payload.object_type,
        raw=payload.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def translate_issue(payload: NumistaIssue) -> Issue:
    return Issue(
        id=payload.id,
        year=payload.year,
        gregorian_year=payload.gregorian_year,
        mint_letter=payload.mint_letter,
        comment=payload.comment,
        mintage=payload.mintage,
        marks=_describe(payload.marks),
        signatures=_describe(payload.signatures),
        raw=payload.model_dump(mode="json", exclude_none=True),
    )


def translate_prices(payload: NumistaPrices) -> PricingSnapshot:
    return PricingSnapshot(
        currency=payload.currency,
        prices=tuple(GradePrice(grade=entry.grade, price=entry.price) for entry in payload.prices),
    )
