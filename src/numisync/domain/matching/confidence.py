"""Deterministic confidence rubric for a local record against a catalog candidate."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from numisync.domain.records import parse_fraction, record_number, record_text, record_year

from .similarity import similarity
from .units import UnitNormalizer, default_unit_normalizer

if TYPE_CHECKING:
    from numisync.domain.catalog import CatalogCandidate
    from numisync.domain.records import LocalRecord

TITLE_WEIGHT = 30
YEAR_IN_RANGE = 25
YEAR_OUT_OF_RANGE = -15
COUNTRY_MATCH = 20
DENOMINATION_MATCH = 25
DENOMINATION_VALUE_ONLY = 15
DENOMINATION_MISMATCH = -20
UNIT_ONLY_MATCH = 15
UNIT_ONLY_MISMATCH = -10
CATEGORY_CIRCULATING = 10
CATEGORY_SPECIAL = -10
UNIT_SIMILARITY_THRESHOLD = 0.7

_TITLE_HEAD = re.compile(r"^[^-–(,]+")
_DENOMINATION = re.compile(r"^\s*(?P<number>\d+(?:[.,]\d+)?(?:\s*/\s*\d+)?)\s*(?P<unit>.*?)\s*$")
_SPECIAL_CATEGORIES = ("pattern", "proof", "non-circulating", "specimen")
_CIRCULATING_CATEGORIES = ("standard circulation", "circulating")


@dataclass(frozen=True, slots=True)
class Denomination:
    value: float | None
    unit: str


def parse_denomination(text: str | None) -> Denomination | None:
    """Split ``"10 Kopeks"`` or ``"1/2 Dollar"`` text into a numeric value and a unit."""

    if not text:
        return None
    found = _DENOMINATION.match(text)
    if found is None:
        return None
    number = found.group("number").replace(" ", "").replace(",", ".")
    value = parse_fraction(number) if "/" in number else float(number)
    return Denomination(value=value, unit=found.group("unit").strip())


def candidate_denomination(candidate: CatalogCandidate) -> Denomination | None:
    """Read the denomination from the value text, else from the head of the title."""

    parsed = parse_denomination(candidate.value_text)
    if parsed is not None:
        if parsed.value is None and candidate.numeric_value is not None:
            return Denomination(value=candidate.numeric_value, unit=parsed.unit)
        return parsed
    head = _TITLE_HEAD.match(candidate.title or "")
    if head is None:
        return None
    return parse_denomination(head.group(0))


def _squash(value: str) -> str:
    return " ".join(value.lower().split())


def _units_agree(units: UnitNormalizer, a: str, b: str) -> bool:
    return units.units_match(a, b) or similarity(a, b) > UNIT_SIMILARITY_THRESHOLD


def _title_score(record: LocalRecord, candidate: CatalogCandidate) -> int:
    title = record_text(record, "title")
    if not title or not candidate.title:
        return 0
    return round(similarity(title, candidate.title) * TITLE_WEIGHT)


def _year_score(record: LocalRecord, candidate: CatalogCandidate) -> int:
    year = record_year(record)
    if year is None:
        return 0
    low = candidate.min_year
    high = candidate.max_year if candidate.max_year is not None else low
    if low is None or high is None:
        return 0
    if low <= year <= high:
        return YEAR_IN_RANGE
    return YEAR_OUT_OF_RANGE


def _country_score(record: LocalRecord, candidate: CatalogCandidate) -> int:
    country = _squash(record_text(record, "country"))
    issuer = _squash(candidate.issuer.name) if candidate.issuer else ""
    if country and issuer and (country == issuer or country in issuer):
        return COUNTRY_MATCH
    return 0


def _denomination_score(
    record: LocalRecord,
    candidate: CatalogCandidate,
    units: UnitNormalizer,
) -> int:
    catalog = candidate_denomination(candidate)
    if catalog is None:
        return 0
    local_value = record_number(record, "value")
    local_unit = record_text(record, "unit")
    units_comparable = bool(local_unit and catalog.unit)

    if local_value is not None and catalog.value is not None:
        if abs(local_value - catalog.value) > 1e-9:
            return DENOMINATION_MISMATCH
        if not units_comparable:
            return DENOMINATION_VALUE_ONLY
        if _units_agree(units, local_unit, catalog.unit):
            return DENOMINATION_MATCH
        return DENOMINATION_MISMATCH

    if units_comparable:
        if _units_agree(units, local_unit, catalog.unit):
            return UNIT_ONLY_MATCH
        return UNIT_ONLY_MISMATCH
    return 0


def _category_score(candidate: CatalogCandidate) -> int:
    text = " ".join(part for part in (candidate.category, candidate.object_type) if part).lower()
    if not text:
        return 0
    if any(marker in text for marker in _SPECIAL_CATEGORIES):
        return CATEGORY_SPECIAL
    if any(marker in text for marker in _CIRCULATING_CATEGORIES):
        return CATEGORY_CIRCULATING
    return 0


def match_confidence(
    record: LocalRecord,
    candidate: CatalogCandidate,
    *,
    prior_catalog_id: int | None = None,
    units: UnitNormalizer | None = None,
) -> int:
    """Score ``candidate`` against ``record`` on a 0-100 scale.

    A candidate whose id equals the id recorded by an earlier enrichment scores
    100 outright; otherwise title, year, country, denomination and category
    contributions are summed and clamped.
    """

    if prior_catalog_id is not None and prior_catalog_id == candidate.id:
        return 100

    normalizer = units or default_unit_normalizer()
    score = (
        _title_score(record, candidate)
        + _year_score(record, candidate)
        + _country_score(record, candidate)
        + _denomination_score(record, candidate, normalizer)
        + _category_score(candidate)
    )
    return max(0, min(100, score))
