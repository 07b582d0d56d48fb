"""Denomination unit normalization and search-form resolution.

Catalog searches do not cross-match denomination spellings between languages
(``kopek`` vs ``kopeck`` vs ``копейка``), so every unit is folded to a canonical
form before comparison, and searches may be retried under every canonical an
ambiguous alias belongs to.
"""

from __future__ import annotations

import json
import logging
import unicodedata
from dataclasses import dataclass
from functools import cache
from importlib import resources
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

type AliasTable = Mapping[str, object]


def _clean(raw: str) -> str:
    return unicodedata.normalize("NFC", raw).lower().strip().replace(".", "")


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return unicodedata.normalize("NFC", stripped)


@dataclass(frozen=True, slots=True)
class FormOverride:
    singular: str
    plural: str


@dataclass(frozen=True, slots=True)
class UnitNormalizer:
    """Immutable alias lookup built once from a canonical -> aliases table."""

    aliases: Mapping[str, str]
    plurals: Mapping[str, str]
    canonicals_by_alias: Mapping[str, tuple[str, ...]]
    issuer_overrides: Mapping[str, Mapping[str, FormOverride]]

    @classmethod
    def from_tables(
        cls,
        denominations: AliasTable,
        issuer_overrides: AliasTable | None = None,
    ) -> UnitNormalizer:
        """Build a normalizer from the denomination and issuer-override tables.

        Entries may use the ``{"aliases": [...], "plural": "..."}`` form or a bare
        list of aliases. Keys starting with ``_`` are comments. When an alias is
        also a canonical in its own right it keeps mapping to itself; otherwise the
        last canonical listing it wins.
        """

        aliases: dict[str, str] = {}
        canonicals: list[str] = []
        plurals: dict[str, str] = {}
        all_canonicals: dict[str, list[str]] = {}

        for canonical, value in denominations.items():
            if canonical.startswith("_"):
                continue
            if isinstance(value, list):
                variants = [str(item) for item in value]
                plural = None
            elif isinstance(value, dict):
                variants = [str(item) for item in value.get("aliases") or []]
                plural = value.get("plural")
            else:
                log.warning("Ignoring malformed denomination entry %r", canonical)
                continue

            canonicals.append(canonical)
            if plural:
                plurals[canonical] = str(plural)
            for variant in (canonical, *variants):
                key = _clean(variant)
                if not key:
                    continue
                aliases[key] = canonical
                bucket = all_canonicals.setdefault(key, [])
                if canonical not in bucket:
                    bucket.append(canonical)

        for canonical in canonicals:
            aliases[_clean(canonical)] = canonical

        overrides: dict[str, Mapping[str, FormOverride]] = {}
        for canonical, by_issuer in (issuer_overrides or {}).items():
            if canonical.startswith("_") or not isinstance(by_issuer, dict):
                continue
            overrides[canonical] = MappingProxyType(
                {
                    issuer: FormOverride(singular=forms["singular"], plural=forms["plural"])
                    for issuer, forms in by_issuer.items()
                    if isinstance(forms, dict)
                }
            )

        return cls(
            aliases=MappingProxyType(aliases),
            plurals=MappingProxyType(plurals),
            canonicals_by_alias=MappingProxyType(
                {key: tuple(values) for key, values in all_canonicals.items()}
            ),
            issuer_overrides=MappingProxyType(overrides),
        )

    def normalize(self, raw: str | None) -> str:
        """Return the canonical unit for ``raw``, or its accent-stripped form."""

        if not raw:
            return ""
        unit = _clean(raw)
        if not unit:
            return ""

        if unit in self.aliases:
            return self.aliases[unit]

        stripped = strip_diacritics(unit)
        if stripped != unit and stripped in self.aliases:
            return self.aliases[stripped]

        if unit.endswith("s") and len(unit) > 2:
            singular = unit[:-1]
            if singular in self.aliases:
                return self.aliases[singular]
            stripped_singular = strip_diacritics(singular)
            if stripped_singular != singular and stripped_singular in self.aliases:
                return self.aliases[stripped_singular]

        return stripped

    def search_form(
        self,
        canonical: str,
        numeric_value: float | None,
        *,
        issuer_code: str | None = None,
    ) -> str:
        if not canonical:
            return canonical
        override = self.issuer_overrides.get(canonical, {}).get(issuer_code or "")
        if numeric_value == 1:
            return override.singular if override else canonical
        if override:
            return override.plural
        return self.plurals.get(canonical, canonical)

    def units_match(self, a: str | None, b: str | None) -> bool:
        left = self.normalize(a)
        right = self.normalize(b)
        if not left or not right:
            return False
        return left == right

    def alternate_search_forms(self, raw: str | None, numeric_value: float | None) -> list[str]:
        if not raw:
            return []
        canonicals = self.canonicals_by_alias.get(_clean(raw), ())
        if len(canonicals) <= 1:
            return []
        return [self.search_form(canonical, numeric_value) for canonical in canonicals]


def _load_json(name: str) -> dict[str, object]:
    text = resources.files("numisync.data").joinpath(name).read_text(encoding="utf-8")
    return json.loads(text)


@cache
def default_unit_normalizer() -> UnitNormalizer:
    """Return the normalizer built from the bundled alias tables."""

    return UnitNormalizer.from_tables(
        _load_json("denomination_aliases.json"),
        _load_json("issuer_denomination_overrides.json"),
    )
