"""Issuer-name resolution against an alias table and the catalog's issuer list."""

from __future__ import annotations

import json
import logging
import unicodedata
from dataclasses import dataclass
from functools import cache
from importlib import resources
from types import MappingProxyType
from typing import TYPE_CHECKING

from .similarity import similarity

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from numisync.domain.catalog import CatalogIssuer

log = logging.getLogger(__name__)

ISSUER_SIMILARITY_THRESHOLD = 0.6


def normalize_issuer_name(name: str | None) -> str:
    if not name:
        return ""
    folded = unicodedata.normalize("NFC", name).lower().replace(".", "")
    return " ".join(folded.split())


@dataclass(frozen=True, slots=True)
class IssuerAliases:
    """Immutable lookup from any known spelling of an issuer to its catalog code."""

    codes: Mapping[str, str]

    @classmethod
    def from_table(cls, table: Mapping[str, object]) -> IssuerAliases:
        codes: dict[str, str] = {}
        for canonical, entry in table.items():
            if canonical.startswith("_") or not isinstance(entry, dict):
                continue
            code = entry.get("code")
            if not code:
                log.warning("Issuer alias %r has no code", canonical)
                continue
            for alias in (canonical, *(entry.get("aliases") or [])):
                key = normalize_issuer_name(str(alias))
                if key:
                    codes[key] = str(code)
        return cls(codes=MappingProxyType(codes))

    def lookup(self, name: str | None) -> str | None:
        return self.codes.get(normalize_issuer_name(name))


@cache
def default_issuer_aliases() -> IssuerAliases:
    text = resources.files("numisync.data").joinpath("issuer_aliases.json").read_text(
        encoding="utf-8"
    )
    return IssuerAliases.from_table(json.loads(text))


def best_issuer_match(name: str, issuers: Sequence[CatalogIssuer]) -> CatalogIssuer | None:
    """Pick the issuer named ``name`` from the catalog list.

    Exact (case-insensitive) names win, the most specific level first. Otherwise
    the most similar name is accepted when it scores at least
    ``ISSUER_SIMILARITY_THRESHOLD``, higher level breaking ties.
    """

    wanted = normalize_issuer_name(name)
    if not wanted or not issuers:
        return None

    exact = [issuer for issuer in issuers if normalize_issuer_name(issuer.name) == wanted]
    if exact:
        return max(exact, key=lambda issuer: issuer.level)

    best: CatalogIssuer | None = None
    best_score = 0.0
    for issuer in issuers:
        score = similarity(wanted, normalize_issuer_name(issuer.name))
        if best is None or score > best_score or (
            score == best_score and issuer.level > best.level
        ):
            best = issuer
            best_score = score
    if best is None or best_score < ISSUER_SIMILARITY_THRESHOLD:
        return None
    return best
