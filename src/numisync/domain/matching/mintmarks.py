"""Mint-mark normalization for comparing local records with catalog issues.

Handles variations such as ``D`` vs ``(D)`` vs ``Denver`` vs ``d``.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

US_MINT_MAP: Final[Mapping[str, str]] = MappingProxyType(
    {
        "philadelphia": "P",
        "denver": "D",
        "san francisco": "S",
        "west point": "W",
        "new orleans": "O",
        "charlotte": "C",
        "carson city": "CC",
        "dahlonega": "D",
        "manila": "M",
    }
)

# Consulted only for names absent from the US map.
WORLD_MINT_MAP: Final[Mapping[str, str]] = MappingProxyType(
    {
        "mexico city": "MO",
        "kremnica": "MK",
        "paris": "A",
        "berlin": "A",
        "hamburg": "J",
        "munich": "D",
        "stuttgart": "F",
        "karlsruhe": "G",
        "vienna": "W",
        "brussels": "B",
        "ottawa": "C",
        "melbourne": "M",
        "sydney": "S",
        "perth": "P",
        "bombay": "B",
        "mumbai": "B",
        "calcutta": "C",
        "kolkata": "C",
        "pretoria": "SA",
        "london": "",
        "tower mint": "",
        "royal mint": "",
        "utrecht": "",
        "rome": "R",
        "birmingham": "H",
    }
)

_STRIP_PATTERN = re.compile(r"[()\[\].]")
_PAREN_PATTERN = re.compile(r"\(([^)]+)\)")


def _city_code(name: str) -> str | None:
    lowered = name.lower()
    if lowered in US_MINT_MAP:
        return US_MINT_MAP[lowered]
    if lowered in WORLD_MINT_MAP:
        return WORLD_MINT_MAP[lowered]
    return None


def normalize_mintmark(raw: str | None) -> str:
    """Normalize a raw mint mark to a comparable code; blank input yields ``""``."""

    if not raw:
        return ""
    mark = raw.strip()
    if not mark:
        return ""

    code = _city_code(mark)
    if code is not None:
        return code

    return _STRIP_PATTERN.sub("", mark).strip().upper()


def mintmarks_match(a: str | None, b: str | None) -> bool:
    """Compare two mint marks after normalization; two blanks are a match."""

    return normalize_mintmark(a) == normalize_mintmark(b)


def resolve_mint_name(mint_letter: str | None, mints: Iterable[Mapping[str, object]]) -> str | None:
    """Pick the mint name for ``mint_letter`` from a catalog type's ``mints`` list.

    Tries, in order: the mint's own ``letter`` field, a reverse lookup through the
    city maps, and a letter in parentheses inside the mint name. Returns ``None``
    when no single mint can be chosen with confidence.
    """

    mint_list = list(mints)
    if not mint_letter or not mint_list:
        return None
    if len(mint_list) == 1:
        name = mint_list[0].get("name")
        return str(name) if name else None

    wanted = normalize_mintmark(mint_letter)
    if not wanted:
        return None

    for mint in mint_list:
        letter = mint.get("letter")
        if isinstance(letter, str) and normalize_mintmark(letter) == wanted:
            name = mint.get("name")
            return str(name) if name else None

    cities = {**WORLD_MINT_MAP, **US_MINT_MAP}
    candidates: list[str] = []
    for mint in mint_list:
        name = mint.get("name")
        if not isinstance(name, str) or not name:
            continue
        lowered = name.lower()
        if any(
            normalize_mintmark(code) == wanted and city in lowered
            for city, code in cities.items()
        ):
            candidates.append(name)
    if len(candidates) == 1:
        return candidates[0]

    for mint in mint_list:
        name = mint.get("name")
        if not isinstance(name, str) or not name:
            continue
        found = _PAREN_PATTERN.search(name)
        if found and normalize_mintmark(found.group(1)) == wanted:
            return name

    return None
