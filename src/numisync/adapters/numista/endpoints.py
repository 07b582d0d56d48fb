"""Map request paths to the endpoint names used for monthly usage accounting."""

from __future__ import annotations

import re
from typing import Final

SEARCH_TYPES: Final[str] = "searchTypes"
GET_TYPE: Final[str] = "getType"
GET_ISSUES: Final[str] = "getIssues"
GET_PRICES: Final[str] = "getPrices"
GET_ISSUERS: Final[str] = "getIssuers"
OTHER: Final[str] = "other"

_STATIC: Final[dict[str, str]] = {
    "/types": SEARCH_TYPES,
    "/issuers": GET_ISSUERS,
}

# Most specific first.
_PATTERNS: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (re.compile(r"^/types/\d+/issues/\d+/prices$"), GET_PRICES),
    (re.compile(r"^/types/\d+/issues$"), GET_ISSUES),
    (re.compile(r"^/types/\d+$"), GET_TYPE),
)


def endpoint_name(path: str) -> str:
    clean = path.split("?", 1)[0].rstrip("/") or "/"
    if not clean.startswith("/"):
        clean = f"/{clean}"
    if clean in _STATIC:
        return _STATIC[clean]
    for pattern, name in _PATTERNS:
        if pattern.match(clean):
            return name
    return OTHER
