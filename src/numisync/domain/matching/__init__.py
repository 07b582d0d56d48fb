"""Identity matching between local records and catalog data."""

from __future__ import annotations

from .confidence import candidate_denomination, match_confidence, parse_denomination
from .issuers import IssuerAliases, best_issuer_match, default_issuer_aliases
from .issues import (
    CommentNarrower,
    IssueMatch,
    IssueMatchOptions,
    IssueNarrower,
    MintMarkNarrower,
    VaryingFields,
    default_narrowers,
    detect_varying_fields,
    match_issue,
)
from .mintmarks import mintmarks_match, normalize_mintmark, resolve_mint_name
from .similarity import similarity
from .units import UnitNormalizer, default_unit_normalizer

__all__ = [
    "CommentNarrower",
    "IssueMatch",
    "IssueMatchOptions",
    "IssueNarrower",
    "IssuerAliases",
    "MintMarkNarrower",
    "UnitNormalizer",
    "VaryingFields",
    "best_issuer_match",
    "candidate_denomination",
    "default_issuer_aliases",
    "default_narrowers",
    "default_unit_normalizer",
    "detect_varying_fields",
    "match_confidence",
    "match_issue",
    "mintmarks_match",
    "normalize_mintmark",
    "parse_denomination",
    "resolve_mint_name",
    "similarity",
]
