from __future__ import annotations

from numisync.domain.catalog import CatalogIssuer
from numisync.domain.matching import IssuerAliases, best_issuer_match, default_issuer_aliases
from numisync.domain.matching.issuers import normalize_issuer_name


def test_normalize_issuer_name() -> None:
    assert normalize_issuer_name("  U.S.A. ") == "usa"
    assert normalize_issuer_name("Soviet   Union") == "soviet union"
    assert normalize_issuer_name(None) == ""


def test_default_aliases_resolve_codes() -> None:
    aliases = default_issuer_aliases()

    assert aliases.lookup("USSR") == "russie_urss"
    assert aliases.lookup("Holland") == "pays-bas"
    assert aliases.lookup("Soviet Union") == "russie_urss"
    assert aliases.lookup("Atlantis") is None


def test_alias_table_skips_entries_without_code() -> None:
    aliases = IssuerAliases.from_table(
        {"_comment": "x", "Nowhere": {"aliases": ["nw"]}, "Elsewhere": {"code": "else"}}
    )

    assert aliases.lookup("nw") is None
    assert aliases.lookup("elsewhere") == "else"


def test_best_issuer_match_prefers_exact_most_specific() -> None:
    issuers = [
        CatalogIssuer(code="broad", name="Germany", level=1),
        CatalogIssuer(code="specific", name="germany", level=3),
        CatalogIssuer(code="other", name="Austria", level=5),
    ]

    match = best_issuer_match("GERMANY", issuers)

    assert match is not None
    assert match.code == "specific"


def test_best_issuer_match_accepts_close_spelling() -> None:
    issuers = [
        CatalogIssuer(code="united-kingdom", name="United Kingdom"),
        CatalogIssuer(code="united-states", name="United States"),
    ]

    match = best_issuer_match("Unitd States", issuers)

    assert match is not None
    assert match.code == "united-states"


def test_best_issuer_match_rejects_distant_names() -> None:
    assert best_issuer_match("Atlantis", [CatalogIssuer(code="de", name="Germany")]) is None
    assert best_issuer_match("", [CatalogIssuer(code="de", name="Germany")]) is None
