from __future__ import annotations

import pytest

from numisync.adapters.numista.schema import (
    NumistaErrorResponse,
    NumistaIssue,
    NumistaPrices,
    NumistaType,
)
from numisync.adapters.numista.translator import translate_issue, translate_prices, translate_type


def test_translate_type_keeps_raw_payload(numista_payloads: dict[str, object]) -> None:
    candidate = translate_type(NumistaType.model_validate(numista_payloads["type_10_kopeks"]))

    assert candidate.id == 3011
    assert candidate.issuer is not None
    assert candidate.issuer.code == "russie_urss"
    assert candidate.value_text == "10 Kopeks"
    assert candidate.numeric_value == pytest.approx(0.1)
    assert candidate.object_type == "Standard circulation coin"
    assert candidate.raw["type"] == "Standard circulation coin"
    assert candidate.raw["composition"] == {"text": "Copper-nickel"}
    assert candidate.raw["references"][1]["number"] == "85"  # type: ignore[index]


def test_translate_issue_describes_marks() -> None:
    payload = {
        "id": 1,
        "year": 1900,
        "mint_letter": "A",
        "marks": [{"id": 3, "title": "Star"}, {"id": 2, "title": "Cross"}],
        "signatures": [{"signer_name": "J. Doe"}],
    }

    issue = translate_issue(NumistaIssue.model_validate(payload))

    assert issue.marks == ("Cross", "Star")
    assert issue.signatures == ("J. Doe",)
    assert issue.mint_letter == "A"


def test_translate_prices() -> None:
    payload = {"currency": "EUR", "prices": [{"grade": "vf", "price": 3}]}

    pricing = translate_prices(NumistaPrices.model_validate(payload))

    assert pricing.currency == "EUR"
    assert pricing.price_for("vf") == 3.0
    assert pricing.price_for("unc") is None


def test_error_response_text() -> None:
    assert NumistaErrorResponse.model_validate({"error_message": "Bad key"}).text() == "Bad key"
    assert NumistaErrorResponse.model_validate({"message": "Oops"}).text() == "Oops"
    assert NumistaErrorResponse.model_validate({}).text() is None
