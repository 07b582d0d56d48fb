from __future__ import annotations

import pytest

from numisync.adapters.numista import endpoint_name


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/types", "searchTypes"),
        ("/types?q=kopek&page=1", "searchTypes"),
        ("/types/3011", "getType"),
        ("/types/3011/", "getType"),
        ("types/3011/issues", "getIssues"),
        ("/types/3011/issues/55002/prices", "getPrices"),
        ("/issuers", "getIssuers"),
        ("/users/1/collected_items", "other"),
        ("/types/abc", "other"),
    ],
)
def test_endpoint_name(path: str, expected: str) -> None:
    assert endpoint_name(path) == expected
