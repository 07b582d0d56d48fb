from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from numisync import app
from numisync.adapters.numista.schema import NumistaPrices, NumistaType
from numisync.adapters.numista.translator import translate_prices, translate_type
from numisync.adapters.sqlalchemy import SqlAlchemyRecordStore
from numisync.domain.enums import MetadataSection, OverallStatus, SectionStatus
from numisync.domain.errors import ValidationError
from numisync.domain.merge import FieldMergeEngine
from numisync.domain.metadata import FetchSelection, decode_note, overall_status
from tests.helpers.numista import make_client_factory, make_config

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from numisync.adapters.cache import PersistentCache
    from tests.helpers.numista import FakeNumistaApi

FULL = FetchSelection(issue=True, pricing=True)


def test_enrich_1943_kopek_end_to_end(
    collection_db: Path,
    numista_api: FakeNumistaApi,
    cache_factory: Callable[..., PersistentCache],
) -> None:
    cache = cache_factory()

    result = app.enrich_collection_record(
        collection_db,
        1,
        3011,
        fetch=FULL,
        config=make_config(),
        cache=cache,
        client_factory=make_client_factory(numista_api),
    )

    record = SqlAlchemyRecordStore.open(collection_db).get_by_id(1)
    assert record is not None
    assert record["title"] == "10 Kopeks"
    assert record["country"] == "Soviet Union"
    assert record["catalognum3"] == "109"
    assert record["catalognum4"] == "3011"
    assert record["mintage"] == 34_000_000
    assert record["price1"] == 8.0
    assert record["price4"] == 0.5
    assert record["obverseimg"] is None
    assert "obverseimg" in result.updates

    note = str(record["note"])
    decoded = decode_note(note)
    assert decoded.user_notes == "Found in my grandfather's album."
    assert decoded.metadata.section(MetadataSection.ISSUE)["issueId"] == 55002
    assert decoded.metadata.status(MetadataSection.PRICING) is SectionStatus.MERGED
    assert overall_status(note, FULL) is OverallStatus.COMPLETE

    assert cache.get_monthly_usage().by_endpoint == {
        "getType": 1,
        "getIssues": 1,
        "getPrices": 1,
    }
    assert result.api_calls == 3

    progress = app.collection_progress(collection_db, fetch=FULL)
    assert progress.total == 3
    assert progress.overall[OverallStatus.COMPLETE] == 1
    assert progress.overall[OverallStatus.PENDING] == 2


def test_search_record_ranks_catalog_candidates(
    collection_db: Path,
    numista_api: FakeNumistaApi,
    cache_factory: Callable[..., PersistentCache],
) -> None:
    candidates = app.search_record(
        collection_db,
        1,
        config=make_config(),
        cache=cache_factory(),
        client_factory=make_client_factory(numista_api),
    )

    assert candidates[0].candidate.id == 3011


def test_search_unknown_record(collection_db: Path) -> None:
    with pytest.raises(ValidationError):
        app.search_record(collection_db, 404, config=make_config())


def test_compare_after_enrich_through_sqlite_finds_no_changes(
    collection_db: Path,
    numista_api: FakeNumistaApi,
    cache_factory: Callable[..., PersistentCache],
    numista_payloads: dict[str, object],
) -> None:
    result = app.enrich_collection_record(
        collection_db,
        1,
        3011,
        fetch=FULL,
        config=make_config(),
        cache=cache_factory(),
        client_factory=make_client_factory(numista_api),
    )
    record = SqlAlchemyRecordStore.open(collection_db).get_by_id(1)
    assert record is not None
    assert record["value"] == 10.0

    assert result.issue_match is not None
    issue = result.issue_match.issue
    pricing = translate_prices(NumistaPrices.model_validate(numista_payloads["prices_55002"]))
    kopek_type = translate_type(NumistaType.model_validate(numista_payloads["type_10_kopeks"]))
    comparison = FieldMergeEngine().compare(record, kopek_type, issue, pricing)

    still_different = {diff.field for diff in comparison.differing()}
    assert still_different <= {"obverseimg", "reverseimg", "edgeimg", "image"}
