"""Enrich one local record from a chosen catalog type and record the outcome."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import MatchOutcome, MetadataSection, SectionStatus
from .errors import CatalogError, ValidationError
from .merge import FieldMergeEngine
from .metadata import FetchSelection, update_section

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from .catalog import CoinData
    from .matching.issues import IssueMatch
    from .merge import FieldComparison
    from .ports.catalog import CatalogSource
    from .ports.records import RecordStore

log = logging.getLogger(__name__)

NUMISTA_ID_FIELD = "catalognum4"

_ISSUE_STATUS: dict[MatchOutcome, SectionStatus] = {
    MatchOutcome.AUTO_MATCHED: SectionStatus.MERGED,
    MatchOutcome.USER_PICK: SectionStatus.PENDING,
    MatchOutcome.NO_MATCH: SectionStatus.NO_MATCH,
    MatchOutcome.NO_ISSUES: SectionStatus.NO_DATA,
}


@dataclass(slots=True)
class EnrichmentResult:
    record_id: int
    type_id: int
    comparison: FieldComparison
    updates: dict[str, object] = field(default_factory=dict)
    issue_match: IssueMatch | None = None
    note: str = ""
    api_calls: int = 0


def _split_by_section(
    engine: FieldMergeEngine, updates: Mapping[str, object]
) -> dict[MetadataSection, list[str]]:
    split: dict[MetadataSection, list[str]] = {name: [] for name in MetadataSection}
    for name in updates:
        config = engine.mapping.get(name)
        if config is not None and config.requires_pricing_data:
            split[MetadataSection.PRICING].append(name)
        elif config is not None and config.requires_issue_data:
            split[MetadataSection.ISSUE].append(name)
        else:
            split[MetadataSection.BASIC].append(name)
    return split


def _issue_patch(match: IssueMatch | None, fields: list[str]) -> dict[str, object]:
    if match is None:
        return {"status": SectionStatus.NO_DATA.value}
    patch: dict[str, object] = {
        "status": _ISSUE_STATUS[match.outcome].value,
        "matchMethod": match.method or None,
    }
    if match.outcome is MatchOutcome.AUTO_MATCHED and match.issue is not None:
        patch["issueId"] = match.issue.id
        patch["fieldsMerged"] = fields
    return patch


def _pricing_patch(data: CoinData, fields: list[str]) -> dict[str, object]:
    if data.pricing_error:
        return {"status": SectionStatus.ERROR.value, "error": data.pricing_error}
    if data.issue is None:
        match = data.issue_match
        pending = match is not None and match.outcome is MatchOutcome.USER_PICK
        return {"status": (SectionStatus.PENDING if pending else SectionStatus.SKIPPED).value}
    if data.pricing is None or not data.pricing.prices:
        return {"status": SectionStatus.NO_DATA.value, "issueId": data.issue.id}
    return {
        "status": SectionStatus.MERGED.value,
        "issueId": data.issue.id,
        "currency": data.pricing.currency,
        "fieldsMerged": fields,
        "lastPrices": {entry.grade: entry.price for entry in data.pricing.prices},
    }


async def enrich_record(
    record_id: int,
    type_id: int,
    *,
    store: RecordStore,
    catalog: CatalogSource,
    engine: FieldMergeEngine | None = None,
    fetch: FetchSelection | None = None,
    accept_all: bool = True,
    selections: Mapping[str, bool | str] | None = None,
    now: datetime | None = None,
) -> EnrichmentResult:
    """Fetch ``type_id`` for a record, merge accepted fields and persist the outcome.

    With ``accept_all`` every differing field is taken from the catalog; otherwise
    only ``selections`` are applied. Catalog errors are written to the basic
    section and re-raised.
    """

    merge_engine = engine or FieldMergeEngine()
    wanted = fetch or FetchSelection()
    record = store.get_by_id(record_id)
    if record is None:
        raise ValidationError(f"Record {record_id} not found")
    raw_note = record.get("note")
    note = raw_note if isinstance(raw_note, str) else ""

    try:
        data = await catalog.fetch_coin_data(type_id, record, wanted)
    except CatalogError as exc:
        log.error("Catalog lookup failed for record %s (type %s): %s", record_id, type_id, exc)
        note = update_section(
            note,
            MetadataSection.BASIC,
            {"status": SectionStatus.ERROR.value, "error": str(exc)},
            now=now,
        )
        store.update(record_id, {"note": note})
        raise

    comparison = merge_engine.compare(record, data.basic, data.issue, data.pricing)
    if accept_all:
        chosen: Mapping[str, bool | str] = {diff.field: True for diff in comparison.differing()}
    else:
        chosen = selections or {}
    updates = merge_engine.merge(chosen, data.basic, data.issue, data.pricing)
    by_section = _split_by_section(merge_engine, updates)

    note = update_section(
        note,
        MetadataSection.BASIC,
        {
            "status": SectionStatus.MERGED.value,
            "numistaId": type_id,
            "numistaIdField": NUMISTA_ID_FIELD,
            "fieldsMerged": by_section[MetadataSection.BASIC],
        },
        now=now,
    )
    if wanted.issue:
        note = update_section(
            note,
            MetadataSection.ISSUE,
            _issue_patch(data.issue_match, by_section[MetadataSection.ISSUE]),
            now=now,
        )
    if wanted.pricing:
        note = update_section(
            note,
            MetadataSection.PRICING,
            _pricing_patch(data, by_section[MetadataSection.PRICING]),
            now=now,
        )

    store.update(record_id, {**updates, "note": note})
    log.info(
        "Enriched record %s from type %s: %d fields merged",
        record_id,
        type_id,
        len(updates),
    )
    return EnrichmentResult(
        record_id=record_id,
        type_id=type_id,
        comparison=comparison,
        updates=updates,
        issue_match=data.issue_match,
        note=note,
    )
