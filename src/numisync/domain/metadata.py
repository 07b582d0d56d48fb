"""Enrichment metadata embedded in a record's free-text note field.

The metadata is stored as JSON inside an HTML comment appended to the note, so
user-authored prose before the block is preserved byte for byte::

    This is a rare coin from my grandfather.

    <!-- NUMISMAT_ENRICHMENT_DATA
    {
      "version": "2.0",
      "basicData": {...},
      "issueData": {...},
      "pricingData": {...}
    }
    -->

A missing, truncated or unparseable block never raises: the note decodes to the
user text plus default metadata.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from .enums import MetadataSection, OverallStatus, SectionStatus
from .errors import CorruptStateError
from .freshness import PricingFreshness, freshness_from_timestamp

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

METADATA_START_TAG: Final[str] = "<!-- NUMISMAT_ENRICHMENT_DATA"
METADATA_END_TAG: Final[str] = "-->"
METADATA_VERSION: Final[str] = "2.0"

type SectionData = dict[str, object]


def _default_sections() -> dict[MetadataSection, SectionData]:
    return {
        MetadataSection.BASIC: {
            "status": SectionStatus.NOT_QUERIED.value,
            "timestamp": None,
            "numistaId": None,
            "numistaIdField": None,
            "fieldsMerged": [],
        },
        MetadataSection.ISSUE: {
            "status": SectionStatus.NOT_QUERIED.value,
            "timestamp": None,
            "issueId": None,
            "matchMethod": None,
            "fieldsMerged": [],
        },
        MetadataSection.PRICING: {
            "status": SectionStatus.NOT_QUERIED.value,
            "timestamp": None,
            "issueId": None,
            "currency": None,
            "fieldsMerged": [],
            "lastPrices": {},
        },
    }


@dataclass(slots=True)
class EnrichmentMetadata:
    version: str = METADATA_VERSION
    sections: dict[MetadataSection, SectionData] = field(default_factory=_default_sections)

    def section(self, name: MetadataSection | str) -> SectionData:
        return self.sections[MetadataSection(name)]

    def status(self, name: MetadataSection | str) -> SectionStatus:
        raw = self.section(name).get("status")
        try:
            return SectionStatus(str(raw))
        except ValueError:
            return SectionStatus.NOT_QUERIED

    def to_json(self) -> dict[str, object]:
        payload: dict[str, object] = {"version": self.version}
        for name in MetadataSection:
            payload[name.value] = self.sections[name]
        return payload

    @classmethod
    def from_json(cls, payload: object) -> EnrichmentMetadata:
        """Build metadata from parsed JSON, raising ``CorruptStateError`` on bad shape."""

        if not isinstance(payload, dict) or not payload.get("version"):
            raise CorruptStateError("Metadata is missing its version")
        sections: dict[MetadataSection, SectionData] = {}
        for name in MetadataSection:
            section = payload.get(name.value)
            if not isinstance(section, dict) or not section.get("status"):
                raise CorruptStateError(f"Metadata section {name.value} has no status")
            if section["status"] not in {status.value for status in SectionStatus}:
                raise CorruptStateError(
                    f"Metadata section {name.value} has unknown status {section['status']!r}"
                )
            sections[name] = dict(section)
        return cls(version=str(payload["version"]), sections=sections)


def normalized(metadata: EnrichmentMetadata | None) -> EnrichmentMetadata:
    """Return a copy of ``metadata`` with every section backfilled from defaults."""

    defaults = EnrichmentMetadata()
    if metadata is None:
        return defaults
    sections = {
        name: {**defaults.sections[name], **copy.deepcopy(metadata.sections.get(name, {}))}
        for name in MetadataSection
    }
    return EnrichmentMetadata(version=metadata.version or METADATA_VERSION, sections=sections)


@dataclass(slots=True)
class DecodedNote:
    user_notes: str
    metadata: EnrichmentMetadata


def decode_note(note: str | None) -> DecodedNote:
    """Split a note into user-authored text and the embedded metadata."""

    if not note or not note.strip():
        return DecodedNote(user_notes="", metadata=EnrichmentMetadata())

    start = note.find(METADATA_START_TAG)
    if start == -1:
        return DecodedNote(user_notes=note.strip(), metadata=EnrichmentMetadata())

    end = note.find(METADATA_END_TAG, start + len(METADATA_START_TAG))
    if end == -1:
        log.warning("Metadata block is missing its end marker; keeping the note as user text")
        return DecodedNote(user_notes=note.strip(), metadata=EnrichmentMetadata())

    user_notes = note[:start].strip()
    content = note[start + len(METADATA_START_TAG) : end].strip()
    if not content:
        return DecodedNote(user_notes=user_notes, metadata=EnrichmentMetadata())

    try:
        metadata = EnrichmentMetadata.from_json(json.loads(content))
    except json.JSONDecodeError as exc:
        log.error("Failed to parse metadata JSON: %s", exc)
        metadata = EnrichmentMetadata()
    except CorruptStateError as exc:
        log.warning("Invalid metadata structure, using defaults: %s", exc)
        metadata = EnrichmentMetadata()
    return DecodedNote(user_notes=user_notes, metadata=metadata)


def encode_note(user_notes: str | None, metadata: EnrichmentMetadata | None) -> str:
    """Append the metadata block to ``user_notes``."""

    body = json.dumps(normalized(metadata).to_json(), indent=2, ensure_ascii=False)
    block = f"{METADATA_START_TAG}\n{body}\n{METADATA_END_TAG}"
    notes = (user_notes or "").strip()
    if notes:
        return f"{notes}\n\n{block}"
    return block


def update_section(
    note: str | None,
    section: MetadataSection | str,
    patch: Mapping[str, object],
    *,
    now: datetime | None = None,
) -> str:
    """Shallow-merge ``patch`` into one section and re-encode the note.

    A timestamp is stamped unless the patch already carries one.
    """

    decoded = decode_note(note)
    metadata = normalized(decoded.metadata)
    name = MetadataSection(section)
    updated = {**metadata.sections[name], **patch}
    if isinstance(updated.get("status"), SectionStatus):
        updated["status"] = str(updated["status"])
    if not patch.get("timestamp"):
        updated["timestamp"] = (now or datetime.now(UTC)).isoformat()
    metadata.sections[name] = updated
    return encode_note(decoded.user_notes, metadata)


@dataclass(frozen=True, slots=True)
class FetchSelection:
    """Which metadata sections the caller asked to enrich."""

    basic: bool = True
    issue: bool = False
    pricing: bool = False

    def requested(self) -> tuple[MetadataSection, ...]:
        wanted = (
            (MetadataSection.BASIC, self.basic),
            (MetadataSection.ISSUE, self.issue),
            (MetadataSection.PRICING, self.pricing),
        )
        return tuple(name for name, enabled in wanted if enabled)


def section_status(note: str | None, section: MetadataSection | str) -> SectionStatus:
    return decode_note(note).metadata.status(section)


def pricing_freshness(note: str | None, *, now: datetime | None = None) -> PricingFreshness:
    timestamp = decode_note(note).metadata.section(MetadataSection.PRICING).get("timestamp")
    return freshness_from_timestamp(timestamp if isinstance(timestamp, str) else None, now=now)


def is_fully_enriched(note: str | None, selection: FetchSelection) -> bool:
    metadata = decode_note(note).metadata
    return all(metadata.status(name) is SectionStatus.MERGED for name in selection.requested())


def overall_status_of(metadata: EnrichmentMetadata, selection: FetchSelection) -> OverallStatus:
    statuses = [metadata.status(name) for name in selection.requested()]
    if SectionStatus.ERROR in statuses:
        return OverallStatus.ERROR
    merged = sum(1 for status in statuses if status is SectionStatus.MERGED)
    if statuses and merged == len(statuses):
        return OverallStatus.COMPLETE
    if merged > 0:
        return OverallStatus.PARTIAL
    return OverallStatus.PENDING


def overall_status(note: str | None, selection: FetchSelection) -> OverallStatus:
    return overall_status_of(decode_note(note).metadata, selection)
