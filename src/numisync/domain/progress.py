"""Collection-wide enrichment progress, rebuilt from each record's note."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .enums import FreshnessStatus, MetadataSection, OverallStatus, SectionStatus
from .freshness import freshness_from_timestamp
from .metadata import decode_note, overall_status_of

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .metadata import EnrichmentMetadata, FetchSelection

REPORT_RULE = "=" * 70

_FRESHNESS_LABELS: dict[FreshnessStatus, str] = {
    FreshnessStatus.CURRENT: "Current (<3mo)",
    FreshnessStatus.RECENT: "Recent (3-12mo)",
    FreshnessStatus.AGING: "Aging (1-2yr)",
    FreshnessStatus.OUTDATED: "Outdated (>2yr)",
    FreshnessStatus.NEVER_UPDATED: "Never updated",
}


@dataclass(slots=True)
class CollectionProgress:
    total: int = 0
    overall: Counter[OverallStatus] = field(default_factory=Counter)
    sections: dict[MetadataSection, Counter[SectionStatus]] = field(
        default_factory=lambda: {name: Counter() for name in MetadataSection}
    )
    pricing_freshness: Counter[FreshnessStatus] = field(default_factory=Counter)

    @property
    def completion_percent(self) -> float:
        if self.total == 0:
            return 0.0
        return round(self.overall[OverallStatus.COMPLETE] / self.total * 100, 1)


@dataclass(frozen=True, slots=True)
class ProgressFilter:
    """Criteria a record's note must meet; unset criteria match everything."""

    overall: OverallStatus | None = None
    sections: Mapping[MetadataSection, SectionStatus] = field(default_factory=dict)
    pricing_freshness: FreshnessStatus | None = None


def _pricing_freshness(metadata: EnrichmentMetadata, now: datetime) -> FreshnessStatus:
    if metadata.status(MetadataSection.PRICING) is not SectionStatus.MERGED:
        return FreshnessStatus.NEVER_UPDATED
    timestamp = metadata.section(MetadataSection.PRICING).get("timestamp")
    return freshness_from_timestamp(
        timestamp if isinstance(timestamp, str) else None, now=now
    ).status


def summarize_progress(
    notes: Iterable[str | None],
    fetch: FetchSelection,
    *,
    now: datetime | None = None,
) -> CollectionProgress:
    """Count overall and per-section statuses across a collection's notes."""

    moment = now or datetime.now(UTC)
    progress = CollectionProgress()
    for note in notes:
        metadata = decode_note(note).metadata
        progress.total += 1
        progress.overall[overall_status_of(metadata, fetch)] += 1
        for name in MetadataSection:
            progress.sections[name][metadata.status(name)] += 1
        progress.pricing_freshness[_pricing_freshness(metadata, moment)] += 1
    return progress


def records_matching(
    notes: Mapping[int, str | None],
    fetch: FetchSelection,
    record_filter: ProgressFilter,
    *,
    now: datetime | None = None,
) -> list[int]:
    """Return the ids whose note meets ``record_filter``, in ascending order."""

    moment = now or datetime.now(UTC)
    matched: list[int] = []
    for record_id in sorted(notes):
        metadata = decode_note(notes[record_id]).metadata
        if (
            record_filter.overall is not None
            and overall_status_of(metadata, fetch) is not record_filter.overall
        ):
            continue
        if any(
            metadata.status(name) is not status
            for name, status in record_filter.sections.items()
        ):
            continue
        if (
            record_filter.pricing_freshness is not None
            and _pricing_freshness(metadata, moment) is not record_filter.pricing_freshness
        ):
            continue
        matched.append(record_id)
    return matched


def _share(count: int, total: int) -> str:
    return f"{count / total * 100:.1f}%" if total else "0.0%"


def format_progress_report(
    progress: CollectionProgress,
    *,
    collection: str,
    session_calls: int | None = None,
) -> str:
    """Render ``progress`` as the plain-text report shown by the CLI."""

    lines = [REPORT_RULE, "ENRICHMENT PROGRESS REPORT", REPORT_RULE, ""]
    lines.append(f"Collection: {collection}")
    if session_calls is not None:
        lines.append(f"Session API calls: {session_calls}")
    lines += ["", "OVERALL STATUS:", f"  Total records: {progress.total}"]
    for status in OverallStatus:
        count = progress.overall[status]
        lines.append(f"  {status.value.title()}: {count} ({_share(count, progress.total)})")

    for name in MetadataSection:
        lines += ["", f"{name.name} DATA:"]
        for status, count in sorted(progress.sections[name].items()):
            lines.append(f"  {status.value}: {count}")

    lines += ["", "PRICING FRESHNESS:"]
    for status, label in _FRESHNESS_LABELS.items():
        lines.append(f"  {label}: {progress.pricing_freshness[status]}")

    lines += ["", f"Overall completion: {progress.completion_percent}%", REPORT_RULE]
    return "\n".join(lines)
