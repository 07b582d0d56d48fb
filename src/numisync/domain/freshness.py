"""Pricing freshness buckets derived from a section timestamp."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from .enums import FreshnessStatus

log = logging.getLogger(__name__)

DAYS_PER_MONTH = 30.44


@dataclass(frozen=True, slots=True)
class PricingFreshness:
    status: FreshnessStatus
    age_months: float | None = None
    timestamp: str | None = None


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def bucket_for_age(age_months: float) -> FreshnessStatus:
    if age_months < 3:
        return FreshnessStatus.CURRENT
    if age_months < 12:
        return FreshnessStatus.RECENT
    if age_months < 24:
        return FreshnessStatus.AGING
    return FreshnessStatus.OUTDATED


def freshness_from_timestamp(
    timestamp: str | None,
    *,
    now: datetime | None = None,
) -> PricingFreshness:
    if not timestamp:
        return PricingFreshness(status=FreshnessStatus.NEVER_UPDATED)
    try:
        updated_at = parse_timestamp(timestamp)
    except ValueError:
        log.warning("Unparseable pricing timestamp %r", timestamp)
        return PricingFreshness(status=FreshnessStatus.NEVER_UPDATED, timestamp=timestamp)

    age_days = ((now or datetime.now(UTC)) - updated_at).total_seconds() / 86_400
    age_months = age_days / DAYS_PER_MONTH
    return PricingFreshness(
        status=bucket_for_age(age_months),
        age_months=age_months,
        timestamp=timestamp,
    )
