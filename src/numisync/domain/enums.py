"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SectionStatus(StrEnum):
    NOT_QUERIED = "NOT_QUERIED"
    PENDING = "PENDING"
    MERGED = "MERGED"
    ERROR = "ERROR"
    SKIPPED = "SKIPPED"
    NO_MATCH = "NO_MATCH"
    NO_DATA = "NO_DATA"


class MetadataSection(StrEnum):
    BASIC = "basicData"
    ISSUE = "issueData"
    PRICING = "pricingData"


class OverallStatus(StrEnum):
    COMPLETE = "COMPLETE"
    PARTIAL = "PARTIAL"
    PENDING = "PENDING"
    ERROR = "ERROR"


class FreshnessStatus(StrEnum):
    CURRENT = "CURRENT"
    RECENT = "RECENT"
    AGING = "AGING"
    OUTDATED = "OUTDATED"
    NEVER_UPDATED = "NEVER_UPDATED"


class MatchOutcome(StrEnum):
    AUTO_MATCHED = "AUTO_MATCHED"
    USER_PICK = "USER_PICK"
    NO_MATCH = "NO_MATCH"
    NO_ISSUES = "NO_ISSUES"


class EmptyMintmarkPolicy(StrEnum):
    """How a blank local mint mark is read when the catalog issues differ by mark."""

    NO_MINT_MARK = "no_mint_mark"
    UNKNOWN = "unknown"


class Priority(StrEnum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


PRIORITY_ORDER: dict[Priority, int] = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}


class LockStatus(StrEnum):
    NONE = "none"
    UNLOCKED = "unlocked"
    LOCKED = "locked"
    STALE = "stale"
