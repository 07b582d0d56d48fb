"""Read helpers for local collection records.

A local record is an opaque mapping owned by the record store; these helpers
only coerce the handful of fields the reconciliation engine reads.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from .errors import ValidationError

type LocalRecord = Mapping[str, object]

_YEAR_PATTERN = re.compile(r"^\s*(-?\d{1,4})")


def record_text(record: LocalRecord, name: str) -> str:
    value = record.get(name)
    if value is None:
        return ""
    return str(value).strip()


def record_year(record: LocalRecord) -> int | None:
    """Return the record's year as an integer, or ``None`` when absent or unparseable."""

    try:
        return parse_year(record.get("year"))
    except ValidationError:
        return None


def parse_year(value: object) -> int | None:
    """Parse a year value; blank is ``None`` and garbage raises ``ValidationError``."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    text = str(value).strip()
    if not text:
        return None
    found = _YEAR_PATTERN.match(text)
    if found is None:
        raise ValidationError(f"Unparseable year: {value!r}")
    return int(found.group(1))


def record_number(record: LocalRecord, name: str) -> float | None:
    value = record.get(name)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    text = str(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return parse_fraction(text)


def parse_fraction(text: str) -> float | None:
    """Parse ``"1/2"``-style denominations; return ``None`` for anything else."""

    numerator, sep, denominator = text.partition("/")
    if not sep:
        return None
    try:
        return float(numerator) / float(denominator)
    except (ValueError, ZeroDivisionError):
        return None
