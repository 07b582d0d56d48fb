"""Field-level comparison and merge of catalog data into a local record."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from numisync.domain.enums import PRIORITY_ORDER, Priority
from numisync.domain.matching.mintmarks import resolve_mint_name

from .mapping import (
    DEFAULT_FIELD_MAPPING,
    PRICE_GRADES,
    FieldMapping,
    format_catalog_for_display,
    get_catalog_number,
    get_nested_value,
)

if TYPE_CHECKING:
    from numisync.domain.catalog import CatalogCandidate, Issue, PricingSnapshot
    from numisync.domain.records import LocalRecord

log = logging.getLogger(__name__)

NUMISTA_CATALOG_CODE = "Numista"
ACCEPT_SELECTION = "numista"

type FieldSelections = Mapping[str, bool | str]


@dataclass(frozen=True, slots=True)
class FieldDiff:
    field: str
    local_value: object | None
    catalog_value: object
    catalog_display: object
    is_different: bool
    priority: Priority
    description: str = ""
    catalog_code: str | None = None


@dataclass(frozen=True, slots=True)
class FieldComparison:
    fields: tuple[FieldDiff, ...] = ()
    has_changes: bool = False

    def differing(self) -> tuple[FieldDiff, ...]:
        return tuple(diff for diff in self.fields if diff.is_different)


def _is_empty(value: object) -> bool:
    return value is None or value == ""


def _as_number(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def values_differ(local: object, catalog: object) -> bool:
    """Case-insensitive, whitespace-trimmed string comparison; two blanks are equal.

    Two values that both read as numbers compare by value, so a REAL column
    holding ``10.0`` equals the catalog's ``"10"``.
    """

    if _is_empty(local) and _is_empty(catalog):
        return False
    if _is_empty(local) or _is_empty(catalog):
        return True
    local_number, catalog_number = _as_number(local), _as_number(catalog)
    if local_number is not None and catalog_number is not None:
        return local_number != catalog_number
    return str(local).strip().lower() != str(catalog).strip().lower()


def is_accepted(selection: bool | str) -> bool:
    return selection is True or selection == ACCEPT_SELECTION


@dataclass(slots=True)
class FieldMergeEngine:
    mapping: Mapping[str, FieldMapping] = field(default_factory=lambda: DEFAULT_FIELD_MAPPING)

    def enabled_fields(self) -> list[str]:
        return [name for name, config in self.mapping.items() if config.enabled]

    def _resolve(
        self,
        name: str,
        config: FieldMapping,
        catalog: CatalogCandidate,
        issue: Issue | None,
        pricing: PricingSnapshot | None,
    ) -> object | None:
        data = catalog.raw
        if name.startswith("catalognum"):
            if config.catalog_code == NUMISTA_CATALOG_CODE:
                return catalog.id
            if config.catalog_code:
                return get_catalog_number(data.get("references"), config.catalog_code)
            return None
        if name == "mintage" and issue is not None:
            return issue.mintage
        if name == "mintmark" and issue is not None:
            return issue.mint_letter
        if name in PRICE_GRADES and pricing is not None:
            return pricing.price_for(PRICE_GRADES[name])
        if name == "mint" and issue is not None and issue.mint_letter:
            mints = data.get("mints")
            if isinstance(mints, list):
                resolved = resolve_mint_name(issue.mint_letter, mints)
                if resolved:
                    return resolved
        return get_nested_value(data, config.catalog_path)

    def map_to_local_fields(
        self,
        catalog: CatalogCandidate,
        issue: Issue | None = None,
        pricing: PricingSnapshot | None = None,
    ) -> dict[str, object]:
        """Resolve every enabled mapping to a local field value.

        Fields whose data requirement is unmet, or whose value resolves empty,
        are left out. A failing transform only drops its own field.
        """

        mapped: dict[str, object] = {}
        for name, config in self.mapping.items():
            if not config.enabled:
                continue
            if config.requires_issue_data and issue is None:
                continue
            if config.requires_pricing_data and pricing is None:
                continue
            try:
                value = self._resolve(name, config, catalog, issue, pricing)
                if value is not None and config.transform is not None:
                    value = config.transform(value)
            except (TypeError, ValueError, KeyError, AttributeError):
                log.exception("Failed to map field %s", name)
                continue
            if value is None or value == "":
                continue
            mapped[name] = value
        return mapped

    def compare(
        self,
        record: LocalRecord,
        catalog: CatalogCandidate,
        issue: Issue | None = None,
        pricing: PricingSnapshot | None = None,
    ) -> FieldComparison:
        mapped = self.map_to_local_fields(catalog, issue, pricing)
        diffs: list[FieldDiff] = []
        for name, config in self.mapping.items():
            if not config.enabled or name not in mapped:
                continue
            catalog_value = mapped[name]
            display = catalog_value
            if name.startswith("catalognum") and config.catalog_code:
                display = format_catalog_for_display(config.catalog_code, catalog_value)
            local_value = record.get(name)
            diffs.append(
                FieldDiff(
                    field=name,
                    local_value=local_value,
                    catalog_value=catalog_value,
                    catalog_display=display,
                    is_different=values_differ(local_value, catalog_value),
                    priority=config.priority,
                    description=config.description,
                    catalog_code=config.catalog_code,
                )
            )
        diffs.sort(key=lambda diff: (not diff.is_different, PRIORITY_ORDER[diff.priority]))
        return FieldComparison(
            fields=tuple(diffs),
            has_changes=any(diff.is_different for diff in diffs),
        )

    def merge(
        self,
        selections: FieldSelections,
        catalog: CatalogCandidate,
        issue: Issue | None = None,
        pricing: PricingSnapshot | None = None,
    ) -> dict[str, object]:
        """Return the accepted subset of mapped values, keyed by local field."""

        mapped = self.map_to_local_fields(catalog, issue, pricing)
        updates: dict[str, object] = {}
        for name, selection in selections.items():
            if is_accepted(selection) and name in mapped:
                updates[name] = mapped[name]
            else:
                log.debug("Not merging field %s (selection=%r)", name, selection)
        return updates
