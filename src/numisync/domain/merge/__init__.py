from .engine import FieldComparison, FieldDiff, FieldMergeEngine, values_differ
from .mapping import (
    DEFAULT_FIELD_MAPPING,
    FieldMapping,
    catalog_display_name,
    format_catalog_for_display,
    get_catalog_number,
    get_nested_value,
)

__all__ = [
    "DEFAULT_FIELD_MAPPING",
    "FieldComparison",
    "FieldDiff",
    "FieldMapping",
    "FieldMergeEngine",
    "catalog_display_name",
    "format_catalog_for_display",
    "get_catalog_number",
    "get_nested_value",
    "values_differ",
]
