from .catalog import CatalogSource
from .records import RecordStore

__all__ = ["CatalogSource", "RecordStore"]
