from .records import PROTECTED_FIELDS, SqlAlchemyRecordStore

__all__ = ["PROTECTED_FIELDS", "SqlAlchemyRecordStore"]
