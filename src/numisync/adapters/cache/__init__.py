from .lock import CacheFileMetadata, CacheLock, LockOwner, LockStatusReport, lock_path_for
from .store import CacheStats, MonthlyUsage, PersistentCache, usage_key_for

__all__ = [
    "CacheFileMetadata",
    "CacheLock",
    "CacheStats",
    "LockOwner",
    "LockStatusReport",
    "MonthlyUsage",
    "PersistentCache",
    "lock_path_for",
    "usage_key_for",
]
