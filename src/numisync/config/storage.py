"""Data storage configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_int_env

APP_DIR_NAME: Final[str] = "numisync"
API_CACHE_FILENAME: Final[str] = "api-cache.json"
DEFAULT_LOCK_TIMEOUT_MS: Final[int] = 30_000


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    api_cache_filename: str = API_CACHE_FILENAME
    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def api_cache_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.api_cache_filename


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("NUMISYNC_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    cache_filename = os.getenv("NUMISYNC_CACHE_FILENAME") or API_CACHE_FILENAME
    return StorageConfig(
        data_dir=data_dir,
        api_cache_filename=cache_filename,
        lock_timeout_ms=optional_int_env("NUMISYNC_LOCK_TIMEOUT_MS", DEFAULT_LOCK_TIMEOUT_MS),
    )
