from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from numisync.config.env import optional_int_env, require_env_vars
from numisync.config.errors import ConfigurationError, MissingConfigurationError
from numisync.config.numista import (
    DEFAULT_ISSUES_TTL_MS,
    DEFAULT_NUMISTA_BASE_URL,
    get_numista_config,
)
from numisync.config.storage import API_CACHE_FILENAME, get_storage_config
from numisync.domain.enums import EmptyMintmarkPolicy

if TYPE_CHECKING:
    from pathlib import Path

_NUMISYNC_VARS = (
    "NUMISTA_API_KEY",
    "NUMISTA_BASE_URL",
    "NUMISYNC_EMPTY_MINTMARK_POLICY",
    "NUMISYNC_MIN_REQUEST_DELAY_MS",
    "NUMISYNC_TYPE_TTL_MS",
    "NUMISYNC_ISSUES_TTL_MS",
    "NUMISYNC_ISSUERS_TTL_MS",
    "NUMISYNC_LANGUAGE",
    "NUMISYNC_CURRENCY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _NUMISYNC_VARS:
        monkeypatch.delenv(name, raising=False)


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    assert require_env_vars(["EXAMPLE_VAR"]) == {"EXAMPLE_VAR": "value"}


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLANK_VAR", "   ")
    monkeypatch.delenv("MISSING_VAR", raising=False)

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_VAR", "BLANK_VAR"])

    assert "BLANK_VAR, MISSING_VAR" in str(exc.value)


def test_optional_int_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_INT", " 250 ")
    monkeypatch.setenv("EXAMPLE_BLANK", "")

    assert optional_int_env("EXAMPLE_INT", 1) == 250
    assert optional_int_env("EXAMPLE_BLANK", 7) == 7


def test_optional_int_env_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_INT", "soon")

    with pytest.raises(ConfigurationError):
        optional_int_env("EXAMPLE_INT", 1)


def test_numista_config_requires_api_key() -> None:
    with pytest.raises(MissingConfigurationError):
        get_numista_config()

    assert get_numista_config(require_api_key=False).api_key is None


def test_numista_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NUMISTA_API_KEY", "secret")

    config = get_numista_config()

    assert config.api_key == "secret"
    assert config.resilience.base_url == DEFAULT_NUMISTA_BASE_URL
    assert config.resilience.retry.total == 0
    assert config.resilience.ratelimit is not None
    assert config.resilience.ratelimit.per_seconds == 2.0
    assert config.ttls.issues_ms == DEFAULT_ISSUES_TTL_MS
    assert config.empty_mintmark_policy is EmptyMintmarkPolicy.NO_MINT_MARK


def test_numista_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NUMISTA_API_KEY", "secret")
    monkeypatch.setenv("NUMISYNC_MIN_REQUEST_DELAY_MS", "0")
    monkeypatch.setenv("NUMISYNC_TYPE_TTL_MS", "0")
    monkeypatch.setenv("NUMISYNC_EMPTY_MINTMARK_POLICY", " Unknown ")
    monkeypatch.setenv("NUMISYNC_LANGUAGE", "fr")

    config = get_numista_config()

    assert config.resilience.ratelimit is None
    assert config.ttls.type_ms == 0
    assert config.empty_mintmark_policy is EmptyMintmarkPolicy.UNKNOWN
    assert config.language == "fr"


def test_numista_config_rejects_unknown_policy(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NUMISTA_API_KEY", "secret")
    monkeypatch.setenv("NUMISYNC_EMPTY_MINTMARK_POLICY", "guess")

    with pytest.raises(ConfigurationError) as exc:
        get_numista_config()

    assert "NUMISYNC_EMPTY_MINTMARK_POLICY" in str(exc.value)


def test_storage_config_uses_data_dir_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("NUMISYNC_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("NUMISYNC_CACHE_FILENAME", raising=False)

    config = get_storage_config()
    cache_path = config.api_cache_path()

    assert cache_path == (tmp_path / "data").resolve() / API_CACHE_FILENAME
    assert cache_path.parent.is_dir()
