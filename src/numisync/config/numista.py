"""Numista catalog configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Final

from numisync.domain.enums import EmptyMintmarkPolicy

from .env import optional_int_env, require_env_vars
from .errors import ConfigurationError
from .http_resilience import NO_RETRY, RateLimit, ResilienceConfig

DEFAULT_NUMISTA_BASE_URL: Final[str] = "https://api.numista.com/v3"
DEFAULT_MIN_REQUEST_DELAY_MS: Final[int] = 2000
DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0
USER_AGENT: Final[str] = "numisync/1.0"

_DAY_MS: Final[int] = 24 * 60 * 60 * 1000
DEFAULT_TYPE_TTL_MS: Final[int] = 90 * _DAY_MS
DEFAULT_ISSUES_TTL_MS: Final[int] = 30 * _DAY_MS
DEFAULT_ISSUERS_TTL_MS: Final[int] = 90 * _DAY_MS


@dataclass(frozen=True, slots=True)
class CacheTtls:
    """Persistent cache lifetimes in milliseconds; ``0`` keeps a tier in memory only."""

    type_ms: int = DEFAULT_TYPE_TTL_MS
    issues_ms: int = DEFAULT_ISSUES_TTL_MS
    issuers_ms: int = DEFAULT_ISSUERS_TTL_MS


@dataclass(frozen=True, slots=True)
class NumistaConfig:
    api_key: str | None
    resilience: ResilienceConfig
    language: str = "en"
    currency: str = "USD"
    ttls: CacheTtls = field(default_factory=CacheTtls)
    empty_mintmark_policy: EmptyMintmarkPolicy = EmptyMintmarkPolicy.NO_MINT_MARK


def build_resilience_config(
    *,
    min_request_delay_ms: int = DEFAULT_MIN_REQUEST_DELAY_MS,
    base_url: str = DEFAULT_NUMISTA_BASE_URL,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> ResilienceConfig:
    ratelimit = (
        RateLimit(max_calls=1, per_seconds=min_request_delay_ms / 1000)
        if min_request_delay_ms > 0
        else None
    )
    return ResilienceConfig(
        name="numista",
        base_url=base_url,
        timeout_seconds=timeout_seconds,
        ratelimit=ratelimit,
        retry=NO_RETRY,
        default_headers={"User-Agent": USER_AGENT},
    )


def _empty_mintmark_policy() -> EmptyMintmarkPolicy:
    raw = os.getenv("NUMISYNC_EMPTY_MINTMARK_POLICY")
    if raw is None or not raw.strip():
        return EmptyMintmarkPolicy.NO_MINT_MARK
    try:
        return EmptyMintmarkPolicy(raw.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(policy.value for policy in EmptyMintmarkPolicy)
        raise ConfigurationError(
            f"NUMISYNC_EMPTY_MINTMARK_POLICY must be one of: {allowed}"
        ) from exc


def get_numista_config(*, require_api_key: bool = True) -> NumistaConfig:
    if require_api_key:
        api_key: str | None = require_env_vars(("NUMISTA_API_KEY",))["NUMISTA_API_KEY"]
    else:
        api_key = os.getenv("NUMISTA_API_KEY") or None

    resilience = build_resilience_config(
        min_request_delay_ms=optional_int_env(
            "NUMISYNC_MIN_REQUEST_DELAY_MS", DEFAULT_MIN_REQUEST_DELAY_MS
        ),
        base_url=os.getenv("NUMISTA_BASE_URL") or DEFAULT_NUMISTA_BASE_URL,
    )
    ttls = CacheTtls(
        type_ms=optional_int_env("NUMISYNC_TYPE_TTL_MS", DEFAULT_TYPE_TTL_MS),
        issues_ms=optional_int_env("NUMISYNC_ISSUES_TTL_MS", DEFAULT_ISSUES_TTL_MS),
        issuers_ms=optional_int_env("NUMISYNC_ISSUERS_TTL_MS", DEFAULT_ISSUERS_TTL_MS),
    )
    return NumistaConfig(
        api_key=api_key,
        resilience=resilience,
        language=os.getenv("NUMISYNC_LANGUAGE") or "en",
        currency=os.getenv("NUMISYNC_CURRENCY") or "USD",
        ttls=ttls,
        empty_mintmark_policy=_empty_mintmark_policy(),
    )
