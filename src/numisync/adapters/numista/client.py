"""Async client for the Numista v3 catalog API."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx
from pydantic import ValidationError as PydanticValidationError

from numisync.adapters.http_resilience import ResilientClient
from numisync.domain.catalog import CoinData
from numisync.domain.enums import MatchOutcome, MetadataSection
from numisync.domain.errors import (
    AuthError,
    CatalogError,
    ClientError,
    NetworkError,
    NotFoundError,
    QuotaExceeded,
    ServiceError,
)
from numisync.domain.matching import (
    IssueMatchOptions,
    IssuerAliases,
    UnitNormalizer,
    best_issuer_match,
    default_issuer_aliases,
    default_unit_normalizer,
    match_confidence,
    match_issue,
)
from numisync.domain.matching.issuers import normalize_issuer_name
from numisync.domain.metadata import FetchSelection, decode_note
from numisync.domain.records import record_number, record_text, record_year

from .endpoints import endpoint_name
from .schema import (
    NumistaBaseModel,
    NumistaErrorResponse,
    NumistaIssue,
    NumistaIssuersResponse,
    NumistaPrices,
    NumistaSearchResponse,
    NumistaType,
)
from .translator import translate_issue, translate_issuer, translate_prices, translate_type

if TYPE_CHECKING:
    from types import TracebackType

    from numisync.adapters.cache import PersistentCache
    from numisync.config.http_resilience import ResilienceConfig
    from numisync.config.numista import NumistaConfig
    from numisync.domain.catalog import CatalogCandidate, CatalogIssuer, Issue, PricingSnapshot
    from numisync.domain.matching import IssueMatch
    from numisync.domain.records import LocalRecord

log = getLogger(__name__)

API_KEY_HEADER: Final[str] = "Numista-API-Key"
SEARCH_PAGE_SIZE: Final[int] = 50

type ClientFactory = Callable[[ResilienceConfig], ResilientClient]


@dataclass(slots=True)
class TieredLookup:
    """Memory, then persistent cache, then network.

    ``ttl_ms <= 0`` keeps a lookup in memory only. Network results populate
    every enabled tier.
    """

    persistent: PersistentCache | None = None
    memory: dict[str, object] = field(default_factory=dict)

    async def fetch(
        self,
        key: str,
        loader: Callable[[], Awaitable[object]],
        *,
        ttl_ms: int = 0,
    ) -> object:
        if key in self.memory:
            return self.memory[key]

        persistent = self.persistent if ttl_ms > 0 else None
        if persistent is not None:
            cached = persistent.get(key)
            if cached is not None:
                log.debug("Persistent cache hit for %s", key)
                self.memory[key] = cached
                return cached

        payload = await loader()
        self.memory[key] = payload
        if persistent is not None:
            await persistent.set(key, payload, ttl_ms)
        return payload

    def clear_memory(self) -> None:
        self.memory.clear()


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    candidate: CatalogCandidate
    confidence: int


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(payload, Mapping):
        text = NumistaErrorResponse.model_validate(payload).text()
        if text:
            return text
    return response.reason_phrase


def _prior_catalog_id(record: LocalRecord) -> int | None:
    note = record.get("note")
    metadata = decode_note(note if isinstance(note, str) else None).metadata
    raw = metadata.section(MetadataSection.BASIC).get("numistaId")
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(str(raw))
    except ValueError:
        return None


def _format_value(record: LocalRecord) -> str:
    text = record_text(record, "value")
    if "/" in text:
        return text
    number = record_number(record, "value")
    if number is None:
        return text
    return f"{number:g}"


class NumistaClient:
    """Catalog client with a limiter-shared HTTP session and tiered caching.

    Use as an async context manager so one HTTP session (and one rate limiter)
    serves every call::

        async with NumistaClient(config=config, cache=cache) as catalog:
            candidates = await catalog.search(record)
    """

    def __init__(
        self,
        *,
        config: NumistaConfig,
        cache: PersistentCache | None = None,
        client_factory: ClientFactory | None = None,
        units: UnitNormalizer | None = None,
        issuer_aliases: IssuerAliases | None = None,
    ) -> None:
        self._config = config
        self._cache = cache
        if cache is not None:
            cache.set_active_key(config.api_key)
        self._client_factory = client_factory or ResilientClient
        self._client: ResilientClient | None = None
        self._units = units or default_unit_normalizer()
        self._issuer_aliases = issuer_aliases or default_issuer_aliases()
        self._lookup = TieredLookup(persistent=cache)
        self._issuer_codes: dict[str, str | None] = {}
        self.session_calls = 0

    async def __aenter__(self) -> NumistaClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def clear_memory_cache(self) -> None:
        self._lookup.clear_memory()
        self._issuer_codes.clear()

    # -- transport -----------------------------------------------------------

    def _http(self) -> ResilientClient:
        if self._client is None:
            self._client = self._client_factory(self._config.resilience)
        return self._client

    async def _request(self, path: str, params: Mapping[str, str | int]) -> object:
        if not self._config.api_key:
            raise ClientError("Numista API key not configured")

        try:
            response = await self._http().get(
                path,
                params=dict(params),
                headers={API_KEY_HEADER: self._config.api_key},
            )
        except (httpx.UnsupportedProtocol, httpx.InvalidURL) as exc:
            raise ClientError(f"Numista request could not be sent: {exc}") from exc
        except httpx.TimeoutException as exc:
            raise NetworkError("Numista API request timed out") from exc
        except httpx.RequestError as exc:
            raise NetworkError(
                "No response from Numista API. Please check your internet connection."
            ) from exc

        self.session_calls += 1
        if self._cache is not None:
            await self._cache.increment_usage(endpoint_name(path))

        status = response.status_code
        if status == httpx.codes.UNAUTHORIZED:
            raise AuthError("Invalid Numista API key")
        if status == httpx.codes.TOO_MANY_REQUESTS:
            raise QuotaExceeded(
                "Numista rate limit exceeded. Please wait before making more requests."
            )
        if status == httpx.codes.NOT_FOUND:
            raise NotFoundError(f"Numista resource not found: {path}")
        if not response.is_success:
            message = _error_message(response)
            log.error("Numista API error %s on %s: %s", status, path, message)
            raise ServiceError(f"Numista API error ({status}): {message}", status=status)

        try:
            return response.json()
        except ValueError as exc:
            raise ServiceError("Numista API returned malformed JSON", status=status) from exc

    # -- catalog reads -------------------------------------------------------

    async def search_types(self, params: Mapping[str, str | int]) -> list[CatalogCandidate]:
        query: dict[str, str | int] = {
            "lang": self._config.language,
            "page": 1,
            "count": SEARCH_PAGE_SIZE,
            **params,
        }
        key = f"search:{json.dumps(query, sort_keys=True)}"
        payload = await self._lookup.fetch(key, lambda: self._request("/types", query))
        response = self._validate(NumistaSearchResponse, payload)
        return [translate_type(item) for item in response.types]

    async def get_type(self, type_id: int, *, lang: str | None = None) -> CatalogCandidate:
        language = lang or self._config.language
        payload = await self._lookup.fetch(
            f"type:{type_id}:{language}",
            lambda: self._request(f"/types/{type_id}", {"lang": language}),
            ttl_ms=self._config.ttls.type_ms,
        )
        return translate_type(self._validate(NumistaType, payload))

    async def get_type_issues(self, type_id: int, *, lang: str | None = None) -> list[Issue]:
        language = lang or self._config.language
        payload = await self._lookup.fetch(
            f"issues:{type_id}:{language}",
            lambda: self._request(f"/types/{type_id}/issues", {"lang": language}),
            ttl_ms=self._config.ttls.issues_ms,
        )
        items = payload.get("issues", []) if isinstance(payload, Mapping) else payload
        if not isinstance(items, list):
            raise ServiceError("Unexpected Numista issues payload", status=200)
        return [translate_issue(self._validate(NumistaIssue, item)) for item in items]

    async def get_issue_pricing(
        self,
        type_id: int,
        issue_id: int,
        *,
        currency: str | None = None,
    ) -> PricingSnapshot:
        code = currency or self._config.currency
        payload = await self._lookup.fetch(
            f"pricing:{type_id}:{issue_id}:{code}",
            lambda: self._request(
                f"/types/{type_id}/issues/{issue_id}/prices", {"currency": code}
            ),
        )
        return translate_prices(self._validate(NumistaPrices, payload))

    async def get_issuers(self, *, lang: str | None = None) -> list[CatalogIssuer]:
        language = lang or self._config.language
        payload = await self._lookup.fetch(
            f"issuers:{language}",
            lambda: self._request("/issuers", {"lang": language}),
            ttl_ms=self._config.ttls.issuers_ms,
        )
        response = self._validate(NumistaIssuersResponse, payload)
        return [translate_issuer(item) for item in response.issuers]

    @staticmethod
    def _validate[M: NumistaBaseModel](
        model: type[M],
        payload: object,
    ) -> M:
        try:
            return model.model_validate(payload)
        except PydanticValidationError as exc:
            raise ServiceError(
                f"Unexpected Numista payload for {model.__name__}: {exc.error_count()} errors",
                status=200,
            ) from exc

    # -- matching ------------------------------------------------------------

    async def resolve_issuer_code(self, name: str | None) -> str | None:
        """Map a local country name to a catalog issuer code (cached per session)."""

        key = normalize_issuer_name(name)
        if not key:
            return None
        if key in self._issuer_codes:
            return self._issuer_codes[key]

        code = self._issuer_aliases.lookup(key)
        if code is None:
            match = best_issuer_match(key, await self.get_issuers())
            code = match.code if match else None
        if code is None:
            log.info("No catalog issuer found for %r", name)
        self._issuer_codes[key] = code
        return code

    def match_confidence(self, record: LocalRecord, candidate: CatalogCandidate) -> int:
        return match_confidence(
            record,
            candidate,
            prior_catalog_id=_prior_catalog_id(record),
            units=self._units,
        )

    def match_issue(
        self,
        record: LocalRecord,
        issues: list[Issue],
        options: IssueMatchOptions | None = None,
    ) -> IssueMatch:
        opts = options or IssueMatchOptions(
            empty_mintmark_policy=self._config.empty_mintmark_policy
        )
        return match_issue(record, issues, opts)

    # -- search --------------------------------------------------------------

    def build_search_params(
        self,
        record: LocalRecord,
        issuer_code: str | None = None,
    ) -> dict[str, str | int]:
        """Build ``/types`` query parameters for ``record``.

        The query prefers the denomination (value plus the unit's search form);
        the title is used when the record carries no denomination.
        """

        params: dict[str, str | int] = {}
        value = _format_value(record)
        unit = record_text(record, "unit")
        if value and unit:
            canonical = self._units.normalize(unit)
            form = self._units.search_form(
                canonical, record_number(record, "value"), issuer_code=issuer_code
            )
            params["q"] = f"{value} {form or unit}"
        elif title := record_text(record, "title"):
            params["q"] = title
        year = record_year(record)
        if year is not None:
            params["min_year"] = year
            params["max_year"] = year
        if issuer_code:
            params["issuer"] = issuer_code
        return params

    async def search(self, record: LocalRecord) -> list[ScoredCandidate]:
        """Search the catalog for ``record`` and rank candidates by confidence."""

        issuer_code = await self.resolve_issuer_code(record_text(record, "country"))
        params = self.build_search_params(record, issuer_code)
        if not params.get("q"):
            log.info("Record %s has nothing to search by", record.get("id"))
            return []

        candidates = await self.search_types(params)
        if not candidates:
            value = _format_value(record)
            for form in self._units.alternate_search_forms(
                record_text(record, "unit"), record_number(record, "value")
            ):
                query = f"{value} {form}"
                if query == params["q"]:
                    continue
                log.debug("Retrying search with alternate unit form %r", query)
                candidates = await self.search_types({**params, "q": query})
                if candidates:
                    break

        scored = [ScoredCandidate(item, self.match_confidence(record, item)) for item in candidates]
        scored.sort(key=lambda entry: entry.confidence, reverse=True)
        return scored

    async def fetch_coin_data(
        self,
        type_id: int,
        record: LocalRecord,
        fetch: FetchSelection,
    ) -> CoinData:
        """Fetch type detail, issues and pricing as ``fetch`` requests.

        Pricing failures are recorded on the result instead of raised.
        """

        result = CoinData(basic=await self.get_type(type_id))
        if not (fetch.issue or fetch.pricing):
            return result

        match = self.match_issue(record, await self.get_type_issues(type_id))
        result.issue_match = match
        log.debug("Issue match for type %s: %s (%s)", type_id, match.outcome, match.method)
        if match.outcome is not MatchOutcome.AUTO_MATCHED or match.issue is None:
            return result

        result.issue = match.issue
        if fetch.pricing:
            try:
                result.pricing = await self.get_issue_pricing(type_id, match.issue.id)
            except CatalogError as exc:
                log.warning("Pricing fetch failed for issue %s: %s", match.issue.id, exc)
                result.pricing_error = str(exc)
        return result
