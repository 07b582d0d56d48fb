"""Mock transport wiring and fakes for catalog tests."""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping  # noqa: TC003
from dataclasses import dataclass, field, replace

import httpx

from numisync.adapters.http_resilience import ResilienceConfig, ResilientClient
from numisync.config import CacheTtls, NumistaConfig, build_resilience_config

type Handler = Callable[[httpx.Request], httpx.Response]

API_KEY = "test-key"


def make_client_factory(handler: Handler) -> Callable[[ResilienceConfig], ResilientClient]:
    """Build clients whose retry transport sends to ``handler`` instead of the network."""

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        return ResilientClient(replace(resilience, transport=httpx.MockTransport(handler)))

    return factory


def make_config(*, api_key: str | None = API_KEY, ttls: CacheTtls | None = None) -> NumistaConfig:
    return NumistaConfig(
        api_key=api_key,
        resilience=build_resilience_config(min_request_delay_ms=0),
        ttls=ttls or CacheTtls(),
    )


@dataclass(slots=True)
class FakeNumistaApi:
    """Route catalog paths to canned payloads and record every request."""

    routes: Mapping[str, object]
    status_overrides: dict[str, int] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    @staticmethod
    def route_of(request: httpx.Request) -> str:
        return re.sub(r"^/v3", "", request.url.path) or "/"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = self.route_of(request)
        status = self.status_overrides.get(path)
        if status is not None:
            return httpx.Response(status, json={"error_message": f"status {status}"})
        if path not in self.routes:
            return httpx.Response(404, json={"error_message": "Not found"})
        return httpx.Response(200, json=self.routes[path])

    def paths(self) -> list[str]:
        return [self.route_of(request) for request in self.requests]
