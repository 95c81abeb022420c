"""Policy-driven resource cache for the client worker.

Each outgoing request is classified once against an ordered rule list and
handed to the matching policy:

* non-GET requests bypass the cache entirely,
* API requests go network-first and fall back to the short-lived API cache,
* everything else goes cache-first against the long-lived static cache, with
  the offline root page as the last resort for navigations.

Cache generations are named after the deployment version; activating a new
version deletes every generation the version does not own.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, Tuple
from urllib.parse import urljoin

import httpx
from loguru import logger

from app.client.cache_storage import CacheStorage
from app.client.lifecycle import ExtendableEvent
from app.utils.exceptions import NetworkUnavailableError, PrecacheError

DEFAULT_PRECACHE_URLS: Tuple[str, ...] = (
    "/",
    "/static/js/bundle.js",
    "/static/css/main.css",
    "/manifest.json",
)


@dataclass(frozen=True)
class CacheConfig:
    """Deployment-specific cache settings."""

    version: str = "v1"
    cache_prefix: str = "flashstore"
    origin: str = "http://localhost"
    api_path_prefix: str = "/api/"
    precache_urls: Tuple[str, ...] = DEFAULT_PRECACHE_URLS
    offline_fallback_url: str = "/"

    @property
    def static_cache_name(self) -> str:
        return f"{self.cache_prefix}-pwa-{self.version}"

    @property
    def api_cache_name(self) -> str:
        return f"{self.cache_prefix}-api-{self.version}"

    @property
    def current_cache_names(self) -> frozenset[str]:
        return frozenset({self.static_cache_name, self.api_cache_name})

    def absolute(self, url: str) -> str:
        return urljoin(self.origin, url)


def is_successful(response: httpx.Response) -> bool:
    return 200 <= response.status_code < 300


def is_navigation(request: httpx.Request) -> bool:
    """Whether the request loads a document rather than a subresource."""

    return (
        request.headers.get("sec-fetch-mode") == "navigate"
        or request.headers.get("sec-fetch-dest") == "document"
    )


class CachePolicy(Protocol):
    """How one class of requests is answered."""

    name: str

    async def handle(
        self, engine: "CacheStrategyEngine", request: httpx.Request, event: ExtendableEvent
    ) -> httpx.Response:  # pragma: no cover - interface definition
        """Answer ``request`` from network, cache or both."""


@dataclass
class NetworkOnlyPolicy:
    """Go straight to the network; nothing is read from or written to cache."""

    name: str = "network-only"

    async def handle(
        self, engine: "CacheStrategyEngine", request: httpx.Request, event: ExtendableEvent
    ) -> httpx.Response:
        return await engine.fetch_network(request)


@dataclass
class CacheFirstPolicy:
    """Serve from ``cache_name`` when possible, otherwise fetch and store."""

    cache_name: str
    offline_fallback_url: Optional[str] = None
    name: str = "cache-first"

    async def handle(
        self, engine: "CacheStrategyEngine", request: httpx.Request, event: ExtendableEvent
    ) -> httpx.Response:
        cache = engine.storage.open(self.cache_name)
        cached = cache.match(request)
        if cached is not None:
            return cached

        try:
            response = await engine.fetch_network(request)
        except NetworkUnavailableError:
            if self.offline_fallback_url is None or not is_navigation(request):
                raise
            fallback_request = httpx.Request("GET", engine.config.absolute(self.offline_fallback_url))
            fallback = engine.storage.match(fallback_request)
            if fallback is None:
                raise
            logger.info("Serving offline page", url=str(request.url))
            return fallback

        engine.store(self.cache_name, request, response, event)
        return response


@dataclass
class NetworkFirstPolicy:
    """Prefer a live response; fall back to the last stored copy."""

    cache_name: str
    name: str = "network-first"

    async def handle(
        self, engine: "CacheStrategyEngine", request: httpx.Request, event: ExtendableEvent
    ) -> httpx.Response:
        try:
            response = await engine.fetch_network(request)
        except NetworkUnavailableError:
            cached = engine.storage.open(self.cache_name).match(request)
            if cached is None:
                raise
            logger.info("Network unavailable, serving cached response", url=str(request.url))
            return cached

        engine.store(self.cache_name, request, response, event)
        return response


@dataclass(frozen=True)
class ClassificationRule:
    """Route requests satisfying ``predicate`` to ``policy``."""

    name: str
    predicate: Callable[[httpx.Request], bool]
    policy: CachePolicy


def default_rules(config: CacheConfig) -> Tuple[ClassificationRule, ...]:
    """Bypass for non-GET, network-first for the API, cache-first for the rest."""

    return (
        ClassificationRule(
            name="bypass",
            predicate=lambda request: request.method.upper() != "GET",
            policy=NetworkOnlyPolicy(),
        ),
        ClassificationRule(
            name="api",
            predicate=lambda request: request.url.path.startswith(config.api_path_prefix),
            policy=NetworkFirstPolicy(cache_name=config.api_cache_name),
        ),
        ClassificationRule(
            name="static",
            predicate=lambda request: True,
            policy=CacheFirstPolicy(
                cache_name=config.static_cache_name,
                offline_fallback_url=config.offline_fallback_url,
            ),
        ),
    )


@dataclass
class CacheStrategyEngine:
    """Classify requests and apply the matching caching policy."""

    storage: CacheStorage
    network: httpx.AsyncBaseTransport
    config: CacheConfig = field(default_factory=CacheConfig)
    rules: Sequence[ClassificationRule] = ()

    def __post_init__(self) -> None:
        if not self.rules:
            self.rules = default_rules(self.config)

    def classify(self, request: httpx.Request) -> ClassificationRule:
        for rule in self.rules:
            if rule.predicate(request):
                return rule
        raise LookupError(f"No caching rule matches {request.method} {request.url}")

    async def handle(
        self, request: httpx.Request, event: Optional[ExtendableEvent] = None
    ) -> httpx.Response:
        """Answer ``request``.

        Without an ``event`` the call owns its derived work (cache writes) and
        returns only after it has finished.
        """

        owned = event is None
        if event is None:
            event = ExtendableEvent("fetch")
        rule = self.classify(request)
        logger.debug("Handling request", rule=rule.name, method=request.method, url=str(request.url))
        response = await rule.policy.handle(self, request, event)
        if owned:
            await event.settle()
        return response

    async def fetch_network(self, request: httpx.Request) -> httpx.Response:
        try:
            response = await self.network.handle_async_request(request)
            await response.aread()
        except httpx.TransportError as exc:
            raise NetworkUnavailableError(str(request.url), exc) from exc
        return response

    def store(
        self,
        cache_name: str,
        request: httpx.Request,
        response: httpx.Response,
        event: ExtendableEvent,
    ) -> None:
        """Schedule a cache write for a successful GET response."""

        if request.method.upper() != "GET" or not is_successful(response):
            return
        event.wait_until(self._put(cache_name, request, response))

    async def _put(self, cache_name: str, request: httpx.Request, response: httpx.Response) -> None:
        self.storage.open(cache_name).put(request, response)

    async def install(self) -> None:
        """Precache the critical resources; store all of them or none."""

        requests = [httpx.Request("GET", self.config.absolute(url)) for url in self.config.precache_urls]
        outcomes = await asyncio.gather(
            *(self.fetch_network(request) for request in requests), return_exceptions=True
        )

        failures: List[str] = []
        for request, outcome in zip(requests, outcomes):
            if isinstance(outcome, BaseException):
                failures.append(f"{request.url}: {outcome}")
            elif not is_successful(outcome):
                failures.append(f"{request.url}: HTTP {outcome.status_code}")
        if failures:
            logger.error("Precache failed", failures=failures)
            raise PrecacheError("Could not precache critical resources", {"failures": failures})

        cache = self.storage.open(self.config.static_cache_name)
        for request, response in zip(requests, outcomes):
            cache.put(request, response)
        logger.info("Precached app shell", cache=self.config.static_cache_name, count=len(requests))

    async def activate(self) -> List[str]:
        """Delete every cache generation this version does not own."""

        purged: List[str] = []
        for name in self.storage.keys():
            if name not in self.config.current_cache_names:
                self.storage.delete(name)
                purged.append(name)
                logger.info("Deleting old cache", cache=name)
        return purged


class CachingTransport(httpx.AsyncBaseTransport):
    """Route an ``httpx.AsyncClient`` through a :class:`CacheStrategyEngine`."""

    def __init__(self, engine: CacheStrategyEngine) -> None:
        self.engine = engine

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self.engine.handle(request)
        except NetworkUnavailableError as exc:
            if isinstance(exc.__cause__, httpx.TransportError):
                raise exc.__cause__
            raise httpx.ConnectError(exc.message, request=request) from exc

    async def aclose(self) -> None:
        await self.engine.network.aclose()


__all__ = [
    "CacheConfig",
    "CacheFirstPolicy",
    "CachePolicy",
    "CacheStrategyEngine",
    "CachingTransport",
    "ClassificationRule",
    "DEFAULT_PRECACHE_URLS",
    "NetworkFirstPolicy",
    "NetworkOnlyPolicy",
    "default_rules",
    "is_navigation",
]
