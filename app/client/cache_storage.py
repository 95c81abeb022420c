"""Named, versioned buckets of stored request/response pairs."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional

import httpx

# Stored bodies are already decoded, so these no longer describe them.
_DROPPED_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


class RequestKey(NamedTuple):
    """Request identity used as the cache key."""

    method: str
    url: str

    @classmethod
    def for_request(cls, request: httpx.Request) -> "RequestKey":
        return cls(request.method.upper(), str(request.url).split("#", 1)[0])


@dataclass
class _StoredResponse:
    status_code: int
    headers: List[tuple[str, str]]
    content: bytes
    stored_at: float = field(default_factory=time.time)

    def to_response(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            content=self.content,
            request=request,
        )


class Cache:
    """One cache generation. Entries are detached copies of responses."""

    def __init__(self, name: str, lock: threading.Lock) -> None:
        self.name = name
        self._lock = lock
        self._entries: Dict[RequestKey, _StoredResponse] = {}

    def match(self, request: httpx.Request) -> Optional[httpx.Response]:
        with self._lock:
            stored = self._entries.get(RequestKey.for_request(request))
        return stored.to_response(request) if stored is not None else None

    def put(self, request: httpx.Request, response: httpx.Response) -> None:
        """Store a copy of an already-read ``response`` under ``request``."""

        if request.method.upper() != "GET":
            raise ValueError(f"Request method {request.method!r} cannot be cached")
        stored = _StoredResponse(
            status_code=response.status_code,
            headers=[
                (name, value)
                for name, value in response.headers.multi_items()
                if name.lower() not in _DROPPED_HEADERS
            ],
            content=response.content,
        )
        with self._lock:
            self._entries[RequestKey.for_request(request)] = stored

    def delete(self, request: httpx.Request) -> bool:
        with self._lock:
            return self._entries.pop(RequestKey.for_request(request), None) is not None

    def keys(self) -> List[RequestKey]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CacheStorage:
    """Every cache generation known to the client, in creation order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._caches: Dict[str, Cache] = {}

    def open(self, name: str) -> Cache:
        with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                cache = self._caches[name] = Cache(name, self._lock)
            return cache

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._caches

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._caches)

    def delete(self, name: str) -> bool:
        with self._lock:
            return self._caches.pop(name, None) is not None

    def match(self, request: httpx.Request) -> Optional[httpx.Response]:
        """Return the first stored response for ``request`` in any generation."""

        for name in self.keys():
            with self._lock:
                cache = self._caches.get(name)
            if cache is None:
                continue
            response = cache.match(request)
            if response is not None:
                return response
        return None


__all__ = ["Cache", "CacheStorage", "RequestKey"]
