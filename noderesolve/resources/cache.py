"""Request-coalescing cache for existence probes and fetches.

Every address maps to one shared task. Concurrent and later callers for the
same address await that task, so the underlying primitive runs at most once.
Entries are never evicted; failures are cached like successes.

When a PeerClient is attached, probes and fetches are forwarded to the peer
context that owns the authoritative cache instead of running locally.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from typing import TYPE_CHECKING
from typing import Any
from typing import Protocol

from .fetch import FetchedResource

if TYPE_CHECKING:
    from .bridge import PeerClient

logger = logging.getLogger(__name__)

FORCE_CACHE = "force-cache"


class FetchResponse(Protocol):
    url: str

    async def text(self) -> str: ...


ExistsFn = Callable[[str], Awaitable[str]]
FetchFn = Callable[..., Awaitable[FetchResponse]]
ConfigSink = Callable[[dict[str, Any]], None]


class CacheBridge:
    """Deduplicating cache in front of the exists/fetch primitives."""

    def __init__(
        self,
        exists: ExistsFn | None = None,
        fetch: FetchFn | None = None,
        remote: PeerClient | None = None,
    ):
        """Initialize cache.

        Args:
            exists: Existence probe primitive, resolves to the final address
            fetch: Fetch primitive, resolves to a response with url and text()
            remote: Peer client to forward requests to instead of the primitives
        """
        if remote is not None:
            exists, fetch = remote.exists, remote.fetch
        elif exists is None or fetch is None:
            raise ValueError("CacheBridge needs exists/fetch primitives or a remote peer")

        self._exists: ExistsFn = exists
        self._fetch: FetchFn = fetch
        self.remote = remote
        self._exists_tasks: dict[str, asyncio.Task[str]] = {}
        self._fetch_tasks: dict[tuple[str, str | None], asyncio.Task[FetchedResource]] = {}
        self.config_sinks: list[ConfigSink] = []

        if remote is not None:
            self.config_sinks.append(remote.publish_config)

    async def exists(self, uri: str) -> str:
        """Probe uri once, sharing the outcome with every caller."""
        task = self._exists_tasks.get(uri)
        if task is None:
            task = asyncio.ensure_future(self._run_exists(uri))
            self._exists_tasks[uri] = task
        else:
            logger.debug(f"[cache] exists hit: {uri}")
        return await asyncio.shield(task)

    async def fetch(self, uri: str, cache: str | None = None) -> FetchedResource:
        """Fetch uri once per cache mode, sharing the outcome with every caller."""
        key = (uri, cache)
        task = self._fetch_tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run_fetch(uri, cache))
            self._fetch_tasks[key] = task
        else:
            logger.debug(f"[cache] fetch hit: {uri}")
        return await asyncio.shield(task)

    def publish_config(self, delta: dict[str, Any]) -> None:
        """Relay a flushed configuration delta to the peer context, if any."""
        for sink in self.config_sinks:
            sink(delta)

    def __contains__(self, uri: str) -> bool:
        return uri in self._exists_tasks or any(key[0] == uri for key in self._fetch_tasks)

    async def _run_exists(self, uri: str) -> str:
        return await self._exists(uri)

    async def _run_fetch(self, uri: str, cache: str | None) -> FetchedResource:
        if cache is None:
            response = await self._fetch(uri)
        else:
            response = await self._fetch(uri, cache=cache)
        # Read the body once so the cached entry can be replayed and serialized.
        return FetchedResource(url=response.url, body=await response.text())
