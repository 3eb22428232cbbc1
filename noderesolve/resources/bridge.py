"""Request/response bridge letting a secondary context reuse a primary context's cache.

Messages are plain dicts (pydantic models dumped with model_dump()) so any
transport can carry them: queues, pipes, websockets. Each endpoint is given a
post() callable for outgoing messages and receives incoming ones through
handle_message().
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING
from typing import Annotated
from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import Field
from pydantic import TypeAdapter

from ..errors import PROBE_FAILURES
from ..errors import BridgeError
from ..errors import BridgeTimeout
from ..errors import PeerFailure
from .fetch import FetchedResource

if TYPE_CHECKING:
    from .cache import CacheBridge

logger = logging.getLogger(__name__)

Post = Callable[[dict[str, Any]], None]
ConfigHandler = Callable[[dict[str, Any]], None]


class ExistsRequest(BaseModel):
    kind: Literal["exists_request"] = "exists_request"
    uri: str


class ExistsResponse(BaseModel):
    kind: Literal["exists_response"] = "exists_response"
    uri: str
    address: str | None = None
    error: str | None = None
    error_kind: str | None = None


class FetchRequest(BaseModel):
    kind: Literal["fetch_request"] = "fetch_request"
    uri: str
    cache_mode: str | None = None


class FetchResponse(BaseModel):
    kind: Literal["fetch_response"] = "fetch_response"
    uri: str
    cache_mode: str | None = None
    url: str | None = None
    text: str | None = None
    error: str | None = None
    error_kind: str | None = None


class ConfigUpdate(BaseModel):
    kind: Literal["config_update"] = "config_update"
    delta: dict[str, Any] = Field(default_factory=dict)


class InitResult(BaseModel):
    kind: Literal["init_result"] = "init_result"
    success: bool


BridgeMessage = Annotated[
    ExistsRequest | ExistsResponse | FetchRequest | FetchResponse | ConfigUpdate | InitResult,
    Field(discriminator="kind"),
]

_message_adapter: TypeAdapter[BridgeMessage] = TypeAdapter(BridgeMessage)


def parse_message(data: dict[str, Any]) -> BridgeMessage:
    return _message_adapter.validate_python(data)


PROBE_KIND = "probe"


def error_fields(error: Exception) -> dict[str, str]:
    """Response fields describing error.

    Probe failures travel as "probe"; anything else keeps its class name so
    the receiving side can tell a missing resource from a fatal failure.
    """
    kind = PROBE_KIND if isinstance(error, PROBE_FAILURES) else type(error).__name__
    return {"error": str(error) or type(error).__name__, "error_kind": kind}


def response_error(uri: str, message: ExistsResponse | FetchResponse) -> Exception:
    if message.error_kind in (None, PROBE_KIND):
        return BridgeError(uri, message.error or "")
    return PeerFailure(uri, message.error_kind, message.error or "")


def _no_peer(message: dict[str, Any]) -> None:
    raise RuntimeError("Bridge endpoint is not connected to a peer")


class BridgeEndpoint:
    """Shared plumbing: outgoing post() and configuration relay."""

    def __init__(self, post: Post | None = None, on_config: ConfigHandler | None = None):
        self.post: Post = post or _no_peer
        self.on_config = on_config

    def publish_config(self, delta: dict[str, Any]) -> None:
        """Broadcast a flushed configuration delta to the peer."""
        self.post(ConfigUpdate(delta=delta).model_dump())

    def handle_message(self, data: dict[str, Any]) -> None:
        message = parse_message(data)
        if isinstance(message, ConfigUpdate):
            if self.on_config is not None:
                self.on_config(message.delta)
            return
        self._handle(message)

    def _handle(self, message: BridgeMessage) -> None:
        logger.warning(f"[bridge] unexpected {message.kind} message ignored")


class PeerClient(BridgeEndpoint):
    """Secondary-context side: forwards probes and fetches to the primary context."""

    def __init__(
        self,
        post: Post | None = None,
        on_config: ConfigHandler | None = None,
        timeout: float | None = None,
    ):
        """Initialize client.

        Args:
            post: Sends a message to the primary context
            on_config: Called with every configuration delta relayed by the peer
            timeout: Seconds to wait for any single response (None waits forever)
        """
        super().__init__(post, on_config)
        self.timeout = timeout
        self._pending: dict[tuple[str, str, str | None], asyncio.Future[Any]] = {}
        self._ready: asyncio.Future[bool] | None = None

    async def exists(self, uri: str, timeout: float | None = None) -> str:
        return await self._request("exists", uri, None, timeout)

    async def fetch(self, uri: str, cache: str | None = None, timeout: float | None = None) -> FetchedResource:
        return await self._request("fetch", uri, cache, timeout)

    async def wait_ready(self, timeout: float | None = None) -> bool:
        """Wait for the primary context's init_result signal."""
        return await asyncio.wait_for(asyncio.shield(self._ready_future()), timeout)

    async def _request(self, method: str, uri: str, cache_mode: str | None, timeout: float | None) -> Any:
        key = (method, uri, cache_mode)
        future = self._pending.get(key)
        if future is None:
            future = asyncio.get_running_loop().create_future()
            self._pending[key] = future
            if method == "exists":
                self.post(ExistsRequest(uri=uri).model_dump())
            else:
                self.post(FetchRequest(uri=uri, cache_mode=cache_mode).model_dump())

        timeout = timeout if timeout is not None else self.timeout
        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout)
        except asyncio.TimeoutError as e:
            raise BridgeTimeout(method, uri, timeout or 0) from e

    def _ready_future(self) -> asyncio.Future[bool]:
        if self._ready is None:
            self._ready = asyncio.get_running_loop().create_future()
        return self._ready

    def _handle(self, message: BridgeMessage) -> None:
        if isinstance(message, InitResult):
            ready = self._ready_future()
            if not ready.done():
                ready.set_result(message.success)
            return

        if isinstance(message, ExistsResponse):
            key = ("exists", message.uri, None)
        elif isinstance(message, FetchResponse):
            key = ("fetch", message.uri, message.cache_mode)
        else:
            super()._handle(message)
            return

        future = self._pending.get(key)
        if future is None or future.done():
            logger.warning(f"[bridge] stray {message.kind} for {message.uri} ignored")
            return

        if message.error is not None:
            future.set_exception(response_error(message.uri, message))
        elif isinstance(message, ExistsResponse):
            future.set_result(message.address or message.uri)
        else:
            future.set_result(FetchedResource(url=message.url or message.uri, body=message.text or ""))


class PeerServer(BridgeEndpoint):
    """Primary-context side: answers peer requests from the local CacheBridge."""

    def __init__(
        self,
        cache: CacheBridge,
        post: Post | None = None,
        on_config: ConfigHandler | None = None,
    ):
        super().__init__(post, on_config)
        self.cache = cache
        self._tasks: set[asyncio.Task[None]] = set()
        cache.config_sinks.append(self.publish_config)

    def announce_ready(self, success: bool = True) -> None:
        self.post(InitResult(success=success).model_dump())

    def _handle(self, message: BridgeMessage) -> None:
        if isinstance(message, ExistsRequest):
            coro = self._answer_exists(message)
        elif isinstance(message, FetchRequest):
            coro = self._answer_fetch(message)
        else:
            super()._handle(message)
            return

        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait until every request received so far has been answered."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _log_failure(self, method: str, uri: str, error: Exception) -> None:
        if isinstance(error, PROBE_FAILURES):
            logger.debug(f"[bridge] {method} {uri} failed: {error}")
        else:
            logger.error(f"[bridge] {method} {uri} failed: {error!r}")

    async def _answer_exists(self, request: ExistsRequest) -> None:
        try:
            address = await self.cache.exists(request.uri)
        except Exception as e:
            self._log_failure("exists", request.uri, e)
            self.post(ExistsResponse(uri=request.uri, **error_fields(e)).model_dump())
            return
        self.post(ExistsResponse(uri=request.uri, address=address).model_dump())

    async def _answer_fetch(self, request: FetchRequest) -> None:
        try:
            response = await self.cache.fetch(request.uri, request.cache_mode)
        except Exception as e:
            self._log_failure("fetch", request.uri, e)
            self.post(FetchResponse(uri=request.uri, cache_mode=request.cache_mode, **error_fields(e)).model_dump())
            return
        self.post(
            FetchResponse(
                uri=request.uri,
                cache_mode=request.cache_mode,
                url=response.url,
                text=await response.text(),
            ).model_dump()
        )


def link_endpoints(a: BridgeEndpoint, b: BridgeEndpoint) -> None:
    """Connect two endpoints living in the same event loop.

    Messages round-trip through JSON and are delivered on the next loop
    iteration, like a real message channel.
    """

    def sender(target: BridgeEndpoint) -> Post:
        def post(message: dict[str, Any]) -> None:
            payload = json.loads(json.dumps(message))
            asyncio.get_running_loop().call_soon(target.handle_message, payload)

        return post

    a.post = sender(b)
    b.post = sender(a)
