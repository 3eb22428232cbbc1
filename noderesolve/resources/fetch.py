"""Resource access primitives for file:// and http(s):// addresses.

These do the actual I/O behind existence probes and manifest fetches.
The resolver only sees the two coroutines exists() and fetch().
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote
from urllib.parse import urljoin

import httpx

from ..errors import ResourceError
from ..errors import ResourceNotFound
from ..errors import TooManyRedirects

logger = logging.getLogger(__name__)

REDIRECT_CODES = frozenset({301, 302, 303, 307, 308})

IS_WINDOWS = sys.platform.startswith("win")


def url_to_path(url: str, windows: bool = IS_WINDOWS) -> str:
    """Convert a file:// URI to a native path."""
    native = url[len("file://") :] if url.startswith("file://") else url
    native = unquote(native)

    if windows:
        # file:///C:/dir -> C:\dir
        if len(native) > 2 and native[0] == "/" and native[2] == ":" and native[1].isalnum():
            native = native[1:]
        native = native.replace("/", "\\")

    return native


def path_to_url(native: str | Path, windows: bool = IS_WINDOWS) -> str:
    """Convert a native absolute path to a file:// URI."""
    url = str(native)

    if windows:
        url = url.replace("\\", "/")
        if len(url) > 1 and url[1] == ":":
            url = "/" + url

    if url.startswith("/"):
        return "file://" + url
    return url


@dataclass
class FetchedResource:
    """Body of a fetched resource plus the final address it was served from."""

    url: str
    body: str

    async def text(self) -> str:
        return self.body


class ResourceFetcher:
    """Existence checks and fetches over the local filesystem and HTTP."""

    def __init__(self, client: httpx.AsyncClient | None = None, max_redirects: int = 3):
        """Initialize fetcher.

        Args:
            client: HTTP client to use. If None, one is created and owned by the fetcher.
            max_redirects: Redirect hops followed before giving up
        """
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(follow_redirects=False, timeout=30.0)
        self.max_redirects = max_redirects

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def exists(self, uri: str) -> str:
        """Resolve to the final address of uri if it exists.

        Raises:
            ResourceNotFound: The resource does not exist
            ResourceError: Any other I/O failure
            TooManyRedirects: Redirect chain too long
        """
        logger.debug(f"Testing existence: {uri}")
        scheme = self._scheme(uri)

        if scheme == "file":
            path = Path(url_to_path(uri))
            try:
                await asyncio.to_thread(path.stat)
            except FileNotFoundError as e:
                raise ResourceNotFound(uri, "no such file") from e
            except OSError as e:
                raise ResourceError(uri, str(e)) from e
            return uri

        final_uri, _ = await self._request("HEAD", uri)
        return final_uri

    async def fetch(self, uri: str, cache: str | None = None) -> FetchedResource:
        """Fetch a resource as text.

        Args:
            uri: Address to fetch
            cache: Cache mode hint (e.g. "force-cache"); caching is done by the caller

        Returns:
            FetchedResource whose url is the address after redirects
        """
        logger.debug(f"Fetching: {uri}")
        scheme = self._scheme(uri)

        if scheme == "file":
            path = Path(url_to_path(uri))
            try:
                body = await asyncio.to_thread(path.read_text, encoding="utf-8")
            except FileNotFoundError as e:
                raise ResourceNotFound(uri, "no such file") from e
            except OSError as e:
                raise ResourceError(uri, str(e)) from e
            return FetchedResource(url=uri, body=body)

        final_uri, body = await self._request("GET", uri)
        return FetchedResource(url=final_uri, body=body)

    def _scheme(self, uri: str) -> str:
        scheme = uri.split(":", 1)[0].lower() if ":" in uri else ""
        if scheme not in ("file", "http", "https"):
            raise ResourceError(uri, f"unsupported scheme '{scheme}'")
        return scheme

    async def _request(self, method: str, uri: str) -> tuple[str, str]:
        """Issue a request, following redirects up to max_redirects hops."""
        current = uri
        for _ in range(self.max_redirects + 1):
            try:
                response = await self.client.request(method, current)
            except httpx.HTTPError as e:
                raise ResourceError(current, str(e)) from e

            if response.status_code == 200:
                return current, "" if method == "HEAD" else response.text

            if response.status_code not in REDIRECT_CODES:
                if response.status_code == 404:
                    raise ResourceNotFound(current, "HTTP 404")
                raise ResourceError(current, f"HTTP {response.status_code}")

            location = response.headers.get("location")
            if not location:
                raise ResourceError(current, f"HTTP {response.status_code} without Location")

            current = urljoin(current, location)
            logger.debug(f"Following redirect to {current}")

        raise TooManyRedirects(uri, self.max_redirects)
