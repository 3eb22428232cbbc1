"""Resolver orchestrator wrapping a host loader's resolve().

Per request:
1. Native attempt: ask the host loader for its best guess
2. Existence check: probe the guess, then an alternate (index file or markup sibling)
3. Package fallback: locate the package, load its manifest, synthesize configuration
4. Reconciliation: map the requested sub-path to the alternate that actually exists
5. Verification: the host loader must now produce the same address on its own
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable
from collections.abc import Callable
from typing import Any

from ..errors import PROBE_FAILURES
from ..errors import InvalidSpecifier
from ..errors import MisconfigurationError
from ..errors import PackageNotFound
from ..loader import EMPTY_MODULE
from ..loader import PROCESS_SHIM
from ..loader import HostLoader
from ..loader import is_absolute
from ..loader import is_relative
from ..resources.bridge import PeerClient
from ..resources.cache import CacheBridge
from ..resources.cache import FetchFn
from ..settings import ResolverSettings
from .context import ResolverContext
from .locator import PackageLocator
from .manifest import MANIFEST_NAME
from .manifest import ManifestLoader

logger = logging.getLogger(__name__)

PACKAGE_SPECIFIER = re.compile(r"((@[0-9a-z][-_.0-9a-z]*/)?[0-9a-z][-_.0-9a-z]*)(/(.*))?")


def parse_package_specifier(specifier: str) -> tuple[str, str | None]:
    """Split 'name/sub/path' or '@scope/name/sub/path' into (name, sub path).

    Raises:
        InvalidSpecifier: Not a package-style specifier
    """
    match = PACKAGE_SPECIFIER.fullmatch(specifier)
    if match is None:
        raise InvalidSpecifier(specifier)
    return match.group(1), match.group(4) or None


class ResolvingLoader:
    """Adapter exposing the host loader contract with the full resolution algorithm.

    The wrapped loader is never modified; only its configure() and
    bind_global() operations are used.
    """

    def __init__(self, resolver: Resolver, loader: HostLoader):
        self.resolver = resolver
        self.loader = loader

    @property
    def registry(self):
        return self.loader.registry

    async def resolve(self, specifier: str, referrer: str | None = None) -> str:
        return await self.resolver.resolve(specifier, referrer, self.loader)

    def configure(self, delta: dict[str, Any]) -> None:
        self.loader.configure(delta)

    def bind_global(self, name: str, value: Any) -> None:
        self.loader.bind_global(name, value)

    def __repr__(self) -> str:
        return f"ResolvingLoader({self.loader!r})"


class Resolver:
    """Node.js style package resolution on top of an arbitrary module loader."""

    def __init__(
        self,
        exists: Callable[[str], Awaitable[str]] | None = None,
        fetch: FetchFn | None = None,
        settings: ResolverSettings | None = None,
        remote: PeerClient | None = None,
    ):
        """Initialize resolver.

        Args:
            exists: Existence probe primitive (unused when remote is given)
            fetch: Fetch primitive (unused when remote is given)
            settings: Resolution settings (default: ResolverSettings())
            remote: Peer client owning the authoritative cache; without a timeout
                of its own it waits at most settings.peer_timeout per request
        """
        self.settings = settings or ResolverSettings()
        if remote is not None and remote.timeout is None:
            remote.timeout = self.settings.peer_timeout
        self.context = ResolverContext(settings=self.settings, cache=CacheBridge(exists, fetch, remote=remote))
        self.locator = PackageLocator(self.context)
        self.manifests = ManifestLoader(self.context)
        self._loaders: list[HostLoader] = []

        if remote is not None:
            remote.on_config = self.receive_config

    @property
    def cache(self) -> CacheBridge:
        return self.context.cache

    def wrap(self, loader: HostLoader) -> ResolvingLoader:
        """Compose the resolution algorithm around loader.resolve()."""
        loader.bind_global(PROCESS_SHIM, {"env": {"NODE_ENV": self.settings.node_env}})
        loader.bind_global(EMPTY_MODULE, {})
        self._loaders.append(loader)
        return ResolvingLoader(self, loader)

    def receive_config(self, delta: dict[str, Any]) -> None:
        """Adopt configuration synthesized by the peer context."""
        logger.debug(f"[config] relayed from peer: {delta}")
        self.context.config.merge(delta)
        for loader in self._loaders:
            loader.configure(delta)

    def alternate_address(self, address: str) -> str:
        """Second candidate for an address: markup sibling or directory index file."""
        for typed, markup in self.settings.markup_extensions.items():
            if address.endswith(typed):
                return address[: -len(typed)] + markup

        extension = "." + self.settings.default_extension
        base = address[: -len(extension)] if address.endswith(extension) else address
        return f"{base}/index{extension}"

    async def resolve(self, specifier: str, referrer: str | None, loader: HostLoader) -> str:
        """Resolve specifier imported from referrer to a verified address.

        Raises:
            InvalidSpecifier: Malformed import string
            PackageNotFound: No package root candidate exists
            MisconfigurationError: Host loader disagrees after configuration
        """
        address_style = is_relative(specifier) or is_absolute(specifier)

        try:
            guess: str | None = await loader.resolve(specifier, referrer)
        except Exception as e:
            if address_style:
                raise
            logger.debug(f"[resolve] native resolve failed for {specifier}: {e!r}")
            guess = None

        resolved = None
        primary = guess
        alternate = self.alternate_address(guess) if guess else None

        if guess is not None:
            if loader.registry.get(guess) is not None:
                resolved = guess
            elif loader.registry.get(alternate) is not None:
                resolved = alternate
            else:
                try:
                    resolved = await self._probe(guess, alternate)
                except PROBE_FAILURES as e:
                    logger.debug(f"[resolve] {guess} not found ({e}), falling back to packages")

        if resolved is None:
            primary = await self._fallback(specifier, referrer, guess, loader)
            alternate = self.alternate_address(primary)
            resolved = await self._probe(primary, alternate)

        if resolved == alternate and resolved != primary:
            await self._reconcile(alternate, loader)

        actual = await loader.resolve(specifier, referrer)
        if actual != resolved:
            raise MisconfigurationError(resolved, actual)

        logger.debug(
            f"[resolve] {specifier} from {referrer} -> {resolved}",
            extra={"specifier": specifier, "referrer": referrer, "address": resolved},
        )
        return resolved

    async def _probe(self, primary: str, alternate: str) -> str:
        try:
            await self.cache.exists(primary)
            return primary
        except PROBE_FAILURES:
            await self.cache.exists(alternate)
            return alternate

    async def _fallback(self, specifier: str, referrer: str | None, guess: str | None, loader: HostLoader) -> str:
        """Find and configure the package providing specifier. Returns the candidate file address."""
        if is_relative(specifier) or is_absolute(specifier):
            # A relatively imported directory holding its own manifest.
            extension = "." + self.settings.default_extension
            root = guess[: -len(extension)] if guess and guess.endswith(extension) else guess
            if not root:
                raise InvalidSpecifier(specifier)
            try:
                text, root = await self.manifests.load(root)
            except PROBE_FAILURES as e:
                raise PackageNotFound(specifier, [root]) from e
            return self.manifests.synthesize(loader, text, root)

        name, sub_path = parse_package_specifier(specifier)
        root = await self.locator.locate(guess or "", name, origin=referrer)
        text, root = await self.manifests.load(root)
        return self.manifests.synthesize(loader, text, root, name, sub_path)

    async def _reconcile(self, alternate: str, loader: HostLoader) -> None:
        """Teach the owning package that the requested path lives at alternate."""
        match = self.context.tree.find(alternate)
        if match is None:
            await self._register_owner(alternate, loader)
            match = self.context.tree.find(alternate)
        if match is None:
            logger.warning(f"[resolve] no package owns {alternate}, leaving it unmapped")
            return

        sub_path = "." + alternate[match.next :]
        requested = self._requested_sub_path(sub_path)
        if requested is None:
            return

        self.context.config.set_package_map(match.data, requested, sub_path)
        self.context.flush(loader)

    def _requested_sub_path(self, sub_path: str) -> str | None:
        index_file = f"/index.{self.settings.default_extension}"
        if sub_path.endswith(index_file):
            return sub_path[: -len(index_file)] + "." + self.settings.default_extension

        for typed, markup in self.settings.markup_extensions.items():
            if sub_path.endswith(markup):
                return sub_path[: -len(markup)] + typed
        return None

    async def _register_owner(self, address: str, loader: HostLoader) -> None:
        """Load the manifest of the nearest ancestor directory that has one."""
        parts = address.split("/")
        for count in range(len(parts) - 1, 2, -1):
            directory = "/".join(parts[:count])
            try:
                await self.cache.exists(f"{directory}/{MANIFEST_NAME}")
            except PROBE_FAILURES:
                continue
            text, root = await self.manifests.load(directory)
            self.manifests.synthesize(loader, text, root)
            return
