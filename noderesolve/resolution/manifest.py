"""Package manifest loading and loader configuration synthesis.

A manifest turns into:
- a path mapping  name -> root address
- a packages[name] entry carrying main and browser remaps
- meta for the owning node_modules directory (default extension, process shim),
  emitted once per directory
"""

from __future__ import annotations

import itertools
import logging
import re
from typing import TYPE_CHECKING

from ..loader import EMPTY_MODULE
from ..loader import PROCESS_SHIM
from ..resources.cache import FORCE_CACHE
from .config import MetaSettings
from .context import PackageManifest
from .context import PackageRecord
from .context import ResolverContext

if TYPE_CHECKING:
    from ..loader import HostLoader

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"
DEFAULT_MAIN = "index.js"

_anonymous_ids = itertools.count(1)
_BARE_FILENAME = re.compile(r"(/[^./]+)$")


def strip_dot(path: str) -> str:
    """'./lib/x.js' -> 'lib/x.js'"""
    while path.startswith("./"):
        path = path[2:]
    return path


def with_extension(path: str, extension: str) -> str:
    """Append extension when the last segment of path has none."""
    if "." in path.rsplit("/", 1)[-1]:
        return path
    return f"{path}.{extension}"


def modules_root(root: str, name: str) -> str:
    """Directory holding the package root, with a trailing separator.

    Scoped packages live one level deeper: .../node_modules/@scope/name.
    """
    depth = 2 if name.startswith("@") else 1
    return root.rsplit("/", depth)[0] + "/"


class ManifestLoader:
    """Fetches manifests and synthesizes loader configuration from them."""

    def __init__(self, context: ResolverContext):
        self.context = context

    async def load(self, root_guess: str) -> tuple[str, str]:
        """Fetch the manifest under root_guess.

        Returns:
            Tuple of (manifest text, canonical root address). The root follows
            any redirects the fetch went through.
        """
        response = await self.context.cache.fetch(f"{root_guess}/{MANIFEST_NAME}", FORCE_CACHE)
        root = response.url
        if root.endswith("/" + MANIFEST_NAME):
            root = root[: -len(MANIFEST_NAME) - 1]
        return await response.text(), root

    def canonical_name(self, root: str, name: str | None) -> str:
        """Name the package at root. The first name ever given to a root sticks."""
        record = self.context.records.get(root)
        existing = record.canonical_name if record else self.context.tree.get(root)

        if existing is not None:
            if name and name != existing:
                logger.warning(f"[manifest] {root} already registered as '{existing}', ignoring '{name}'")
            return existing

        name = name or f"__package{next(_anonymous_ids)}"
        self.context.tree.insert(root, name)
        logger.info(f"[manifest] registered {name} -> {root}", extra={"package": name, "address": root})
        return name

    def synthesize(
        self,
        loader: HostLoader,
        manifest_text: str,
        root: str,
        known_name: str | None = None,
        sub_path: str | None = None,
    ) -> str:
        """Merge configuration for the package at root and return the requested file's address."""
        context = self.context
        config = context.config
        settings = context.settings

        manifest = PackageManifest.parse(manifest_text, root)
        main = strip_dot(manifest.main or DEFAULT_MAIN)
        name = self.canonical_name(root, known_name or manifest.name)
        context.records.setdefault(root, PackageRecord(canonical_name=name, root_address=root, manifest=manifest))

        config.set_map(name, root)
        if known_name and known_name != name:
            # Imports still use the name they were written with.
            config.set_map(known_name, root)

        modules_dir = modules_root(root, name)
        if config.set_meta(modules_dir + "*", MetaSettings(globals={"process": PROCESS_SHIM})):
            config.update_package(modules_dir, default_extension=settings.default_extension)

        browser = manifest.browser
        if isinstance(browser, str) and browser:
            browser_main = strip_dot(browser)
            main_file = with_extension(main, settings.default_extension)
            browser_file = with_extension(browser_main, settings.default_extension)
            if main_file != browser_file:
                # Explicit imports of the main file land on the browser file too.
                config.set_package_map(name, "./" + main_file, "./" + browser_file)
            if sub_path is not None and with_extension(strip_dot(sub_path), settings.default_extension) == main_file:
                sub_path = browser_main
            main = browser_main
        elif isinstance(browser, dict):
            for key, target in browser.items():
                if target is True:
                    continue
                config.set_package_map(name, key, target or EMPTY_MODULE)

        config.update_package(name, main=main)

        if format_override := settings.format_overrides.get(name):
            config.set_package_meta(name, "*.js", MetaSettings(format=format_override))

        context.versions.harvest(manifest.dependencies)
        context.flush(loader)

        address = f"{root}/{strip_dot(sub_path or main)}"
        return _BARE_FILENAME.sub(rf"\1.{settings.default_extension}", address)
