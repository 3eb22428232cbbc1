"""Host module loader contract and a reference in-memory loader.

The resolver wraps any object satisfying HostLoader. MemoryLoader is a
small loader that honours the configuration the resolver emits, so the
resolver's final integrity check has something concrete to agree with.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from typing import Protocol
from urllib.parse import urljoin

from .merge_utils import deep_merge

logger = logging.getLogger(__name__)

# Loader conventions shared with the emitted configuration.
EMPTY_MODULE = "@empty"
PROCESS_SHIM = "global:process"


class HostLoader(Protocol):
    """What the resolver needs from a module loader."""

    registry: Mapping[str, Any]

    async def resolve(self, specifier: str, referrer: str | None = None) -> str: ...

    def configure(self, delta: dict[str, Any]) -> None: ...

    def bind_global(self, name: str, value: Any) -> None: ...


def is_relative(specifier: str) -> bool:
    return specifier in (".", "..") or specifier.startswith(("./", "../"))


def is_absolute(specifier: str) -> bool:
    return "://" in specifier or specifier.startswith("/")


def has_extension(address: str) -> bool:
    return "." in address.rsplit("/", 1)[-1]


class MemoryLoader:
    """Reference loader with map/packages/meta configuration.

    Resolution:
    1. Relative specifiers join onto the referrer's directory
    2. Bare specifiers use the referrer package's local map, then the global map
       (longest name or name/ prefix), else join onto base_url
    3. A request for a package root gets the package main appended
    4. A bare final segment gets the nearest package defaultExtension
    5. The owning package's local map rewrites ./sub/paths
    """

    def __init__(self, base_url: str = "file:///", default_extension: str = "js"):
        self.base_url = base_url
        self.default_extension = default_extension
        self.config: dict[str, Any] = {"map": {}, "meta": {}, "packages": {}}
        self.registry: dict[str, Any] = {}

    def configure(self, delta: dict[str, Any]) -> None:
        self.config = deep_merge(self.config, delta)

    def bind_global(self, name: str, value: Any) -> None:
        self.registry[name] = value

    async def resolve(self, specifier: str, referrer: str | None = None) -> str:
        return self.resolve_address(specifier, referrer)

    def resolve_address(self, specifier: str, referrer: str | None = None) -> str:
        if specifier == EMPTY_MODULE:
            return specifier

        if is_relative(specifier):
            address = urljoin(referrer or self.base_url, specifier)
        elif is_absolute(specifier):
            address = urljoin(self.base_url, specifier)
        else:
            mapped = self._map_bare(specifier, referrer)
            if mapped == EMPTY_MODULE:
                return mapped
            address = mapped

        return self._apply_packages(address)

    # ----- Package lookup -----

    def _package_roots(self) -> list[tuple[str, dict[str, Any]]]:
        """All configured packages as (root address, config), longest root first."""
        roots = []
        for key, config in self.config.get("packages", {}).items():
            if is_absolute(key):
                root = key.rstrip("/")
            elif key in self.config.get("map", {}):
                root = self.config["map"][key].rstrip("/")
            else:
                continue
            roots.append((root, config))
        roots.sort(key=lambda item: len(item[0]), reverse=True)
        return roots

    def _owner(self, address: str) -> tuple[str, dict[str, Any]] | None:
        for root, config in self._package_roots():
            if address.startswith(root + "/"):
                return root, config
        return None

    def _map_bare(self, specifier: str, referrer: str | None) -> str:
        if referrer and (owner := self._owner(referrer)):
            root, config = owner
            local = (config.get("map") or {}).get(specifier)
            if local is not None:
                if local == EMPTY_MODULE:
                    return local
                if is_relative(local):
                    return root + "/" + local[2:] if local.startswith("./") else urljoin(root + "/", local)
                specifier = local

        global_map = self.config.get("map", {})
        best = None
        for name in global_map:
            if (specifier == name or specifier.startswith(name + "/")) and (best is None or len(name) > len(best)):
                best = name

        if best is None:
            return urljoin(self.base_url, specifier)
        return global_map[best].rstrip("/") + specifier[len(best) :]

    def _apply_packages(self, address: str) -> str:
        roots = self._package_roots()

        for root, config in roots:
            if address == root and config.get("main"):
                address = root + "/" + _strip_dot(config["main"])
                break

        if not has_extension(address):
            extension = self.default_extension
            for root, config in roots:
                if address.startswith(root + "/") and config.get("defaultExtension"):
                    extension = config["defaultExtension"]
                    break
            if extension:
                address = f"{address}.{extension}"

        owner = self._owner(address)
        if owner is not None:
            root, config = owner
            sub_path = "." + address[len(root) :]
            target = (config.get("map") or {}).get(sub_path)
            if target == EMPTY_MODULE:
                return target
            if target:
                address = root + "/" + _strip_dot(target)

        return address


def _strip_dot(path: str) -> str:
    return path[2:] if path.startswith("./") else path.lstrip("/")
