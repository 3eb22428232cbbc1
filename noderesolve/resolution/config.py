"""Loader configuration models and the cumulative/pending configuration state.

The cumulative configuration is the single source of truth. The pending
delta only mirrors entries that changed since the last flush, and is
cleared once the host loader accepted it.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from ..merge_utils import deep_merge

logger = logging.getLogger(__name__)


class MetaSettings(BaseModel):
    """Per-glob module metadata."""

    model_config = ConfigDict(extra="allow")

    globals: dict[str, str] | None = None
    exports: str | None = None
    format: str | None = None


class PackageConfig(BaseModel):
    """Per-package loader settings."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    main: str | None = None
    map: dict[str, str] | None = None
    meta: dict[str, MetaSettings] | None = None
    default_extension: str | None = Field(default=None, alias="defaultExtension")


class LoaderConfig(BaseModel):
    """Serializable loader configuration: {map, meta, packages}."""

    map: dict[str, str] = Field(default_factory=dict)
    meta: dict[str, MetaSettings] = Field(default_factory=dict)
    packages: dict[str, PackageConfig] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def is_empty(self) -> bool:
        return not (self.map or self.meta or self.packages)


class ConfigState:
    """Cumulative configuration plus the delta not yet applied to the host loader."""

    def __init__(self) -> None:
        self.cumulative = LoaderConfig()
        self.pending = LoaderConfig()

    # ----- Mutators -----

    def set_map(self, name: str, address: str) -> bool:
        """Map a package name to its root address."""
        if self.cumulative.map.get(name) == address:
            return False
        self.cumulative.map[name] = address
        self.pending.map[name] = address
        return True

    def set_meta(self, pattern: str, settings: MetaSettings) -> bool:
        """Add meta settings for a glob pattern unless already present."""
        if pattern in self.cumulative.meta:
            return False
        self.cumulative.meta[pattern] = settings
        self.pending.meta[pattern] = settings
        return True

    def package(self, name: str) -> PackageConfig:
        """Get or create the cumulative config of a package."""
        config = self.cumulative.packages.get(name)
        if config is None:
            config = PackageConfig()
            self.cumulative.packages[name] = config
        return config

    def update_package(self, name: str, **changes: Any) -> bool:
        """Set top-level fields of a package config, marking it pending if anything changed."""
        config = self.package(name)
        changed = False
        for key, value in changes.items():
            if getattr(config, key, None) != value:
                setattr(config, key, value)
                changed = True
        if changed:
            self.pending.packages[name] = config
        return changed

    def set_package_map(self, name: str, key: str, target: str) -> bool:
        """Add a package-local path mapping."""
        config = self.package(name)
        if config.map is None:
            config.map = {}
        if config.map.get(key) == target:
            return False
        config.map[key] = target
        self.pending.packages[name] = config
        return True

    def set_package_meta(self, name: str, pattern: str, settings: MetaSettings) -> bool:
        config = self.package(name)
        if config.meta is None:
            config.meta = {}
        if config.meta.get(pattern) == settings:
            return False
        config.meta[pattern] = settings
        self.pending.packages[name] = config
        return True

    def merge(self, delta: dict[str, Any]) -> None:
        """Merge a configuration delta produced elsewhere into the cumulative config.

        The delta is not marked pending: whoever produced it already applied it.
        """
        merged = deep_merge(self.cumulative.to_dict(), delta)
        self.cumulative = LoaderConfig.model_validate(merged)

    # ----- Flushing -----

    def has_pending(self) -> bool:
        return not self.pending.is_empty()

    def pending_delta(self) -> dict[str, Any]:
        return copy.deepcopy(self.pending.to_dict())

    def flush(self, apply: Callable[[dict[str, Any]], None]) -> dict[str, Any] | None:
        """Hand the pending delta to apply() and clear it once apply() succeeded."""
        if not self.has_pending():
            return None
        delta = self.pending_delta()
        logger.debug(f"[config] flushing {delta}")
        apply(delta)
        self.pending = LoaderConfig()
        return delta

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self.cumulative.to_dict())
