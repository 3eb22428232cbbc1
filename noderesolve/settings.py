"""Settings for noderesolve.

Simple, scope-aware YAML settings plus environment overrides.

Scope priority (most specific wins):
1. environment variables (NODERESOLVE_*, NODE_ENV)
2. project (.noderesolve/settings.yaml)
3. global (~/.noderesolve/settings.yaml)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from dataclasses import field
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from .merge_utils import deep_merge

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://unpkg.com/"


@dataclass
class ResolverSettings:
    """Tunables of the resolution algorithm."""

    registry_url: str = DEFAULT_REGISTRY_URL
    max_redirects: int = 3
    node_env: str = "production"
    default_extension: str = "js"
    peer_timeout: float | None = 30.0
    # Packages whose sources are misdetected unless the module format is forced.
    format_overrides: dict[str, str] = field(default_factory=lambda: {"typescript": "cjs"})
    # Typed-source extension -> sibling extension of files with embedded markup.
    markup_extensions: dict[str, str] = field(default_factory=lambda: {".ts": ".tsx"})

    def __post_init__(self) -> None:
        if not self.registry_url.endswith("/"):
            self.registry_url += "/"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResolverSettings:
        """Build settings from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass
class SettingsPaths:
    """Standard paths for settings files."""

    global_settings: Path
    project_settings: Path

    @classmethod
    def default(cls) -> SettingsPaths:
        return cls(
            global_settings=Path.home() / ".noderesolve" / "settings.yaml",
            project_settings=Path.cwd() / ".noderesolve" / "settings.yaml",
        )


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            content = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to read {path}: {e}")
        return {}
    if not isinstance(content, dict):
        logger.warning(f"Ignoring {path}: top level is not a mapping")
        return {}
    return content


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}

    if registry := environ.get("NODERESOLVE_REGISTRY_URL"):
        overrides["registry_url"] = registry

    if redirects := environ.get("NODERESOLVE_MAX_REDIRECTS"):
        try:
            overrides["max_redirects"] = int(redirects)
        except ValueError:
            logger.warning(f"Ignoring NODERESOLVE_MAX_REDIRECTS={redirects!r}: not an integer")

    if node_env := environ.get("NODE_ENV"):
        overrides["node_env"] = node_env

    if timeout := environ.get("NODERESOLVE_PEER_TIMEOUT"):
        if timeout.lower() in ("none", "off", "0"):
            overrides["peer_timeout"] = None
        else:
            try:
                overrides["peer_timeout"] = float(timeout)
            except ValueError:
                logger.warning(f"Ignoring NODERESOLVE_PEER_TIMEOUT={timeout!r}: not a number")

    return overrides


def load_settings(paths: SettingsPaths | None = None, environ: dict[str, str] | None = None) -> ResolverSettings:
    """Load and merge settings from all scopes."""
    paths = paths or SettingsPaths.default()
    environ = dict(os.environ) if environ is None else environ

    merged: dict[str, Any] = {}
    for path in [paths.global_settings, paths.project_settings]:
        merged = deep_merge(merged, _read_yaml(path))

    merged = deep_merge(merged, _env_overrides(environ))
    return ResolverSettings.from_dict(merged)
