"""Per-resolver state shared by the locator, the manifest loader and the resolver."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from typing import TYPE_CHECKING
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import ValidationError

from ..errors import ManifestError
from ..resources.cache import CacheBridge
from ..settings import ResolverSettings
from .config import ConfigState
from .path_tree import PathTree
from .versions import VersionSelector

if TYPE_CHECKING:
    from ..loader import HostLoader

logger = logging.getLogger(__name__)


class PackageManifest(BaseModel):
    """The fields of package.json the resolver interprets. Other fields pass through untouched."""

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    main: str | None = None
    browser: Any = None
    dependencies: dict[str, Any] = {}

    @classmethod
    def parse(cls, text: str, root: str) -> PackageManifest:
        try:
            return cls.model_validate_json(text)
        except ValidationError as e:
            raise ManifestError(root, e.errors()[0]["msg"]) from e


@dataclass
class PackageRecord:
    canonical_name: str
    root_address: str
    manifest: PackageManifest


@dataclass
class ResolverContext:
    """Everything one resolver instance accumulates. Nothing here is global."""

    settings: ResolverSettings
    cache: CacheBridge
    config: ConfigState = field(default_factory=ConfigState)
    tree: PathTree[str] = field(default_factory=PathTree)
    versions: VersionSelector = field(default_factory=VersionSelector)
    records: dict[str, PackageRecord] = field(default_factory=dict)

    def flush(self, loader: HostLoader) -> None:
        """Apply the pending configuration delta to the loader and relay it to the peer."""

        def apply(delta: dict[str, Any]) -> None:
            loader.configure(delta)
            self.cache.publish_config(delta)

        self.config.flush(apply)
