"""Package resolution core.

The resolver wraps a host loader's resolve() with Node.js style package
lookup and feeds the loader the configuration it needs to find the same
packages on its own next time.
"""

from .config import ConfigState
from .config import LoaderConfig
from .config import MetaSettings
from .config import PackageConfig
from .context import PackageManifest
from .context import PackageRecord
from .context import ResolverContext
from .locator import PackageLocator
from .manifest import ManifestLoader
from .path_tree import PathTree
from .resolver import Resolver
from .resolver import ResolvingLoader
from .versions import VersionSelector

__all__ = [
    "ConfigState",
    "LoaderConfig",
    "ManifestLoader",
    "MetaSettings",
    "PackageConfig",
    "PackageLocator",
    "PackageManifest",
    "PackageRecord",
    "PathTree",
    "Resolver",
    "ResolverContext",
    "ResolvingLoader",
    "VersionSelector",
]
