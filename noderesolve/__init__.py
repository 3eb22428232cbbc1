"""noderesolve - Node.js style package resolution for dynamic module loaders."""

from .errors import InvalidSpecifier
from .errors import MisconfigurationError
from .errors import PackageNotFound
from .errors import ResolutionError
from .errors import TooManyRedirects
from .loader import HostLoader
from .loader import MemoryLoader
from .resolution import Resolver
from .resolution import ResolvingLoader
from .settings import ResolverSettings
from .settings import load_settings

__all__ = [
    "HostLoader",
    "InvalidSpecifier",
    "MemoryLoader",
    "MisconfigurationError",
    "PackageNotFound",
    "ResolutionError",
    "Resolver",
    "ResolverSettings",
    "ResolvingLoader",
    "TooManyRedirects",
    "load_settings",
]
