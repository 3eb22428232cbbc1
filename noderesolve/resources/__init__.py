"""Resource access: I/O primitives, the coalescing cache and the cross-context bridge."""

from .bridge import PeerClient
from .bridge import PeerServer
from .bridge import link_endpoints
from .cache import CacheBridge
from .fetch import FetchedResource
from .fetch import ResourceFetcher

__all__ = [
    "CacheBridge",
    "FetchedResource",
    "PeerClient",
    "PeerServer",
    "ResourceFetcher",
    "link_endpoints",
]
