"""Error taxonomy for package resolution.

Only probe failures (ResourceError and OSError) advance a fallback chain.
Everything else is fatal for the resolution that raised it.
"""


class ResolutionError(Exception):
    """Base class for all resolution failures."""


class InvalidSpecifier(ResolutionError):
    """Raised when an import string is neither address-style nor package-style."""

    def __init__(self, specifier: str):
        super().__init__(f"Invalid module specifier: {specifier!r}")
        self.specifier = specifier


class PackageNotFound(ResolutionError):
    """Raised when every candidate package root has been exhausted."""

    def __init__(self, package_name: str, tried: list[str] | None = None):
        self.package_name = package_name
        self.tried = list(tried or [])
        message = f"Package '{package_name}' not found"
        if self.tried:
            message += "\n\nCandidates tried:\n" + "\n".join(f"  - {uri}" for uri in self.tried)
        super().__init__(message)


class TooManyRedirects(ResolutionError):
    """Raised when a redirect chain exceeds the configured hop limit."""

    def __init__(self, uri: str, limit: int):
        super().__init__(f"Too many redirects ({limit}) while requesting {uri}")
        self.uri = uri
        self.limit = limit


class MisconfigurationError(ResolutionError):
    """Raised when the host loader disagrees with the address computed for it."""

    def __init__(self, expected: str, actual: str):
        super().__init__(f"Misconfiguration: {actual} != {expected}")
        self.expected = expected
        self.actual = actual


class ManifestError(ResolutionError):
    """Raised when a package manifest cannot be parsed."""

    def __init__(self, root: str, reason: str):
        super().__init__(f"Invalid package.json under {root}: {reason}")
        self.root = root
        self.reason = reason


class ResourceError(ResolutionError):
    """Raised when a resource probe or fetch fails."""

    def __init__(self, uri: str, reason: str = ""):
        super().__init__(f"{uri}: {reason}" if reason else uri)
        self.uri = uri
        self.reason = reason


class ResourceNotFound(ResourceError):
    """Raised when a resource does not exist."""


class BridgeError(ResourceError):
    """Raised when the peer context answered a request with an error."""


class PeerFailure(ResolutionError):
    """Raised when the peer context hit a fatal error answering a request.

    Unlike BridgeError this is not a probe failure, so it ends the resolution
    just as it does in the peer context.
    """

    def __init__(self, uri: str, kind: str, reason: str):
        super().__init__(f"Peer failed on {uri}: {kind}: {reason}")
        self.uri = uri
        self.kind = kind
        self.reason = reason


class BridgeTimeout(ResolutionError):
    """Raised when the peer context did not answer in time."""

    def __init__(self, method: str, uri: str, timeout: float):
        super().__init__(f"Peer did not answer {method} {uri} within {timeout}s")
        self.method = method
        self.uri = uri
        self.timeout = timeout


# Failures that mean "try the next candidate".
PROBE_FAILURES = (ResourceError, OSError)
