"""Reduce semver range strings to one representative version for registry lookups."""

import logging
import re
from collections.abc import Iterable
from collections.abc import Mapping

logger = logging.getLogger(__name__)

_SEPARATOR = re.compile(r"\|\||\s+")
_OPERATORS = "<=>~^ "
_PART = re.compile(r"(\d*)(.*)")


def _part_key(part: str) -> tuple[int, int, str]:
    # "0-beta" sorts below "0", which sorts below "1".
    number, suffix = _PART.fullmatch(part).groups()
    return (int(number) if number else -1, 0 if suffix else 1, suffix)


def version_key(version: str) -> tuple[tuple[int, int, str], ...]:
    """Sort key for a dotted version token.

    Shared components are compared pairwise; when they all tie the
    version with more components ranks higher.
    """
    return tuple(_part_key(part) for part in version.split("."))


def range_tokens(range_string: str) -> list[str]:
    """Split a range expression into bare dotted version tokens.

    >>> range_tokens(">=1.2.0 <2 || ^3.1")
    ['1.2.0', '2', '3.1']
    """
    tokens = []
    for raw in _SEPARATOR.split(range_string):
        token = raw.lstrip(_OPERATORS)
        # "1.0.0 - 2.0.0": the lone dash only joins the two bounds.
        if not token or token == "-":
            continue
        if not token[0].isdigit():
            continue
        tokens.append(token)
    return tokens


def reduce_versions(range_strings: Iterable[str]) -> str | None:
    """Return the component-wise maximum version across all ranges, or None."""
    best = None
    best_key = None
    for range_string in range_strings:
        for token in range_tokens(range_string):
            key = (version_key(token), token)
            if best_key is None or key > best_key:
                best, best_key = token, key
    return best


class VersionSelector:
    """Per-package pinned versions harvested from manifest dependencies.

    The first manifest that mentions a package decides its version.
    """

    def __init__(self) -> None:
        self._pinned: dict[str, str] = {}

    def reduce(self, range_strings: Iterable[str]) -> str | None:
        return reduce_versions(range_strings)

    def remember(self, package_name: str, range_strings: Iterable[str]) -> str | None:
        """Pin a version for package_name unless one is already pinned."""
        if package_name in self._pinned:
            return self._pinned[package_name]

        version = reduce_versions(range_strings)
        if version is not None:
            self._pinned[package_name] = version
            logger.debug(f"[versions] pinned {package_name}@{version}")
        return version

    def harvest(self, dependencies: Mapping[str, str]) -> None:
        """Record the version ranges of a manifest's dependencies."""
        for name, range_string in dependencies.items():
            if isinstance(range_string, str):
                self.remember(name, [range_string])

    def pinned(self, package_name: str) -> str | None:
        return self._pinned.get(package_name)

    def registry_version(self, package_name: str) -> str:
        """Version tag used in registry fallback addresses."""
        return self._pinned.get(package_name) or "latest"
