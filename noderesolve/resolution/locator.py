"""Node.js style package root search.

Candidates, in the order they are tried:
1. A directory already named like the package on the loader's guessed path
2. <ancestor>/node_modules/<name>, nearest ancestor first
3. <registry>/<name>@<pinned version>
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import PROBE_FAILURES
from ..errors import PackageNotFound
from .context import ResolverContext
from .manifest import MANIFEST_NAME

logger = logging.getLogger(__name__)

NODE_MODULES = "node_modules"


@dataclass(frozen=True)
class Candidate:
    """A possible package root and the directory that holds it."""

    modules_root: str
    name: str

    @property
    def root(self) -> str:
        return self.modules_root + self.name


def _scan(parts: list[str], package_name: str) -> tuple[int, int | None]:
    """Scan segments from the end.

    Returns:
        Tuple of (limit, same_name). Ancestors below index limit are searched;
        same_name is the index of the deepest segment named like the package,
        unless it sits directly inside a node_modules directory.
    """
    low_names = (package_name.lower(), package_name.lower() + ".js")
    same_name = None
    # The last segment names a file, never a package directory.
    index = len(parts) - 1

    while index > 0:
        index -= 1
        low_part = parts[index].lower()
        if low_part == NODE_MODULES:
            return index, None
        if same_name is not None:
            return same_name, same_name
        if low_part in low_names:
            same_name = index

    return len(parts), same_name


class PackageLocator:
    """Finds the root address of a package by probing for its manifest."""

    def __init__(self, context: ResolverContext):
        self.context = context

    def candidates(self, guess: str, package_name: str, origin: str | None = None) -> list[Candidate]:
        """Ordered package root candidates, first to try first.

        Args:
            guess: Address the host loader guessed for the import
            package_name: Package to look for
            origin: Address the upward node_modules search starts from (default: guess)
        """
        guess_parts = guess.split("/") if guess else []
        limit, same_name = _scan(guess_parts, package_name)

        if origin is not None and origin != guess:
            origin_parts = origin.split("/")
            limit, _ = _scan(origin_parts, package_name)
        else:
            origin_parts = guess_parts

        # The last segment is a file, never a directory to search from.
        limit = min(limit, len(origin_parts) - 1)

        ordered: list[Candidate] = []

        if same_name is not None:
            ordered.append(Candidate("/".join(guess_parts[:same_name]) + "/", guess_parts[same_name]))

        directory = "/".join(origin_parts[:2])
        ancestors = []
        for part_num in range(2, limit):
            directory = directory + "/" + origin_parts[part_num]
            if origin_parts[part_num].lower() == NODE_MODULES:
                continue
            ancestors.append(Candidate(directory + f"/{NODE_MODULES}/", package_name))
        ordered.extend(reversed(ancestors))

        version = self.context.versions.registry_version(package_name)
        ordered.append(Candidate(self.context.settings.registry_url, f"{package_name}@{version}"))

        return ordered

    async def locate(self, guess: str, package_name: str, origin: str | None = None) -> str:
        """Return the root address of the first candidate with a manifest.

        Raises:
            PackageNotFound: No candidate has a manifest
        """
        ordered = self.candidates(guess, package_name, origin)
        logger.debug(f"[locate] {package_name}: {[c.root for c in ordered]}")

        tried = []
        for candidate in ordered:
            manifest_uri = f"{candidate.root}/{MANIFEST_NAME}"
            tried.append(candidate.root)
            try:
                found = await self.context.cache.exists(manifest_uri)
            except PROBE_FAILURES as e:
                logger.debug(f"[locate] {candidate.root} rejected: {e}")
                continue

            if candidate.modules_root == self.context.settings.registry_url:
                logger.info(
                    f"[locate] {package_name} not installed, using registry {candidate.root}",
                    extra={"package": package_name, "address": candidate.root},
                )

            suffix = "/" + MANIFEST_NAME
            return found[: -len(suffix)] if found.endswith(suffix) else candidate.root

        raise PackageNotFound(package_name, tried)
