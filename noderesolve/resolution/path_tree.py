"""Prefix tree over address segments mapping any address to its owning package."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Generic
from typing import TypeVar

T = TypeVar("T")


@dataclass
class PathNode(Generic[T]):
    """One address segment. Children are owned by index, the parent is only a back-reference."""

    name: str
    parent: int | None = None
    children: dict[str, int] = field(default_factory=dict)
    data: T | None = None


@dataclass(frozen=True)
class TreeMatch(Generic[T]):
    """Longest registered prefix of an address.

    Attributes:
        node: Index of the matching node in the arena
        data: Owner data stored on that node
        next: Offset of the separator that follows the prefix in the address
    """

    node: int
    data: T
    next: int


class PathTree(Generic[T]):
    """Arena-backed prefix tree keyed by '/'-separated segments.

    Insertion is idempotent: the first owner data assigned to a path is kept.
    """

    def __init__(self) -> None:
        self._nodes: list[PathNode[T]] = [PathNode(name="")]

    def insert(self, path: str, data: T | None = None) -> int:
        """Insert a path and return its node index."""
        index = 0
        for part in path.split("/"):
            node = self._nodes[index]
            child = node.children.get(part)
            if child is None:
                child = len(self._nodes)
                self._nodes.append(PathNode(name=part, parent=index))
                node.children[part] = child
            index = child

        node = self._nodes[index]
        if node.data is None:
            node.data = data
        return index

    def find(self, path: str) -> TreeMatch[T] | None:
        """Find the deepest owned prefix of path that is followed by a separator."""
        index = 0
        result = None
        pos = 0

        while (next_sep := path.find("/", pos)) >= 0:
            child = self._nodes[index].children.get(path[pos:next_sep])
            if child is None:
                break
            index = child
            data = self._nodes[index].data
            if data is not None:
                result = TreeMatch(node=index, data=data, next=next_sep)
            pos = next_sep + 1

        return result

    def get(self, path: str) -> T | None:
        """Return the owner data stored exactly at path, if any."""
        index = 0
        for part in path.split("/"):
            child = self._nodes[index].children.get(part)
            if child is None:
                return None
            index = child
        return self._nodes[index].data

    def path_of(self, index: int) -> str:
        """Rebuild the address of a node by walking parent indices."""
        parts = []
        node = self._nodes[index]
        while node.parent is not None:
            parts.append(node.name)
            node = self._nodes[node.parent]
        return "/".join(reversed(parts))

    def __len__(self) -> int:
        return len(self._nodes) - 1
