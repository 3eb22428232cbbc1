"""Pytest configuration for noderesolve tests."""

import asyncio
import json
import logging

import pytest

from noderesolve.errors import ResourceNotFound
from noderesolve.resources.fetch import FetchedResource


class FakeResources:
    """In-memory address space standing in for the filesystem / network.

    Directories exist implicitly when a file lives below them. Every call
    is recorded so tests can assert on probe order and coalescing.
    """

    def __init__(self, files=None, redirects=None):
        self.files = dict(files or {})
        self.redirects = dict(redirects or {})
        self.exists_calls = []
        self.fetch_calls = []

    def add(self, address, content=""):
        self.files[address] = content

    def add_manifest(self, root, **fields):
        self.files[f"{root}/package.json"] = json.dumps(fields)

    def _follow(self, uri):
        while uri in self.redirects:
            uri = self.redirects[uri]
        return uri

    async def exists(self, uri):
        self.exists_calls.append(uri)
        await asyncio.sleep(0)
        final = self._follow(uri)
        if final in self.files or any(path.startswith(final + "/") for path in self.files):
            return final
        raise ResourceNotFound(uri, "missing")

    async def fetch(self, uri, cache=None):
        self.fetch_calls.append(uri)
        await asyncio.sleep(0)
        final = self._follow(uri)
        if final not in self.files:
            raise ResourceNotFound(uri, "missing")
        return FetchedResource(url=final, body=self.files[final])


@pytest.fixture
def resources():
    """Empty fake address space."""
    return FakeResources()


@pytest.fixture
def manifest_text():
    """Serialize manifest fields to package.json text."""

    def make(**fields):
        return json.dumps(fields)

    return make


@pytest.fixture
def restore_root_logger():
    """Undo handler and level changes made to the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)
