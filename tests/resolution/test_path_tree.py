"""Tests for the package ownership prefix tree."""

from noderesolve.resolution.path_tree import PathTree


def test_find_returns_owner_and_sub_path_offset():
    tree = PathTree()
    root = "file:///app/node_modules/foo"
    tree.insert(root, "foo")

    address = "file:///app/node_modules/foo/lib/index.js"
    match = tree.find(address)

    assert match is not None
    assert match.data == "foo"
    assert "." + address[match.next :] == "./lib/index.js"


def test_find_prefers_longest_owned_prefix():
    tree = PathTree()
    tree.insert("file:///app/node_modules/foo", "foo")
    tree.insert("file:///app/node_modules/foo/node_modules/bar", "bar")

    match = tree.find("file:///app/node_modules/foo/node_modules/bar/x.js")
    assert match.data == "bar"

    match = tree.find("file:///app/node_modules/foo/x.js")
    assert match.data == "foo"


def test_find_requires_separator_after_prefix():
    """The root address itself is not 'inside' the package."""
    tree = PathTree()
    tree.insert("file:///app/node_modules/foo", "foo")

    assert tree.find("file:///app/node_modules/foo") is None
    assert tree.find("file:///app/node_modules/foobar/x.js") is None


def test_find_unknown_address():
    tree = PathTree()
    tree.insert("https://unpkg.com/lodash@4.17.21", "lodash")

    assert tree.find("file:///elsewhere/x.js") is None


def test_insert_is_idempotent_first_owner_wins():
    tree = PathTree()
    first = tree.insert("file:///app/node_modules/foo", "foo")
    second = tree.insert("file:///app/node_modules/foo", "renamed")

    assert first == second
    assert tree.get("file:///app/node_modules/foo") == "foo"
    assert tree.find("file:///app/node_modules/foo/a.js").data == "foo"


def test_insert_without_data_then_with_data():
    tree = PathTree()
    tree.insert("file:///app/pkg")
    tree.insert("file:///app/pkg", "pkg")

    assert tree.get("file:///app/pkg") == "pkg"


def test_path_of_rebuilds_address_from_parent_indices():
    tree = PathTree()
    index = tree.insert("https://unpkg.com/@babel/core@7.0.0", "@babel/core")

    assert tree.path_of(index) == "https://unpkg.com/@babel/core@7.0.0"


def test_intermediate_nodes_hold_no_owner():
    tree = PathTree()
    tree.insert("file:///app/node_modules/foo", "foo")

    assert tree.get("file:///app/node_modules") is None
    assert tree.get("file:///nowhere") is None
    assert len(tree) == 6
