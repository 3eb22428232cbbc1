"""Tests for manifest loading and configuration synthesis."""

from unittest.mock import Mock

import pytest

from noderesolve.errors import ManifestError
from noderesolve.loader import MemoryLoader
from noderesolve.resolution.context import ResolverContext
from noderesolve.resolution.manifest import ManifestLoader
from noderesolve.resolution.manifest import modules_root
from noderesolve.resolution.manifest import strip_dot
from noderesolve.resources.cache import CacheBridge
from noderesolve.settings import ResolverSettings

ROOT = "file:///app/node_modules/pkg"


@pytest.fixture
def context(resources):
    return ResolverContext(settings=ResolverSettings(), cache=CacheBridge(resources.exists, resources.fetch))


@pytest.fixture
def manifests(context):
    return ManifestLoader(context)


@pytest.fixture
def loader():
    return MemoryLoader("file:///app/")


def test_strip_dot():
    assert strip_dot("./lib/x.js") == "lib/x.js"
    assert strip_dot("lib/x.js") == "lib/x.js"


def test_modules_root():
    assert modules_root("file:///app/node_modules/pkg", "pkg") == "file:///app/node_modules/"
    assert modules_root("file:///app/node_modules/@babel/core", "@babel/core") == "file:///app/node_modules/"
    assert modules_root("https://unpkg.com/lodash@4.17.21", "lodash") == "https://unpkg.com/"


class TestSynthesize:
    def test_main_index_resolves_to_exact_root_file(self, manifests, loader, manifest_text):
        address = manifests.synthesize(loader, manifest_text(name="pkg", main="index.js"), ROOT)

        assert address == f"{ROOT}/index.js"

    def test_emits_map_main_and_directory_meta(self, manifests, loader, manifest_text):
        manifests.synthesize(loader, manifest_text(name="pkg", main="./lib/main.js"), ROOT)

        assert loader.config["map"]["pkg"] == ROOT
        assert loader.config["packages"]["pkg"]["main"] == "lib/main.js"
        assert loader.config["packages"]["file:///app/node_modules/"] == {"defaultExtension": "js"}
        assert loader.config["meta"]["file:///app/node_modules/*"] == {"globals": {"process": "global:process"}}

    def test_missing_main_defaults_to_index(self, manifests, loader, manifest_text):
        address = manifests.synthesize(loader, manifest_text(name="pkg"), ROOT)

        assert address == f"{ROOT}/index.js"
        assert loader.config["packages"]["pkg"]["main"] == "index.js"

    def test_bare_main_gets_default_extension(self, manifests, loader, manifest_text):
        address = manifests.synthesize(loader, manifest_text(name="pkg", main="lib/widget"), ROOT)

        assert address == f"{ROOT}/lib/widget.js"

    def test_sub_path_import(self, manifests, loader, manifest_text):
        address = manifests.synthesize(loader, manifest_text(name="pkg"), ROOT, "pkg", "fp/map")

        assert address == f"{ROOT}/fp/map.js"

    def test_browser_false_maps_to_empty_module(self, manifests, loader, manifest_text):
        text = manifest_text(name="pkg", browser={"./server.js": False, "./keep.js": True, "./a.js": "./b.js"})

        manifests.synthesize(loader, text, ROOT)

        assert loader.config["packages"]["pkg"]["map"] == {"./server.js": "@empty", "./a.js": "./b.js"}

    def test_browser_string_replaces_main(self, manifests, loader, manifest_text):
        text = manifest_text(name="pkg", main="index.js", browser="./dist/browser.js")

        address = manifests.synthesize(loader, text, ROOT)

        assert address == f"{ROOT}/dist/browser.js"
        assert loader.config["packages"]["pkg"]["main"] == "dist/browser.js"

    def test_browser_string_redirects_explicit_main_import(self, manifests, loader, manifest_text):
        text = manifest_text(name="pkg", main="index.js", browser="browser.js")

        address = manifests.synthesize(loader, text, ROOT, "pkg", "index.js")

        assert address == f"{ROOT}/browser.js"
        assert loader.config["packages"]["pkg"]["map"] == {"./index.js": "./browser.js"}

    def test_browser_string_maps_extensionless_main(self, manifests, loader, manifest_text):
        text = manifest_text(name="pkg", main="lib/widget", browser="./lib/widget-browser")

        address = manifests.synthesize(loader, text, ROOT, "pkg", "lib/widget.js")

        assert address == f"{ROOT}/lib/widget-browser.js"
        assert loader.config["packages"]["pkg"]["map"] == {"./lib/widget.js": "./lib/widget-browser.js"}

    def test_format_override(self, manifests, loader, manifest_text):
        root = "file:///app/node_modules/typescript"

        manifests.synthesize(loader, manifest_text(name="typescript", main="./lib/typescript.js"), root)

        assert loader.config["packages"]["typescript"]["meta"] == {"*.js": {"format": "cjs"}}

    def test_scoped_package_meta_uses_outer_modules_directory(self, manifests, loader, manifest_text):
        root = "file:///app/node_modules/@babel/core"

        manifests.synthesize(loader, manifest_text(name="@babel/core", main="lib/index.js"), root)

        assert "file:///app/node_modules/*" in loader.config["meta"]
        assert loader.config["map"]["@babel/core"] == root

    def test_dependencies_are_harvested(self, manifests, context, loader, manifest_text):
        manifests.synthesize(loader, manifest_text(name="pkg", dependencies={"lodash": "^4.17.21"}), ROOT)

        assert context.versions.pinned("lodash") == "4.17.21"

    def test_directory_meta_is_sent_once(self, manifests, manifest_text):
        loader = Mock()

        manifests.synthesize(loader, manifest_text(name="a"), "file:///app/node_modules/a")
        manifests.synthesize(loader, manifest_text(name="b"), "file:///app/node_modules/b")

        first, second = (call.args[0] for call in loader.configure.call_args_list)
        assert "file:///app/node_modules/*" in first["meta"]
        assert second["meta"] == {}
        assert set(second["packages"]) == {"b"}

    def test_resynthesis_sends_nothing(self, manifests, manifest_text):
        loader = Mock()
        text = manifest_text(name="pkg", main="index.js")

        manifests.synthesize(loader, text, ROOT)
        manifests.synthesize(loader, text, ROOT)

        assert loader.configure.call_count == 1

    def test_invalid_json(self, manifests, loader):
        with pytest.raises(ManifestError) as exc_info:
            manifests.synthesize(loader, "{not json", ROOT)

        assert exc_info.value.root == ROOT


class TestCanonicalName:
    def test_first_name_sticks(self, manifests, loader, manifest_text, context):
        manifests.synthesize(loader, manifest_text(name="pkg"), ROOT)
        manifests.synthesize(loader, manifest_text(name="pkg"), ROOT, known_name="alias")

        assert context.records[ROOT].canonical_name == "pkg"
        assert context.tree.get(ROOT) == "pkg"
        # The import name still reaches the same root.
        assert loader.config["map"]["alias"] == ROOT
        assert loader.config["map"]["pkg"] == ROOT

    def test_unnamed_package_gets_stable_placeholder(self, manifests, loader, context):
        root = "file:///app/vendor/widget"

        manifests.synthesize(loader, "{}", root)
        name = context.tree.get(root)
        manifests.synthesize(loader, "{}", root)

        assert name.startswith("__package")
        assert context.tree.get(root) == name
        assert loader.config["map"][name] == root

    def test_placeholders_are_distinct(self, manifests):
        first = manifests.canonical_name("file:///a", None)
        second = manifests.canonical_name("file:///b", None)

        assert first != second


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_returns_text_and_root(self, manifests, resources, manifest_text):
        resources.add(f"{ROOT}/package.json", manifest_text(name="pkg"))

        text, root = await manifests.load(ROOT)

        assert root == ROOT
        assert '"pkg"' in text

    @pytest.mark.asyncio
    async def test_load_follows_redirected_root(self, manifests, resources, manifest_text):
        resources.add_manifest("https://unpkg.com/lodash@4.17.21", name="lodash")
        resources.redirects["https://unpkg.com/lodash@latest/package.json"] = (
            "https://unpkg.com/lodash@4.17.21/package.json"
        )

        _, root = await manifests.load("https://unpkg.com/lodash@latest")

        assert root == "https://unpkg.com/lodash@4.17.21"

    @pytest.mark.asyncio
    async def test_manifest_fetched_once(self, manifests, resources, manifest_text):
        resources.add(f"{ROOT}/package.json", manifest_text(name="pkg"))

        await manifests.load(ROOT)
        await manifests.load(ROOT)

        assert resources.fetch_calls == [f"{ROOT}/package.json"]
