"""
Tests for the introspection API.
"""

import json

import pytest
from fieldscript.engine.world import build_world
from fieldscript.script import compile_script
from fieldscript.script.introspection import (
    get_api_reference, list_entries, get_entry_info, get_methods_for_type,
    describe_entry, format_api, get_api_as_json,
    get_common_pattern, list_common_patterns,
)


@pytest.fixture(scope="module")
def world():
    return build_world()


class TestApiReference:
    def test_reference_structure(self, world):
        api = get_api_reference(world)
        assert "config" in api["types"]
        assert len(api["entries"]) == len(world)
        assert "config" in api["methods"]

    def test_every_listed_type_is_used(self, world):
        api = get_api_reference(world)
        # bool is the type of boolean literals
        used = {"bool"}
        for entry in api["entries"] + [m for ms in api["methods"].values() for m in ms]:
            used.add(entry["returns"])
            used.update(p["type"] for p in entry["params"])
        assert set(api["types"]) <= used

    def test_json_roundtrips(self, world):
        data = json.loads(get_api_as_json(world))
        assert data == get_api_reference(world)

    def test_format_api_lists_signatures(self, world):
        text = format_api(world)
        assert "vortex(circ: int, pol: int) -> config" in text
        assert "config.rotZ(theta: float) -> config" in text


class TestListEntries:
    def test_sorted(self, world):
        names = list_entries(world)
        assert names == sorted(names, key=str.lower)

    def test_by_kind(self, world):
        values = list_entries(world, kind="value")
        assert set(values) == {"m", "pi"}

    def test_by_return_type(self, world):
        configs = list_entries(world, kind="function", returns="config")
        assert {"uniform", "vortex", "twoDomain", "vortexWall", "addNoise"} <= set(configs)
        assert "run" not in configs

    def test_by_prefix_any_case(self, world):
        assert list_entries(world, prefix="VORT") == ["vortex", "vortexWall"]


class TestEntryInfo:
    def test_entry_info(self, world):
        info = get_entry_info(world, "setgridsize")
        assert info["name"] == "setGridSize"
        assert info["kind"] == "function"
        assert [p["name"] for p in info["params"]] == ["nx", "ny", "nz"]

    def test_settable_value(self, world):
        info = get_entry_info(world, "m")
        assert info["settable"]
        assert info["returns"] == "config"

    def test_unknown(self, world):
        assert get_entry_info(world, "bogus") is None

    def test_methods_for_type(self, world):
        methods = get_methods_for_type(world, "CONFIG")
        assert methods["transl"]["receiver"] == "config"
        assert get_methods_for_type(world, "nosuchtype") == {}

    def test_describe(self, world):
        text = describe_entry(world, "m")
        assert "Signature: m: config" in text
        assert "can be assigned" in text
        assert describe_entry(world, "bogus") == "Unknown identifier: bogus"


class TestCommonPatterns:
    def test_patterns_compile(self, world):
        for name in list_common_patterns():
            compile_script(get_common_pattern(name), world)

    def test_unknown_pattern(self):
        assert get_common_pattern("bogus") is None
