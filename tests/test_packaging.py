"""Tests for package metadata: dependency bounds and the reported version."""

import tomllib
from importlib.metadata import version
from pathlib import Path

import mcp.types as types

import toolgate

PYPROJECT = tomllib.loads((Path(__file__).parent.parent / "pyproject.toml").read_text())


def requirement(name: str) -> str:
    deps = PYPROJECT["project"]["dependencies"]
    return next(d for d in deps if d.split(">")[0].split("<")[0].split("[")[0] == name)


class TestDependencies:
    def test_mcp_pinned_below_2(self):
        # tools/list is built from types.Tool(inputSchema=...), the 1.x model.
        assert "<2" in requirement("mcp")
        assert "inputSchema" in types.Tool.model_fields


class TestVersion:
    def test_matches_installed_distribution(self):
        assert toolgate.__version__ == version("toolgate")
        assert toolgate.__version__ == PYPROJECT["project"]["version"]
