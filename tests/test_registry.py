"""Tests for toolgate.core.registry: category inference, ToolSpec schema helpers, registry table."""

import pytest
from pydantic import BaseModel, Field

from toolgate.core.registry import NoArguments, ToolRegistry, ToolSpec, infer_category

from tests.helpers import boom_spec, echo_spec


class TestInferCategory:
    @pytest.mark.parametrize("name,expected", [
        ("help", "meta"),
        ("list_capabilities", "meta"),
        ("list_tasks", "meta"),
        ("server_status", "meta"),
        ("create_task", "tasks"),
        ("save_memory", "memory"),
        ("web_search", "search"),
        ("deep_research", "search"),
        ("generate_image", "images"),
        ("create_issue", "github"),
        ("create_pr", "github"),
        ("list_repos", "meta"),
        ("fork_repo", "github"),
        ("deploy_site", "deploy"),
        ("echo", "other"),
    ])
    def test_rules(self, name, expected):
        assert infer_category(name) == expected


class TestToolSpec:
    def test_argument_names(self):
        class Args(BaseModel):
            title: str
            body: str | None = None
            count: int = Field(3, ge=1)

        spec = ToolSpec(name="t", description="", handler=None, input_model=Args)
        required, properties = spec.argument_names()
        assert required == ["title"]
        assert properties == ["title", "body", "count"]

    def test_no_arguments_schema(self):
        spec = ToolSpec(name="t", description="", handler=None)
        assert spec.input_model is NoArguments
        schema = spec.json_schema()
        assert schema["type"] == "object"
        assert spec.argument_names() == ([], [])

    def test_describe(self):
        spec = echo_spec(examples=("echo msg=hi",))
        info = spec.describe()
        assert info["name"] == "echo"
        assert info["required"] == ["msg"]
        assert info["examples"] == ["echo msg=hi"]


class TestToolRegistry:
    def test_register_infers_missing_category(self):
        reg = ToolRegistry()
        stored = reg.register(echo_spec(name="create_task"))
        assert stored.category == "tasks"
        assert reg.get("create_task").category == "tasks"

    def test_explicit_category_wins(self):
        reg = ToolRegistry()
        reg.register(echo_spec(name="list_tasks", category="tasks"))
        assert reg.get("list_tasks").category == "tasks"

    def test_order_and_grouping(self):
        reg = ToolRegistry()
        reg.register(echo_spec())
        reg.register(boom_spec(category="chaos"))
        assert reg.names() == ["echo", "boom"]
        assert reg.categories() == ["chaos", "other"]
        assert [s.name for s in reg.by_category()["chaos"]] == ["boom"]
        assert "echo" in reg
        assert len(reg) == 2

    def test_duplicate_rejected(self):
        reg = ToolRegistry()
        reg.register(echo_spec())
        with pytest.raises(KeyError):
            reg.register(echo_spec())

    def test_frozen_registry_rejects_registration(self):
        reg = ToolRegistry()
        reg.freeze()
        with pytest.raises(RuntimeError):
            reg.register(echo_spec())
