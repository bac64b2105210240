"""Tests for ToolRegistry."""

import pytest

from gatewaychat.tools.base import Tool
from gatewaychat.tools.registry import ToolRegistry
from tests.mock_tools import AddTool, EchoTool, ExtraKeysTool, FailingTool


class BadSchemaTool(Tool):
    @property
    def name(self) -> str:
        return "bad_schema"

    @property
    def description(self) -> str:
        return "Declares an invalid schema."

    @property
    def parameters(self) -> dict:
        return {"type": "object", "properties": {"x": {"type": "not-a-type"}}}

    async def execute(self, **kwargs):
        return None


class NamelessTool(EchoTool):
    @property
    def name(self) -> str:
        return ""


class TestToolRegistry:
    """Test suite for ToolRegistry."""

    def test_register_and_get(self):
        reg = ToolRegistry()
        tool = EchoTool()
        reg.register(tool)
        assert reg.get("echo") is tool
        assert "echo" in reg
        assert len(reg) == 1

    def test_get_returns_none_for_unknown(self):
        reg = ToolRegistry()
        assert reg.get("nonexistent") is None

    def test_require_raises_keyerror_for_unknown(self):
        reg = ToolRegistry()
        with pytest.raises(KeyError, match="nonexistent"):
            reg.require("nonexistent")

    def test_duplicate_registration_raises_valueerror(self):
        reg = ToolRegistry()
        reg.register(EchoTool())
        with pytest.raises(ValueError, match="already registered"):
            reg.register(EchoTool())

    def test_duplicate_registration_with_overwrite(self):
        reg = ToolRegistry()
        tool1 = EchoTool()
        tool2 = EchoTool()
        reg.register(tool1)
        reg.register(tool2, overwrite=True)
        assert reg.get("echo") is tool2

    def test_invalid_schema_rejected_at_registration(self):
        reg = ToolRegistry()
        with pytest.raises(ValueError, match="Invalid parameter schema"):
            reg.register(BadSchemaTool())
        assert "bad_schema" not in reg

    def test_empty_name_rejected(self):
        reg = ToolRegistry()
        with pytest.raises(ValueError, match="must not be empty"):
            reg.register(NamelessTool())

    def test_list_returns_all_sorted_by_name(self):
        reg = ToolRegistry()
        reg.register(FailingTool())
        reg.register(EchoTool())
        reg.register(AddTool())
        names = [t.name for t in reg.list()]
        assert names == ["add", "echo", "explode"]
        assert reg.names() == names

    def test_list_filtered_by_enabled(self):
        reg = ToolRegistry()
        reg.register(EchoTool())
        reg.register(AddTool())
        assert [t.name for t in reg.list(enabled=["add", "missing"])] == ["add"]


class TestDefinitions:
    def test_openai_shape(self):
        reg = ToolRegistry()
        reg.register(EchoTool())
        (definition,) = reg.definitions()
        assert definition["type"] == "function"
        fn = definition["function"]
        assert fn["name"] == "echo"
        assert fn["description"] == "Echoes the input message back."
        assert fn["parameters"]["required"] == ["message"]
        assert fn["parameters"]["additionalProperties"] is False

    def test_explicit_additional_properties_kept(self):
        reg = ToolRegistry()
        reg.register(ExtraKeysTool())
        params = reg.definitions()[0]["function"]["parameters"]
        assert params["additionalProperties"] is True

    def test_enabled_filter(self):
        reg = ToolRegistry()
        reg.register(EchoTool())
        reg.register(AddTool())
        names = [d["function"]["name"] for d in reg.definitions(enabled=["echo"])]
        assert names == ["echo"]

    def test_empty_enabled_list_gives_nothing(self):
        reg = ToolRegistry()
        reg.register(EchoTool())
        assert reg.definitions(enabled=[]) == []


class TestPlugins:
    def test_disabled_loads_nothing(self):
        reg = ToolRegistry()
        assert reg.load_plugins(enabled=False) == 0
        assert len(reg) == 0

    def test_loads_entry_points(self, monkeypatch):
        class FakeEntryPoint:
            name = "echo"

            def load(self):
                return EchoTool

        monkeypatch.setattr(
            "gatewaychat.tools.registry.entry_points",
            lambda group: [FakeEntryPoint()],
        )
        reg = ToolRegistry()
        assert reg.load_plugins(enabled=True) == 1
        assert "echo" in reg

    def test_allow_list(self, monkeypatch):
        class FakeEntryPoint:
            name = "echo"

            def load(self):
                return EchoTool

        monkeypatch.setattr(
            "gatewaychat.tools.registry.entry_points",
            lambda group: [FakeEntryPoint()],
        )
        reg = ToolRegistry()
        assert reg.load_plugins(enabled=True, allow_tools={"other"}) == 0
