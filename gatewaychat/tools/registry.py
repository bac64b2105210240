from __future__ import annotations

from importlib.metadata import entry_points
from typing import Iterable

from gatewaychat.tools.base import Tool
from gatewaychat.tools.validation import ToolValidator


class ToolRegistry:
    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool, *, overwrite: bool = False) -> None:
        if not tool.name:
            raise ValueError("Tool name must not be empty")
        if tool.name in self._tools and not overwrite:
            raise ValueError(f"Tool already registered: {tool.name}")
        ToolValidator.check_schema(tool)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def require(self, name: str) -> Tool:
        t = self.get(name)
        if not t:
            raise KeyError(name)
        return t

    def names(self) -> list[str]:
        return sorted(self._tools)

    def list(self, enabled: Iterable[str] | None = None) -> list[Tool]:
        tools = sorted(self._tools.values(), key=lambda t: t.name)
        if enabled is None:
            return tools
        allowed = set(enabled)
        return [t for t in tools if t.name in allowed]

    def definitions(self, enabled: Iterable[str] | None = None) -> list[dict]:
        """OpenAI-shaped function definitions, optionally filtered by name."""
        return [t.to_openai_schema() for t in self.list(enabled)]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def load_plugins(
        self,
        *,
        enabled: bool,
        group: str = "gatewaychat.tools",
        allow_tools: set[str] | None = None,
    ) -> int:
        """Register tools advertised through the *group* entry point."""
        if not enabled:
            return 0
        loaded = 0
        for ep in entry_points(group=group):
            if allow_tools and ep.name not in allow_tools:
                continue
            tool_cls = ep.load()
            self.register(tool_cls())
            loaded += 1
        return loaded
