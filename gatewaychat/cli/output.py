"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from gatewaychat.tools.base import Tool
from gatewaychat.types import ChatMessage, TextPart, ToolInvocationPart, ToolState, Usage

STATE_COLORS = {
    ToolState.INPUT_AVAILABLE: "yellow",
    ToolState.OUTPUT_AVAILABLE: "green",
    ToolState.OUTPUT_ERROR: "red",
}


class OutputFormatter:
    """Rich-based output formatting for the gatewaychat CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_tool_list(self, tools: list[Tool], enabled: set[str] | None = None) -> None:
        table = Table(title="Registered Tools", show_lines=True)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Enabled", no_wrap=True)
        table.add_column("Description")

        for t in tools:
            on = enabled is None or t.name in enabled
            table.add_row(t.name, Text("yes" if on else "no", style="green" if on else "dim"), t.description)

        self.console.print(table)

    def format_tool_info(self, tool: Tool) -> None:
        required = tool.parameters.get("required", [])
        self.console.print(Panel(
            f"[bold]{tool.name}[/bold]\n\n"
            f"[dim]Required:[/dim] {', '.join(required) or 'none'}\n\n"
            f"{tool.description}",
            title=f"Tool: {tool.name}",
        ))
        schema_json = json.dumps(tool.parameters, indent=2)
        self.console.print(Syntax(schema_json, "json", theme="monokai"))

    def format_tool_part(self, part: ToolInvocationPart) -> None:
        color = STATE_COLORS.get(part.state, "white")
        args = json.dumps(part.input, default=str)[:80]
        line = f"  [{color}]{part.tool_name}[/{color}]({args})"
        if part.state is ToolState.OUTPUT_AVAILABLE:
            line += f" -> {json.dumps(part.output, default=str)[:200]}"
        elif part.state is ToolState.OUTPUT_ERROR:
            line += f" -> [red]{part.error_text}[/red]"
        self.console.print(line, highlight=False)

    def format_usage(self, usage: Usage | None) -> None:
        if usage is None:
            return
        text = (
            f"[dim]tokens: {usage.prompt_tokens} in / {usage.completion_tokens} out"
            f" / {usage.total_tokens} total"
        )
        if usage.cost:
            text += f"  cost: ${usage.cost:.6f}"
        self.console.print(text + "[/dim]")

    def format_message(self, message: ChatMessage) -> None:
        """Print a finished assistant message: parts in order, else plain content."""
        if message.parts:
            for part in message.parts:
                if isinstance(part, TextPart):
                    self.console.print(part.content, markup=False)
                else:
                    self.format_tool_part(part)
        else:
            self.console.print(message.content, markup=False)
        for image in message.images or []:
            self.console.print(f"  [dim]image:[/dim] {image.url[:120]}")
        self.format_usage(message.usage)

    def format_config(self, config: dict[str, Any]) -> None:
        json_str = json.dumps(config, indent=2, default=str)
        self.console.print(Syntax(json_str, "json", theme="monokai"))
