"""Core types for the streaming subsystem."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ToolCallFragment:
    """
    A tool call under construction within one iteration.

    Providers stream tool calls as deltas keyed by ``index``; the
    accumulator folds them into one fragment per index.
    """

    index: int
    id: str | None = None
    name: str = ""
    arguments: str = ""


@dataclass
class ToolCall:
    """A finalized tool call with its raw and parsed arguments."""

    id: str
    name: str
    arguments: str
    input: dict

    def to_wire(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }
