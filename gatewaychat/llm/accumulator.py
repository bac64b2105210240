"""
Folds streamed chat-completion payloads into a per-turn ``StreamState``.

Design goals:
  - Text, reasoning, images and tool-call fragments are accumulated as they
    arrive; ``apply`` reports whether anything visible changed so the caller
    can decide whether to schedule a store update.
  - Tool-call fragments are keyed by ``index`` and only finalized once the
    iteration's stream has ended.  Arguments that fail to parse finalize to an
    empty input and the failure is recorded in ``state.errors``.
  - ``usage`` frames carry the iteration's running total, so they are kept per
    iteration and merged into the turn total exactly once, in
    ``end_iteration``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from gatewaychat.llm.images import ImageFragmentReconstructor
from gatewaychat.llm.types import ToolCall, ToolCallFragment
from gatewaychat.types import (
    ImageRef,
    Part,
    TextPart,
    ToolInvocationPart,
    Usage,
)

logger = logging.getLogger(__name__)

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"


@dataclass
class StreamState:
    """
    Everything accumulated for one assistant turn.

    Owned by the orchestrator loop running the turn; created at turn start and
    discarded at turn end.
    """

    content: str = ""
    reasoning: str = ""
    images: list[ImageRef] = field(default_factory=list)
    parts: list[Part] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    iteration_content_start: int = 0
    iteration: int = 0
    errors: list[str] = field(default_factory=list)

    # Per-iteration buffers, reset by ``begin_iteration``.
    tool_fragments: dict[int, ToolCallFragment] = field(default_factory=dict)
    image_slots: ImageFragmentReconstructor = field(
        default_factory=ImageFragmentReconstructor
    )
    iteration_usage: Usage | None = None

    _call_ids: set[str] = field(default_factory=set, repr=False)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def visible_content(self) -> str:
        """Content as the rendering layer sees it, reasoning included."""
        if self.reasoning:
            if self.content:
                return f"{THINK_OPEN}{self.reasoning}{THINK_CLOSE}{self.content}"
            # Unterminated: the model is still thinking.
            return f"{THINK_OPEN}{self.reasoning}"
        return self.content

    def display_images(self) -> list[ImageRef]:
        return self.images + self.image_slots.images()

    def display_usage(self) -> Usage:
        return self.usage.merge(self.iteration_usage)

    def iteration_text(self) -> str:
        return self.content[self.iteration_content_start:]

    # ------------------------------------------------------------------
    # Iteration lifecycle
    # ------------------------------------------------------------------

    def begin_iteration(self) -> None:
        self.iteration += 1
        self.tool_fragments = {}
        self.image_slots = ImageFragmentReconstructor()
        self.iteration_usage = None

    def end_iteration(self) -> None:
        """Commit the iteration's usage and images into the turn totals."""
        if self.iteration_usage is not None:
            self.usage = self.usage.merge(self.iteration_usage)
            self.iteration_usage = None
        self.images.extend(self.image_slots.images())
        self.image_slots = ImageFragmentReconstructor()

    # ------------------------------------------------------------------
    # Parts
    # ------------------------------------------------------------------

    def append_iteration_text_part(self) -> bool:
        """
        Append the text produced since the last tool boundary as a text part.

        Only applies once the turn already has parts, so a turn without tool
        calls stays flat text.
        """
        text = self.iteration_text()
        if self.parts and text.strip():
            self.parts.append(TextPart(content=text))
            return True
        return False

    def finalize_tool_calls(self) -> list[ToolCall]:
        """Turn this iteration's fragments into ``ToolCall`` objects, by index."""
        calls: list[ToolCall] = []
        for idx in sorted(self.tool_fragments):
            frag = self.tool_fragments[idx]
            raw_args = frag.arguments or "{}"
            try:
                parsed = json.loads(raw_args)
            except (json.JSONDecodeError, ValueError) as exc:
                self.errors.append(
                    f"tool_call_json_parse_failed idx={idx} err={exc}"
                )
                logger.warning(
                    "Unparseable arguments for tool call %s (%s): %s",
                    idx, frag.name, raw_args[:200],
                )
                parsed = {}
            if not isinstance(parsed, dict):
                self.errors.append(f"tool_call_args_not_object idx={idx}")
                parsed = {}

            calls.append(
                ToolCall(
                    id=self._unique_call_id(frag.id or f"call_{self.iteration}_{idx}"),
                    name=frag.name.strip(),
                    arguments=raw_args,
                    input=parsed,
                )
            )
        self.tool_fragments = {}
        return calls

    def add_tool_parts(self, calls: list[ToolCall]) -> list[ToolInvocationPart]:
        new_parts = [
            ToolInvocationPart(tool_name=c.name, tool_call_id=c.id, input=c.input)
            for c in calls
        ]
        self.parts.extend(new_parts)
        return new_parts

    def find_tool_part(self, tool_call_id: str) -> ToolInvocationPart | None:
        for part in self.parts:
            if isinstance(part, ToolInvocationPart) and part.tool_call_id == tool_call_id:
                return part
        return None

    def _unique_call_id(self, call_id: str) -> str:
        candidate = call_id
        n = 1
        while candidate in self._call_ids:
            n += 1
            candidate = f"{call_id}_{n}"
        self._call_ids.add(candidate)
        return candidate


class DeltaAccumulator:
    """Applies parsed SSE payloads to a ``StreamState``."""

    def apply(self, state: StreamState, payload: dict) -> bool:
        """
        Fold one payload into *state*.

        Returns ``True`` when something observable (text, reasoning, images,
        usage) changed.  Tool-call fragments alone do not count: they only
        become visible when the iteration ends.
        """
        changed = False

        raw_usage = payload.get("usage")
        if isinstance(raw_usage, dict):
            state.iteration_usage = Usage.from_payload(raw_usage)
            changed = True

        choices = payload.get("choices")
        if not choices or not isinstance(choices[0], dict):
            return changed
        delta = choices[0].get("delta") or {}

        reasoning = delta.get("reasoning_content") or delta.get("reasoning")
        if isinstance(reasoning, str) and reasoning:
            state.reasoning += reasoning
            changed = True

        content = delta.get("content")
        if isinstance(content, str) and content:
            state.content += content
            changed = True

        images = delta.get("images")
        if images:
            for img in images:
                if isinstance(img, dict):
                    state.image_slots.feed(img)
            changed = True

        tool_calls = delta.get("tool_calls")
        if tool_calls:
            self._merge_tool_calls(state, tool_calls)

        return changed

    @staticmethod
    def _merge_tool_calls(state: StreamState, deltas: list) -> None:
        fragments = state.tool_fragments
        for delta in deltas:
            if not isinstance(delta, dict):
                continue

            index = delta.get("index")
            delta_id = delta.get("id")
            if not isinstance(index, int) or index < 0:
                index = None
                if delta_id:
                    for existing in fragments.values():
                        if existing.id == delta_id:
                            index = existing.index
                            break
                if index is None:
                    index = max(fragments, default=-1) + 1

            frag = fragments.get(index)
            if frag is None:
                frag = fragments[index] = ToolCallFragment(index=index)

            if delta_id and not frag.id:
                frag.id = delta_id

            function = delta.get("function") or {}
            name = function.get("name")
            if name and not frag.name:
                frag.name = name
            arguments = function.get("arguments")
            if arguments:
                frag.arguments += arguments
