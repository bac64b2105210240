"""
Scripted gateway clients for testing.

Provides canned payload streams so tests can exercise the orchestrator loop
without an HTTP server.
"""

from __future__ import annotations

import asyncio
import copy
from typing import AsyncIterator


def content(text: str) -> dict:
    return {"choices": [{"delta": {"content": text}}]}


def reasoning(text: str) -> dict:
    return {"choices": [{"delta": {"reasoning_content": text}}]}


def tool_call(
    index: int,
    id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> dict:
    delta: dict = {"index": index}
    if id is not None:
        delta["id"] = id
    function: dict = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    if function:
        delta["function"] = function
    return {"choices": [{"delta": {"tool_calls": [delta]}}]}


def image(index: int, url: str) -> dict:
    return {"choices": [{"delta": {"images": [{"index": index, "image_url": {"url": url}}]}}]}


def usage(prompt: int = 0, completion: int = 0, cost: float = 0.0) -> dict:
    return {
        "choices": [],
        "usage": {
            "prompt_tokens": prompt,
            "completion_tokens": completion,
            "total_tokens": prompt + completion,
            "cost": cost,
        },
    }


class ScriptedClient:
    """
    A client that yields one pre-configured payload list per request.

    Usage::

        client = ScriptedClient([
            [tool_call(0, "c1", "echo", '{"message": "hi"}')],
            [content("done")],
        ])

    Parameters
    ----------
    script:
        Payload lists, one per request.  An ``Exception`` instance in a list
        is raised at that point of the stream.
    repeat_last:
        Keep replaying the last list once the script is exhausted.
    """

    def __init__(self, script: list[list], repeat_last: bool = False) -> None:
        self._script = script
        self._repeat_last = repeat_last
        self.calls: list[dict] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def stream(
        self,
        model: str,
        messages: list[dict],
        tools: list[dict] | None = None,
    ) -> AsyncIterator[dict]:
        self.calls.append({
            "model": model,
            "messages": copy.deepcopy(messages),
            "tools": tools,
        })
        index = len(self.calls) - 1
        if index >= len(self._script):
            if not self._repeat_last:
                raise AssertionError(f"unexpected request #{index + 1}")
            index = len(self._script) - 1

        for item in self._script[index]:
            await asyncio.sleep(0)
            if isinstance(item, Exception):
                raise item
            yield item


class HangingClient(ScriptedClient):
    """
    Replays the script like ScriptedClient, but blocks forever after the
    payloads of the last scripted request.

    ``streaming`` is set once the payloads of the last request have been
    delivered, so a test can cancel mid-stream deterministically.
    """

    def __init__(self, script: list[list]) -> None:
        super().__init__(script)
        self.streaming = asyncio.Event()

    async def stream(
        self,
        model: str,
        messages: list[dict],
        tools: list[dict] | None = None,
    ) -> AsyncIterator[dict]:
        async for payload in super().stream(model, messages, tools):
            yield payload
        if self.call_count < len(self._script):
            return
        self.streaming.set()
        await asyncio.Event().wait()
