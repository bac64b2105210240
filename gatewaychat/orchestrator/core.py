"""
Orchestrator core -- the streaming tool-calling loop for one assistant turn.

The orchestrator:
1. Sends the conversation to the gateway with the enabled tool definitions
2. Folds the streamed payloads into a ``StreamState``
3. Pushes throttled updates of the assistant message to the store
4. Runs the tool calls the model asked for, concurrently
5. Feeds the results back and loops until the model answers without tools,
   or ``max_iterations`` is reached
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Callable

from gatewaychat.llm.accumulator import DeltaAccumulator, StreamState
from gatewaychat.llm.client import ChatCompletionsClient, GatewayError
from gatewaychat.llm.types import ToolCall
from gatewaychat.orchestrator.scheduler import UpdateScheduler
from gatewaychat.store import MessageStore
from gatewaychat.tools.executor import ToolExecutor
from gatewaychat.types import (
    ToolResult,
    ToolState,
    TurnOutcome,
    TurnStatus,
    Usage,
)

logger = logging.getLogger(__name__)

MAX_ITERATIONS_NOTE = "\n\n[System: Max tool iterations reached]"


class Orchestrator:
    """
    Main orchestrator loop.

    Parameters
    ----------
    client : ChatCompletionsClient
        Streaming gateway client; anything with a compatible ``stream``
        async generator works.
    store : MessageStore
        Receives updates of the assistant message being produced.
    executor : ToolExecutor
        Runs tool calls against the registry.
    max_iterations : int
        Max request/tool rounds in one turn.
    update_window : float
        Seconds between throttled store updates while streaming.
    clock : callable
        Monotonic clock handed to the update scheduler.
    """

    def __init__(
        self,
        client: ChatCompletionsClient,
        store: MessageStore,
        executor: ToolExecutor,
        max_iterations: int = 20,
        update_window: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.store = store
        self.executor = executor
        self.max_iterations = max_iterations
        self.update_window = update_window
        self.clock = clock
        self.accumulator = DeltaAccumulator()

    async def stream_response(
        self,
        api_messages: list[dict],
        model: str,
        message_id: str,
        tools: list[dict] | None = None,
    ) -> TurnOutcome:
        """
        Produce the assistant message *message_id* for *api_messages*.

        Gateway failures finalize the message with the error appended and
        return a ``failed`` outcome.  Cancellation finalizes the partial
        message and propagates.
        """
        state = StreamState()
        messages = list(api_messages)
        scheduler = UpdateScheduler(
            lambda streaming: self._flush(message_id, state, streaming),
            window=self.update_window,
            clock=self.clock,
        )

        try:
            while state.iteration < self.max_iterations:
                state.begin_iteration()
                async for payload in self.client.stream(model, messages, tools):
                    try:
                        changed = self.accumulator.apply(state, payload)
                    except (AttributeError, TypeError, KeyError, ValueError) as e:
                        logger.warning("Skipping malformed stream payload (%s): %.200r", e, payload)
                        continue
                    if changed:
                        scheduler.schedule()

                calls = state.finalize_tool_calls()
                state.end_iteration()

                if not calls:
                    state.append_iteration_text_part()
                    scheduler.flush_now(False)
                    return TurnOutcome(
                        message_id=message_id,
                        status=TurnStatus.COMPLETED,
                        iterations=state.iteration,
                    )

                text = state.iteration_text()
                state.append_iteration_text_part()
                state.add_tool_parts(calls)
                state.iteration_content_start = len(state.content)
                scheduler.flush_now(True)

                messages.append({
                    "role": "assistant",
                    "content": text or None,
                    "tool_calls": [c.to_wire() for c in calls],
                })

                results = await self._run_tools(calls, state, scheduler)
                for call, result in zip(calls, results):
                    messages.append({
                        "role": "tool",
                        "tool_call_id": call.id,
                        "name": call.name,
                        "content": json.dumps(result.to_wire(), default=str),
                    })

            logger.warning(
                "Max tool iterations (%d) reached for %s", self.max_iterations, message_id
            )
            state.content += MAX_ITERATIONS_NOTE
            scheduler.flush_now(False)
            return TurnOutcome(
                message_id=message_id,
                status=TurnStatus.TRUNCATED,
                iterations=state.iteration,
            )

        except GatewayError as e:
            logger.error("Gateway request failed: %s", e.message)
            self._append_error(state, e.message)
            scheduler.flush_now(False)
            return TurnOutcome(
                message_id=message_id,
                status=TurnStatus.FAILED,
                iterations=state.iteration,
                error=e.message,
            )
        except asyncio.CancelledError:
            logger.info("Turn %s aborted at iteration %d", message_id, state.iteration)
            scheduler.flush_now(False)
            raise
        except Exception as e:
            logger.exception("Turn %s failed", message_id)
            self._append_error(state, str(e) or e.__class__.__name__)
            scheduler.flush_now(False)
            raise
        finally:
            scheduler.close()

    async def _run_tools(
        self,
        calls: list[ToolCall],
        state: StreamState,
        scheduler: UpdateScheduler,
    ) -> list[ToolResult]:
        """
        Execute *calls* concurrently, updating each part as its result lands.

        Once dispatched, the calls are shielded from the first cancellation:
        their results are still applied before the cancellation propagates.
        A second cancellation abandons them.
        """

        def on_result(call: ToolCall, result: ToolResult) -> None:
            part = state.find_tool_part(call.id)
            if part is not None:
                if result.success:
                    part.state = ToolState.OUTPUT_AVAILABLE
                    part.output = result.output
                else:
                    part.state = ToolState.OUTPUT_ERROR
                    part.output = result.to_wire()
                    part.error_text = json.dumps(result.error)
            scheduler.flush_now(True)

        task = asyncio.ensure_future(self.executor.execute_all(calls, on_result=on_result))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            logger.info("Abort requested; waiting for %d running tool(s)", len(calls))
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                task.cancel()
            raise

    def _flush(self, message_id: str, state: StreamState, streaming: bool) -> None:
        usage = state.display_usage()
        self.store.update_message(
            message_id,
            state.visible_content(),
            streaming=streaming,
            parts=list(state.parts) or None,
            images=state.display_images() or None,
            usage=usage if usage != Usage() else None,
        )

    @staticmethod
    def _append_error(state: StreamState, message: str) -> None:
        separator = "\n\n" if state.content else ""
        state.content = f"{state.content}{separator}Error: {message}"
