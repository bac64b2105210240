"""
Tool execution for the orchestrator loop.

Every failure mode (missing name, unknown tool, invalid arguments, timeout,
exception inside the tool) is converted into an error ``ToolResult``; callers
never see an exception from ``execute``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from gatewaychat.llm.types import ToolCall
from gatewaychat.tools.registry import ToolRegistry
from gatewaychat.tools.validation import ToolValidator
from gatewaychat.types import ErrorCode, ToolResult

logger = logging.getLogger(__name__)


class ToolExecutor:
    """
    Looks up and invokes registered tools.

    Parameters
    ----------
    registry : ToolRegistry
        Tools available to the model.
    tool_timeout : float
        Max seconds for a single tool execution.
    """

    def __init__(self, registry: ToolRegistry, tool_timeout: float = 30.0) -> None:
        self.registry = registry
        self.tool_timeout = tool_timeout

    async def execute(self, name: str, args: dict) -> ToolResult:
        if not name:
            return ToolResult(
                success=False,
                error="Tool name missing",
                error_code=ErrorCode.MISSING_NAME,
            )

        tool = self.registry.get(name)
        if tool is None:
            return ToolResult(
                success=False,
                error=f"Tool not found: {name}",
                error_code=ErrorCode.UNKNOWN_TOOL,
            )

        valid, error_msg = ToolValidator.validate(tool, args)
        if not valid:
            return ToolResult(
                success=False,
                error=f"Invalid arguments: {error_msg}",
                error_code=ErrorCode.VALIDATION_ERROR,
            )

        start = time.monotonic()
        try:
            output = await asyncio.wait_for(
                tool.execute(**args),
                timeout=self.tool_timeout,
            )
        except asyncio.TimeoutError:
            return ToolResult(
                success=False,
                error=f"Timeout after {self.tool_timeout}s",
                error_code=ErrorCode.TIMEOUT,
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        except Exception as e:
            logger.exception("Tool %s raised", name)
            return ToolResult(
                success=False,
                error=str(e) or e.__class__.__name__,
                error_code=ErrorCode.TOOL_EXCEPTION,
                duration_ms=int((time.monotonic() - start) * 1000),
            )

        return ToolResult(
            success=True,
            output=output,
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    async def execute_all(
        self,
        calls: list[ToolCall],
        on_result: Callable[[ToolCall, ToolResult], None] | None = None,
    ) -> list[ToolResult]:
        """
        Run every call concurrently and wait for all of them.

        *on_result* fires as each call completes, in completion order; the
        returned list is always in declaration order.
        """

        async def _run(call: ToolCall) -> ToolResult:
            result = await self.execute(call.name, call.input)
            if on_result is not None:
                on_result(call, result)
            return result

        return list(await asyncio.gather(*(_run(c) for c in calls)))
