"""Interactive chat session handler."""

from __future__ import annotations

import asyncio
import signal

from rich.console import Console

from gatewaychat.cli.output import OutputFormatter
from gatewaychat.orchestrator.session import SessionController
from gatewaychat.store import InMemoryMessageStore
from gatewaychat.tools.registry import ToolRegistry
from gatewaychat.types import ImageRef, Part, ToolInvocationPart, TurnStatus, Usage


class ConsoleMessageStore(InMemoryMessageStore):
    """
    In-memory store that echoes the streaming assistant message to a console.

    Text is printed as it grows; tool parts are printed once their result
    is known.
    """

    def __init__(self, formatter: OutputFormatter) -> None:
        super().__init__()
        self.formatter = formatter
        self._printed: dict[str, int] = {}
        self._shown_tools: set[tuple[str, str]] = set()

    def update_message(
        self,
        message_id: str,
        content: str,
        streaming: bool | None = None,
        parts: list[Part] | None = None,
        images: list[ImageRef] | None = None,
        usage: Usage | None = None,
    ) -> None:
        super().update_message(message_id, content, streaming, parts, images, usage)
        console = self.formatter.console

        printed = self._printed.get(message_id, 0)
        if len(content) > printed:
            console.print(content[printed:], end="", markup=False, highlight=False)
            self._printed[message_id] = len(content)

        for part in parts or []:
            if not isinstance(part, ToolInvocationPart) or part.output is None:
                continue
            key = (message_id, part.tool_call_id)
            if key not in self._shown_tools:
                self._shown_tools.add(key)
                console.print()
                self.formatter.format_tool_part(part)

        if streaming is False:
            console.print()
            self.formatter.format_usage(usage)


class ChatHandler:
    """
    Manages the interactive chat loop.

    Ctrl-C while a response streams stops it; at the prompt it exits.
    """

    def __init__(
        self,
        controller: SessionController,
        registry: ToolRegistry,
        model: str,
        console: Console | None = None,
    ) -> None:
        self.controller = controller
        self.registry = registry
        self.model = model
        self.console = console or Console()
        self.formatter = OutputFormatter(self.console)
        self._running = True

    async def handle_command(self, command: str) -> bool:
        """
        Handle inline commands. Returns True if the command was handled.
        """
        parts = command.strip().split(None, 1)
        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else ""

        if cmd == "/quit":
            self._running = False
            self.console.print("[dim]Goodbye.[/dim]")
            return True

        if cmd == "/tools":
            enabled = self.controller.enabled_tools
            self.formatter.format_tool_list(
                self.registry.list(), set(enabled) if enabled else None
            )
            return True

        if cmd == "/model":
            if arg:
                self.model = arg
            self.console.print(f"  Model: [bold]{self.model}[/bold]")
            return True

        if cmd == "/regenerate":
            messages = self.controller.store.get_messages()
            last = next((m for m in reversed(messages) if m.role == "assistant"), None)
            if last is None:
                self.console.print("  [dim]Nothing to regenerate.[/dim]")
                return True
            self.console.print("[dim]assistant>[/dim] ", end="")
            await self._run_turn(self.controller.regenerate(last.id, self.model))
            return True

        if cmd == "/help":
            self.console.print(
                "  [bold]Commands:[/bold]\n"
                "  /quit        - Exit the chat\n"
                "  /tools       - List available tools\n"
                "  /model NAME  - Show or switch the model\n"
                "  /regenerate  - Regenerate the last answer\n"
                "  /help        - Show this help\n"
                "  Ctrl-C while streaming stops the response\n"
            )
            return True

        return False

    async def _run_turn(self, turn) -> None:
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self.controller.stop_streaming)
        except (NotImplementedError, RuntimeError):
            pass  # no signal handlers on this platform
        try:
            outcome = await turn
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass

        if outcome is None:
            return
        if outcome.status is TurnStatus.ABORTED:
            self.console.print("[yellow]Stopped.[/yellow]")
        elif outcome.status is TurnStatus.TRUNCATED:
            self.console.print("[yellow]Tool iteration limit reached.[/yellow]")

    async def handle_input(self, user_input: str) -> None:
        """Send user input through the session controller; output streams via the store."""
        self.console.print("[dim]assistant>[/dim] ", end="")
        await self._run_turn(self.controller.send_message(user_input, self.model))

    async def run_loop(self) -> None:
        """Main interactive loop."""
        self.console.print(
            "[bold]gatewaychat[/bold] - streaming chat with client-side tools\n"
            "[dim]Type /help for commands, /quit to exit.[/dim]\n"
        )

        while self._running:
            try:
                user_input = await asyncio.get_running_loop().run_in_executor(
                    None, lambda: input("you> ").strip()
                )
            except (EOFError, KeyboardInterrupt):
                self.console.print("\n[dim]Goodbye.[/dim]")
                break

            if not user_input:
                continue

            if user_input.startswith("/"):
                handled = await self.handle_command(user_input)
                if handled:
                    continue

            await self.handle_input(user_input)
