"""
Session controller -- entry points for sending, regenerating and stopping.

Owns the cancellation handle of the single in-flight turn.  Starting a new
turn replaces the handle, so ``stop_streaming`` always targets the newest.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from gatewaychat.orchestrator.core import Orchestrator
from gatewaychat.prompts.system import (
    WorkspaceLister,
    build_system_prompt,
    list_workspace_files,
)
from gatewaychat.store import MessageStore
from gatewaychat.tools.registry import ToolRegistry
from gatewaychat.types import Attachment, ChatMessage, TurnOutcome, TurnStatus

logger = logging.getLogger(__name__)


def _message_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


class SessionController:
    """
    Parameters
    ----------
    orchestrator : Orchestrator
        Runs each turn.
    store : MessageStore
        Conversation the turns are written to.
    registry : ToolRegistry | None
        Tools offered to the model; ``None`` sends no tool definitions.
    enabled_tools : list[str] | None
        Restrict the offered tools to these names.
    system_prompt : str
        Default user system prompt, overridable per call.
    include_formatting_guide : bool
        Append the diagram/code-block formatting guide to the system prompt.
    workspace_lister : callable | None
        Async ``conversation_id -> [(name, size), ...]`` used to list the
        conversation's workspace files in the system prompt.
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        store: MessageStore,
        registry: ToolRegistry | None = None,
        enabled_tools: list[str] | None = None,
        system_prompt: str = "",
        include_formatting_guide: bool = True,
        workspace_lister: WorkspaceLister | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.store = store
        self.registry = registry
        self.enabled_tools = enabled_tools
        self.system_prompt = system_prompt
        self.include_formatting_guide = include_formatting_guide
        self.workspace_lister = workspace_lister
        self._current: asyncio.Task | None = None
        self._stopped: set[asyncio.Task] = set()

    @property
    def is_streaming(self) -> bool:
        return self._current is not None and not self._current.done()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def send_message(
        self,
        content: str,
        model: str,
        history: list[ChatMessage] | None = None,
        system_prompt: str | None = None,
        attachments: list[Attachment] | None = None,
    ) -> TurnOutcome:
        """Add the user message and a streaming assistant placeholder, then run the turn."""
        if history is None:
            history = self.store.get_messages()
        attachments = list(attachments or [])

        api_messages = await self._history_messages(history, system_prompt)
        api_messages.append(
            {"role": "user", "content": build_user_content(content, attachments)}
        )

        self.store.add_message(
            ChatMessage(
                id=_message_id("user"),
                role="user",
                content=content,
                attachments=attachments,
            )
        )
        assistant_id = self._add_placeholder()
        return await self._run(api_messages, model, assistant_id)

    async def regenerate(
        self,
        message_id: str,
        model: str,
        history: list[ChatMessage] | None = None,
        system_prompt: str | None = None,
    ) -> TurnOutcome | None:
        """
        Replace assistant message *message_id* with a fresh answer.

        Everything from that message onwards is dropped from the store.
        Returns ``None`` when the id is unknown or not an assistant message.
        """
        if history is None:
            history = self.store.get_messages()
        index = next((i for i, m in enumerate(history) if m.id == message_id), -1)
        if index == -1 or history[index].role != "assistant":
            logger.debug("Nothing to regenerate for %s", message_id)
            return None

        kept = history[:index]
        self.store.set_messages(kept)

        api_messages = await self._history_messages(kept, system_prompt)
        assistant_id = self._add_placeholder()
        return await self._run(api_messages, model, assistant_id)

    def stop_streaming(self) -> bool:
        """Cancel the in-flight turn; ``True`` when there was one."""
        task = self._current
        if task is None or task.done():
            return False
        self._stopped.add(task)
        task.cancel()
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _add_placeholder(self) -> str:
        assistant_id = _message_id("assistant")
        self.store.add_message(
            ChatMessage(id=assistant_id, role="assistant", content="", streaming=True)
        )
        return assistant_id

    def _tool_definitions(self) -> list[dict] | None:
        if self.registry is None:
            return None
        return self.registry.definitions(self.enabled_tools) or None

    async def _history_messages(
        self,
        history: list[ChatMessage],
        system_prompt: str | None,
    ) -> list[dict]:
        messages = [m.to_api_dict() for m in history if not m.streaming]

        files = await list_workspace_files(
            self.workspace_lister, self.store.active_conversation_id
        )
        prompt = build_system_prompt(
            self.system_prompt if system_prompt is None else system_prompt,
            include_formatting_guide=self.include_formatting_guide,
            workspace_files=files,
        )
        if prompt:
            messages.insert(0, {"role": "system", "content": prompt})
        return messages

    async def _run(self, api_messages: list[dict], model: str, assistant_id: str) -> TurnOutcome:
        task = asyncio.ensure_future(
            self.orchestrator.stream_response(
                api_messages, model, assistant_id, tools=self._tool_definitions()
            )
        )
        self._current = task
        try:
            return await task
        except asyncio.CancelledError:
            if task not in self._stopped:
                raise
            logger.info("Turn %s stopped by user", assistant_id)
            return TurnOutcome(message_id=assistant_id, status=TurnStatus.ABORTED)
        finally:
            self._stopped.discard(task)
            if self._current is task:
                self._current = None


def build_user_content(content: str, attachments: list[Attachment]) -> Any:
    """
    The API ``content`` of a user message.

    Parsed text of non-image attachments is appended to the text; image
    attachments carried as ``data:`` URLs turn the content into a multimodal
    list.
    """
    texts = [
        a.parsed_content for a in attachments
        if not a.is_image and a.parsed_content
    ]
    text = content
    if texts:
        text += "\n\nAttached files:\n\n" + "\n\n".join(texts)

    images = [
        {"type": "image_url", "image_url": {"url": a.url}}
        for a in attachments
        if a.is_image and a.url.startswith("data:")
    ]
    if not images:
        return text
    return [{"type": "text", "text": text}, *images]
