"""
Message store contract and an in-memory implementation.

The orchestrator only ever touches the store through ``update_message`` on
the assistant message it created; the session controller adds and truncates
messages.  Persistence is the host application's concern.
"""

from __future__ import annotations

import copy
import logging
import uuid
from typing import Protocol

from gatewaychat.types import ChatMessage, ImageRef, Part, Usage

logger = logging.getLogger(__name__)


class MessageStore(Protocol):
    @property
    def active_conversation_id(self) -> str | None: ...

    def set_active_conversation(self, conversation_id: str | None) -> None: ...

    def create_conversation(self) -> str: ...

    def add_message(self, message: ChatMessage) -> None: ...

    def update_message(
        self,
        message_id: str,
        content: str,
        streaming: bool | None = None,
        parts: list[Part] | None = None,
        images: list[ImageRef] | None = None,
        usage: Usage | None = None,
    ) -> None: ...

    def set_messages(self, messages: list[ChatMessage]) -> None: ...

    def get_messages(self) -> list[ChatMessage]: ...

    def get_message(self, message_id: str) -> ChatMessage | None: ...


class InMemoryMessageStore:
    """
    Conversations held in a dict, keyed by conversation id.

    Updates find their message by id in any conversation, the active one
    first.  They copy the parts, images and usage they are given, so later
    mutation by the caller never leaks into stored messages.

    Usage::

        store = InMemoryMessageStore()
        store.add_message(ChatMessage(id="m1", role="user", content="hi"))
        store.update_message("m1", "hello")
    """

    def __init__(self) -> None:
        self._conversations: dict[str, list[ChatMessage]] = {}
        self._active: str | None = None
        self.update_count = 0

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    @property
    def active_conversation_id(self) -> str | None:
        return self._active

    def set_active_conversation(self, conversation_id: str | None) -> None:
        if conversation_id is not None:
            self._conversations.setdefault(conversation_id, [])
        self._active = conversation_id

    def create_conversation(self) -> str:
        conversation_id = uuid.uuid4().hex
        self._conversations[conversation_id] = []
        self._active = conversation_id
        return conversation_id

    def _messages(self) -> list[ChatMessage]:
        if self._active is None:
            self.create_conversation()
        return self._conversations[self._active]

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message(self, message: ChatMessage) -> None:
        self._messages().append(message)

    def update_message(
        self,
        message_id: str,
        content: str,
        streaming: bool | None = None,
        parts: list[Part] | None = None,
        images: list[ImageRef] | None = None,
        usage: Usage | None = None,
    ) -> None:
        message = self._find(message_id)
        if message is None:
            logger.debug("update for unknown message %s ignored", message_id)
            return
        message.content = content
        if streaming is not None:
            message.streaming = streaming
        if parts is not None:
            message.parts = copy.deepcopy(parts)
        if images is not None:
            message.images = copy.deepcopy(images)
        if usage is not None:
            message.usage = copy.deepcopy(usage)
        self.update_count += 1

    def set_messages(self, messages: list[ChatMessage]) -> None:
        self._messages()[:] = list(messages)

    def get_messages(self) -> list[ChatMessage]:
        return list(self._messages())

    def get_message(self, message_id: str) -> ChatMessage | None:
        for message in self._messages():
            if message.id == message_id:
                return message
        return None

    def _find(self, message_id: str) -> ChatMessage | None:
        """Look *message_id* up in every conversation, active one first."""
        found = self.get_message(message_id)
        if found is not None:
            return found
        for messages in self._conversations.values():
            for message in messages:
                if message.id == message_id:
                    return message
        return None
