"""Tests for the session controller: send, regenerate, stop."""

from __future__ import annotations

import asyncio

import pytest

from gatewaychat.orchestrator.core import Orchestrator
from gatewaychat.orchestrator.session import SessionController, build_user_content
from gatewaychat.store import InMemoryMessageStore
from gatewaychat.tools.executor import ToolExecutor
from gatewaychat.tools.registry import ToolRegistry
from gatewaychat.types import Attachment, ChatMessage, TurnStatus
from tests.mock_client import HangingClient, ScriptedClient, content
from tests.mock_tools import AddTool, EchoTool


@pytest.fixture
def registry():
    reg = ToolRegistry()
    reg.register(EchoTool())
    reg.register(AddTool())
    return reg


@pytest.fixture
def store():
    s = InMemoryMessageStore()
    s.create_conversation()
    return s


def make_controller(client, store, registry=None, **kwargs) -> SessionController:
    orch = Orchestrator(client, store, ToolExecutor(registry or ToolRegistry()))
    return SessionController(orch, store, registry=registry, **kwargs)


class TestSendMessage:
    async def test_adds_user_and_assistant_messages(self, store):
        client = ScriptedClient([[content("Hello!")]])
        ctl = make_controller(client, store)
        outcome = await ctl.send_message("hi", "m")

        user, assistant = store.get_messages()
        assert user.role == "user" and user.content == "hi"
        assert assistant.role == "assistant"
        assert assistant.id.startswith("assistant-")
        assert assistant.content == "Hello!"
        assert assistant.streaming is False
        assert outcome.status is TurnStatus.COMPLETED
        assert outcome.message_id == assistant.id

    async def test_no_system_message_without_prompt(self, store):
        client = ScriptedClient([[content("ok")]])
        await make_controller(client, store).send_message("hi", "m")
        assert client.calls[0]["messages"] == [{"role": "user", "content": "hi"}]
        assert client.calls[0]["tools"] is None

    async def test_system_prompt_first(self, store):
        client = ScriptedClient([[content("ok")]])
        ctl = make_controller(client, store, include_formatting_guide=False)
        await ctl.send_message("hi", "m", system_prompt="Be brief.")
        assert client.calls[0]["messages"][0] == {"role": "system", "content": "Be brief."}

    async def test_history_excludes_streaming_messages(self, store):
        history = [
            ChatMessage(id="u0", role="user", content="earlier"),
            ChatMessage(id="a0", role="assistant", content="answer"),
            ChatMessage(id="a-live", role="assistant", content="half", streaming=True),
        ]
        client = ScriptedClient([[content("ok")]])
        await make_controller(client, store).send_message("next", "m", history=history)
        assert client.calls[0]["messages"] == [
            {"role": "user", "content": "earlier"},
            {"role": "assistant", "content": "answer"},
            {"role": "user", "content": "next"},
        ]

    async def test_enabled_tools_filter(self, store, registry):
        client = ScriptedClient([[content("ok")]])
        ctl = make_controller(client, store, registry, enabled_tools=["echo"])
        await ctl.send_message("hi", "m")
        assert [t["function"]["name"] for t in client.calls[0]["tools"]] == ["echo"]

    async def test_workspace_files_listed(self, store):
        async def lister(conversation_id):
            assert conversation_id == store.active_conversation_id
            return [("notes.md", 120)]

        client = ScriptedClient([[content("ok")]])
        ctl = make_controller(client, store, workspace_lister=lister)
        await ctl.send_message("hi", "m")
        system = client.calls[0]["messages"][0]
        assert system["role"] == "system"
        assert "Current Workspace Files:\n- notes.md (120 bytes)" in system["content"]

    async def test_workspace_lister_failure_ignored(self, store, caplog):
        async def lister(conversation_id):
            raise OSError("disk gone")

        client = ScriptedClient([[content("ok")]])
        ctl = make_controller(client, store, workspace_lister=lister)
        outcome = await ctl.send_message("hi", "m")
        assert outcome.status is TurnStatus.COMPLETED
        assert "Listing workspace files" in caplog.text


class TestUserContent:
    def test_plain_text(self):
        assert build_user_content("hi", []) == "hi"

    def test_image_attachment_becomes_multimodal(self):
        att = Attachment(url="data:image/png;base64,AAAA", content_type="image/png")
        assert build_user_content("look", [att]) == [
            {"type": "text", "text": "look"},
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
        ]

    def test_non_data_image_url_not_sent(self):
        att = Attachment(url="/api/v1/attachments/x", content_type="image/png")
        assert build_user_content("look", [att]) == "look"

    def test_parsed_text_appended(self):
        att = Attachment(
            url="file.txt",
            content_type="text/plain",
            name="file.txt",
            parsed_content="**file.txt**:\nhello",
        )
        assert build_user_content("see", [att]) == (
            "see\n\nAttached files:\n\n**file.txt**:\nhello"
        )


class TestRegenerate:
    async def test_truncates_and_replaces(self, store):
        store.set_messages([
            ChatMessage(id="u1", role="user", content="q1"),
            ChatMessage(id="a1", role="assistant", content="old answer"),
            ChatMessage(id="u2", role="user", content="q2"),
        ])
        client = ScriptedClient([[content("new answer")]])
        outcome = await make_controller(client, store).regenerate("a1", "m")

        messages = store.get_messages()
        assert [m.id for m in messages[:1]] == ["u1"]
        assert len(messages) == 2
        assert messages[1].content == "new answer"
        assert outcome.message_id == messages[1].id
        assert client.calls[0]["messages"] == [{"role": "user", "content": "q1"}]

    async def test_unknown_id_is_noop(self, store):
        client = ScriptedClient([])
        assert await make_controller(client, store).regenerate("missing", "m") is None
        assert client.call_count == 0

    async def test_user_message_not_regenerated(self, store):
        store.add_message(ChatMessage(id="u1", role="user", content="q"))
        client = ScriptedClient([])
        assert await make_controller(client, store).regenerate("u1", "m") is None
        assert len(store.get_messages()) == 1


class TestStop:
    async def test_stop_aborts_turn(self, store):
        client = HangingClient([[content("partial")]])
        ctl = make_controller(client, store)
        task = asyncio.create_task(ctl.send_message("hi", "m"))
        await client.streaming.wait()

        assert ctl.is_streaming
        assert ctl.stop_streaming() is True
        outcome = await task

        assert outcome.status is TurnStatus.ABORTED
        assistant = store.get_messages()[-1]
        assert assistant.content == "partial"
        assert assistant.streaming is False
        assert not ctl.is_streaming
        assert ctl.stop_streaming() is False

    async def test_stop_without_turn(self, store):
        ctl = make_controller(ScriptedClient([]), store)
        assert ctl.stop_streaming() is False

    async def test_external_cancellation_propagates(self, store):
        client = HangingClient([[content("partial")]])
        ctl = make_controller(client, store)
        task = asyncio.create_task(ctl.send_message("hi", "m"))
        await client.streaming.wait()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert store.get_messages()[-1].streaming is False

    async def test_new_turn_after_stop(self, store):
        client = HangingClient([[content("partial")]])
        ctl = make_controller(client, store)
        task = asyncio.create_task(ctl.send_message("hi", "m"))
        await client.streaming.wait()
        ctl.stop_streaming()
        await task

        ctl.orchestrator.client = ScriptedClient([[content("fresh")]])
        outcome = await ctl.send_message("again", "m")
        assert outcome.status is TurnStatus.COMPLETED
        assert store.get_messages()[-1].content == "fresh"
