"""Tests for the chat-completions client against a mocked transport."""

from __future__ import annotations

import json

import httpx
import pytest

from gatewaychat.llm.client import ChatCompletionsClient, GatewayError, extract_error_message


def sse(*payloads) -> bytes:
    out = b"".join(f"data: {json.dumps(p)}\n\n".encode() for p in payloads)
    return out + b"data: [DONE]\n\n"


def make_client(handler, **kwargs) -> ChatCompletionsClient:
    return ChatCompletionsClient(
        base_url="https://gw.test/api/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def collect(client, **kwargs):
    kwargs.setdefault("model", "m")
    kwargs.setdefault("messages", [{"role": "user", "content": "hi"}])
    return [p async for p in client.stream(**kwargs)]


class TestRequest:
    async def test_posts_stream_body_to_endpoint(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["method"] = request.method
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=sse({"choices": []}))

        tools = [{"type": "function", "function": {"name": "echo"}}]
        await collect(make_client(handler, api_key="sk-test"), tools=tools)

        assert seen["url"] == "https://gw.test/api/chat/completions"
        assert seen["method"] == "POST"
        assert seen["body"]["stream"] is True
        assert seen["body"]["model"] == "m"
        assert seen["body"]["tools"] == tools
        assert seen["headers"]["authorization"] == "Bearer sk-test"
        assert seen["headers"]["accept"] == "text/event-stream"

    async def test_tools_omitted_when_empty(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=sse())

        await collect(make_client(handler), tools=[])
        assert "tools" not in seen["body"]

    async def test_cookie_credential_without_api_key(self):
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            return httpx.Response(200, content=sse())

        await collect(make_client(handler, cookies={"session": "abc"}))
        assert "authorization" not in seen["headers"]
        assert "session=abc" in seen["headers"]["cookie"]


class TestStreaming:
    async def test_yields_payloads_until_transport_ends(self):
        def handler(request):
            return httpx.Response(
                200,
                content=sse(
                    {"choices": [{"delta": {"content": "He"}}]},
                    {"choices": [{"delta": {"content": "llo"}}]},
                ),
            )

        out = await collect(make_client(handler))
        assert [p["choices"][0]["delta"]["content"] for p in out] == ["He", "llo"]

    async def test_chunked_body(self):
        raw = sse({"n": 1}, {"n": 2})

        async def body():
            for i in range(0, len(raw), 5):
                yield raw[i:i + 5]

        def handler(request):
            return httpx.Response(200, content=body())

        assert await collect(make_client(handler)) == [{"n": 1}, {"n": 2}]


class TestErrors:
    async def test_error_message_from_json_body(self):
        def handler(request):
            return httpx.Response(401, json={"error": {"message": "bad key"}})

        with pytest.raises(GatewayError) as exc_info:
            await collect(make_client(handler))
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "bad key"

    async def test_empty_error_body_falls_back_to_status(self):
        def handler(request):
            return httpx.Response(502)

        with pytest.raises(GatewayError, match="HTTP error! status: 502"):
            await collect(make_client(handler))

    async def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(GatewayError) as exc_info:
            await collect(make_client(handler))
        assert exc_info.value.status_code is None
        assert "connection refused" in exc_info.value.message

    @pytest.mark.parametrize("exc", [httpx.InvalidURL("bad host"), httpx.StreamClosed()])
    async def test_url_and_stream_errors_wrapped(self, exc):
        def handler(request):
            raise exc

        with pytest.raises(GatewayError) as exc_info:
            await collect(make_client(handler))
        assert exc_info.value.status_code is None
        assert exc_info.value.message


class TestExtractErrorMessage:
    def test_nested_error_message(self):
        raw = json.dumps({"error": {"message": "nested"}, "message": "top"}).encode()
        assert extract_error_message(400, raw) == "nested"

    def test_top_level_message(self):
        assert extract_error_message(400, b'{"message": "top"}') == "top"

    def test_string_error(self):
        assert extract_error_message(400, b'{"error": "plain"}') == "plain"

    def test_json_without_known_fields(self):
        assert extract_error_message(400, b'{"detail": "x"}') == '{"detail": "x"}'

    def test_raw_text_body(self):
        assert extract_error_message(500, b"upstream exploded") == "upstream exploded"

    def test_blank_body(self):
        assert extract_error_message(503, b"  ") == "HTTP error! status: 503"
