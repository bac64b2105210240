"""
Streaming client for an OpenAI-compatible chat-completions gateway.

Speaks the ``/chat/completions`` wire protocol with ``stream: true`` and
yields the decoded SSE payloads one by one.  Failures are never retried: a
non-2xx response or a transport error ends the request with a
``GatewayError`` carrying the most specific message obtainable.

Dependencies: ``httpx`` (async HTTP client).  No ``openai`` SDK needed.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

import httpx

from gatewaychat.llm.sse import iter_payloads

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Wrap transport or API failures when talking to the gateway."""

    def __init__(self, status_code: int | None, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ChatCompletionsClient:
    """
    Stream-capable client for a chat-completions endpoint.

    Parameters
    ----------
    base_url:
        Base URL of the API, e.g. ``"https://gateway.example.com/api"``.
        Requests go to ``{base_url}/chat/completions``.
    api_key:
        Bearer token.  When empty, the request relies on *cookies* instead.
    timeout:
        HTTP request timeout in seconds.
    cookies:
        Session cookies forwarded with each request (credential fallback).
    transport:
        Optional ``httpx`` transport, used by tests to mock the gateway.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080/api",
        api_key: str = "",
        timeout: float = 120.0,
        cookies: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._cookies = dict(cookies or {})
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self._url}/chat/completions"

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def build_body(
        self,
        model: str,
        messages: list[dict],
        tools: list[dict] | None,
    ) -> dict:
        body: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": True,
        }
        if tools:
            body["tools"] = tools
        logger.info(
            "REQUEST: model=%s tools=%d messages=%d api_key=%s...",
            model,
            len(tools) if tools else 0,
            len(messages),
            self._api_key[:12] if self._api_key else "(cookie)",
        )
        return body

    # ------------------------------------------------------------------
    # Streaming request
    # ------------------------------------------------------------------

    async def stream(
        self,
        model: str,
        messages: list[dict],
        tools: list[dict] | None = None,
    ) -> AsyncIterator[dict]:
        """
        POST the conversation and yield each decoded SSE payload.

        Raises ``GatewayError`` for non-2xx responses and transport failures.
        Cancellation of the consuming task closes the connection.
        """
        body = self.build_body(model, messages, tools)
        headers = self.build_headers()

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                cookies=self._cookies or None,
                transport=self._transport,
            ) as client:
                async with client.stream(
                    "POST", self.endpoint, json=body, headers=headers
                ) as response:
                    if response.status_code < 200 or response.status_code >= 300:
                        raw = await response.aread()
                        message = extract_error_message(response.status_code, raw)
                        raise GatewayError(response.status_code, message)

                    async for payload in iter_payloads(response.aiter_bytes()):
                        yield payload
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
            raise GatewayError(None, str(exc) or exc.__class__.__name__) from exc


def extract_error_message(status_code: int, raw: bytes) -> str:
    """
    Pick the most specific error message out of an error response body.

    Preference: ``error.message``, ``message``, a string ``error``, the JSON
    text itself, the raw body, and finally a status-code fallback.
    """
    fallback = f"HTTP error! status: {status_code}"
    if not raw:
        return fallback
    text = raw.decode("utf-8", errors="replace")
    if not text.strip():
        return fallback
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return text

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if payload.get("message"):
            return str(payload["message"])
        if isinstance(error, str) and error:
            return error
    return json.dumps(payload)
