"""
Server-Sent Events frame decoding for chat-completion streams.

Each SSE event carries one JSON payload::

    data: {json}\\n\\n

The sentinel ``data: [DONE]`` is recognized and dropped; decoding only ends
when the underlying transport does.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import AsyncIterable, AsyncIterator

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class FrameDecoder:
    """Incremental decoder turning arbitrary byte chunks into JSON payloads."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.saw_done = False
        self.malformed = 0

    def feed(self, chunk: bytes) -> list[dict]:
        """Decode *chunk* and return the payloads of every completed line."""
        self._buffer += self._decoder.decode(chunk)
        payloads: list[dict] = []
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            payload = self._parse_line(line)
            if payload is not None:
                payloads.append(payload)
        return payloads

    def close(self) -> list[dict]:
        """Flush the decoder at end-of-stream, parsing any unterminated line."""
        self._buffer += self._decoder.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        payload = self._parse_line(line)
        return [payload] if payload is not None else []

    def _parse_line(self, line: str) -> dict | None:
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            # Blank event separators, comments, event:/id: fields.
            return None

        data_str = line[len(DATA_PREFIX):].strip()
        if data_str == DONE_SENTINEL:
            self.saw_done = True
            return None
        if not data_str:
            return None

        try:
            data = json.loads(data_str)
        except json.JSONDecodeError:
            self.malformed += 1
            logger.warning("Failed to parse SSE data: %s", data_str[:200])
            return None

        if not isinstance(data, dict):
            self.malformed += 1
            logger.warning("Ignoring non-object SSE payload: %s", data_str[:200])
            return None
        return data


async def iter_payloads(byte_stream: AsyncIterable[bytes]) -> AsyncIterator[dict]:
    """Yield parsed payloads from *byte_stream* until the transport ends."""
    decoder = FrameDecoder()
    async for raw_bytes in byte_stream:
        for payload in decoder.feed(raw_bytes):
            yield payload
    for payload in decoder.close():
        yield payload
