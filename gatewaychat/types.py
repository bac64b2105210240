from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Union


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0
    cached_tokens: int = 0
    reasoning_tokens: int = 0

    @classmethod
    def from_payload(cls, raw: dict) -> Usage:
        """Build from an OpenAI-style ``usage`` object; missing fields count as zero."""
        prompt_details = raw.get("prompt_tokens_details") or {}
        completion_details = raw.get("completion_tokens_details") or {}
        return cls(
            prompt_tokens=raw.get("prompt_tokens") or 0,
            completion_tokens=raw.get("completion_tokens") or 0,
            total_tokens=raw.get("total_tokens") or 0,
            cost=raw.get("cost") or 0.0,
            cached_tokens=prompt_details.get("cached_tokens") or 0,
            reasoning_tokens=completion_details.get("reasoning_tokens") or 0,
        )

    def merge(self, other: Usage | None) -> Usage:
        if other is None:
            return Usage(**asdict(self))
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            cost=self.cost + other.cost,
            cached_tokens=self.cached_tokens + other.cached_tokens,
            reasoning_tokens=self.reasoning_tokens + other.reasoning_tokens,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ImageRef:
    url: str = ""

    def to_dict(self) -> dict:
        return {"type": "image_url", "image_url": {"url": self.url}}


class ToolState(str, Enum):
    INPUT_AVAILABLE = "input-available"
    OUTPUT_AVAILABLE = "output-available"
    OUTPUT_ERROR = "output-error"


@dataclass
class TextPart:
    content: str
    type: str = "text"

    def to_dict(self) -> dict:
        return {"type": self.type, "content": self.content}


@dataclass
class ToolInvocationPart:
    tool_name: str
    tool_call_id: str
    input: dict = field(default_factory=dict)
    state: ToolState = ToolState.INPUT_AVAILABLE
    output: Any = None
    error_text: str | None = None

    @property
    def type(self) -> str:
        return f"tool-{self.tool_name}"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "state": self.state.value,
            "input": self.input,
            "output": self.output,
            "errorText": self.error_text,
            "toolCallId": self.tool_call_id,
        }


Part = Union[TextPart, ToolInvocationPart]


@dataclass
class Attachment:
    url: str
    content_type: str = "application/octet-stream"
    name: str = ""
    parsed_content: str | None = None

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")


@dataclass
class ChatMessage:
    id: str
    role: str  # "user", "assistant", "system", "tool"
    content: str = ""
    streaming: bool = False
    parts: list[Part] | None = None
    images: list[ImageRef] | None = None
    attachments: list[Attachment] = field(default_factory=list)
    usage: Usage | None = None
    timestamp: float = field(default_factory=time.time)

    def to_api_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class ToolResult:
    success: bool
    output: Any = None
    error: str | None = None
    error_code: str | None = None
    duration_ms: int = 0

    def to_wire(self) -> Any:
        """The value reported back to the model for this call."""
        if self.success:
            return self.output
        return {"error": self.error}


class ErrorCode:
    MISSING_NAME = "missing_name"
    UNKNOWN_TOOL = "unknown_tool"
    VALIDATION_ERROR = "validation_error"
    TIMEOUT = "timeout"
    TOOL_EXCEPTION = "tool_exception"


class TurnStatus(str, Enum):
    COMPLETED = "completed"
    TRUNCATED = "truncated"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class TurnOutcome:
    message_id: str
    status: TurnStatus
    iterations: int = 0
    error: str | None = None
