"""LLM subsystem -- gateway client, SSE decoding, and delta accumulation."""

from gatewaychat.llm.types import ToolCall, ToolCallFragment
from gatewaychat.llm.accumulator import DeltaAccumulator, StreamState
from gatewaychat.llm.client import ChatCompletionsClient, GatewayError
from gatewaychat.llm.images import ImageFragmentReconstructor, ImageSlot, SlotState
from gatewaychat.llm.sse import FrameDecoder, iter_payloads

__all__ = [
    "ChatCompletionsClient",
    "DeltaAccumulator",
    "FrameDecoder",
    "GatewayError",
    "ImageFragmentReconstructor",
    "ImageSlot",
    "SlotState",
    "StreamState",
    "ToolCall",
    "ToolCallFragment",
    "iter_payloads",
]
