"""Line framing and event decoding for the agent's streaming protocol."""

from agentpane.stream.events import (
    AssistantText,
    DecodedEvent,
    Other,
    Result,
    Unparseable,
    decode_line,
)
from agentpane.stream.framer import LineFramer

__all__ = [
    "AssistantText",
    "DecodedEvent",
    "LineFramer",
    "Other",
    "Result",
    "Unparseable",
    "decode_line",
]
