"""Decode one protocol line into a typed event.

The agent emits one JSON object per line when run with
``--output-format stream-json``::

    {"type": "assistant", "message": {"content": [{"type": "text", "text": "..."}]}}
    {"type": "result", "result": "..."}

Other ``type`` values (``system``, ``user``, ...) are valid but carry
nothing to render.  Lines that do not look like JSON objects are banner or
diagnostic text and pass through untouched.  Decoding is defensive: fields
beyond the ones named above are ignored, and no input line can make
:func:`decode_line` raise.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
# Decoded events
# ------------------------------------------------------------------ #


class _DecodedBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class AssistantText(_DecodedBase):
    """Text fragments from one assistant message, in order."""

    kind: Literal["assistant_text"] = "assistant_text"
    fragments: tuple[str, ...] = Field(default=(), description="Text fragments")


class Result(_DecodedBase):
    """The terminal, authoritative answer for a job."""

    kind: Literal["result"] = "result"
    text: str = Field(description="Final result text")


class Other(_DecodedBase):
    """Valid protocol line with nothing to render."""

    kind: Literal["other"] = "other"
    raw_type: str = Field(default="", description="The line's 'type' value, if any")


class Unparseable(_DecodedBase):
    """Non-protocol text, rendered verbatim."""

    kind: Literal["unparseable"] = "unparseable"
    raw_line: str = Field(description="The line as received")


DecodedEvent = AssistantText | Result | Other | Unparseable


# ------------------------------------------------------------------ #
# Wire schema
# ------------------------------------------------------------------ #


class _WireEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _WireMessage(_WireEvent):
    content: list[Any] = Field(default_factory=list)


class _WireAssistant(_WireEvent):
    type: Literal["assistant"]
    message: _WireMessage | None = None


class _WireResult(_WireEvent):
    type: Literal["result"]
    result: str


class _WireOther(_WireEvent):
    type: str = ""


def _wire_discriminator(v: Any) -> str:
    kind = v.get("type") if isinstance(v, dict) else getattr(v, "type", None)
    if kind in ("assistant", "result"):
        return kind
    return "other"


_WIRE_ADAPTER: TypeAdapter[_WireAssistant | _WireResult | _WireOther] = TypeAdapter(
    Annotated[
        Annotated[_WireAssistant, Tag("assistant")]
        | Annotated[_WireResult, Tag("result")]
        | Annotated[_WireOther, Tag("other")],
        Discriminator(_wire_discriminator),
    ]
)


# ------------------------------------------------------------------ #
# Decoding
# ------------------------------------------------------------------ #


def decode_line(line: str) -> DecodedEvent:
    """Classify one complete line as exactly one :data:`DecodedEvent`."""
    if not line.lstrip().startswith("{"):
        return Unparseable(raw_line=line)

    try:
        payload = json.loads(line)
    except (ValueError, RecursionError):
        return Unparseable(raw_line=line)

    if not isinstance(payload, dict):
        return Unparseable(raw_line=line)

    kind = payload.get("type")
    if not isinstance(kind, str):
        return Other()

    try:
        wire = _WIRE_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        return _decode_fallback(kind, exc)

    if isinstance(wire, _WireResult):
        return Result(text=wire.result)
    if isinstance(wire, _WireAssistant):
        return AssistantText(fragments=_text_fragments(wire.message))
    return Other(raw_type=kind)


def _decode_fallback(kind: str, exc: ValidationError) -> DecodedEvent:
    """Map a line whose known ``type`` failed its structured decode."""
    logger.debug("malformed %r event: %s", kind, exc.errors()[:1])
    if kind == "assistant":
        # Assistant message without a usable message body: nothing to show.
        return AssistantText()
    # Result without a string ``result`` field is not terminal.
    return Other(raw_type=kind)


def _text_fragments(message: _WireMessage | None) -> tuple[str, ...]:
    if message is None:
        return ()
    return tuple(
        item["text"]
        for item in message.content
        if isinstance(item, dict) and isinstance(item.get("text"), str)
    )
