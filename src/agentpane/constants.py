"""Shared constants and type aliases for agentpane."""

from __future__ import annotations

from typing import Literal

#: Output formats accepted by ``--output-format``.
OutputFormat = Literal["text", "json", "stream-json"]

OUTPUT_FORMATS: tuple[str, ...] = ("text", "json", "stream-json")

#: Line shown in a fresh job pane until its first event arrives.
DEFAULT_PLACEHOLDER = "working…"

#: Prefix for stderr lines surfaced in a job pane.
STDERR_MARKER = "[stderr] "

#: Bytes requested per read from a subprocess pipe.
READ_CHUNK_SIZE = 4096
