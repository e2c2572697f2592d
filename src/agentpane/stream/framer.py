"""LineFramer — reassemble arbitrary output chunks into complete lines."""

from __future__ import annotations


class LineFramer:
    """Turns a sequence of raw text chunks into complete lines.

    Chunks carry no line alignment: one chunk may end mid-line, another may
    hold several lines.  Carriage returns (pseudo-terminal artifacts) are
    dropped.  At most one incomplete fragment is held between calls; the
    lines produced depend only on the concatenated stream, never on where
    it was split.
    """

    def __init__(self) -> None:
        self._partial = ""

    @property
    def partial(self) -> str:
        """The buffered fragment still waiting for its newline."""
        return self._partial

    def feed(self, chunk: str) -> list[str]:
        """Consume *chunk* and return the lines it completed, in order."""
        if not chunk:
            return []

        pieces = (self._partial + chunk.replace("\r", "")).split("\n")
        # The last piece is always incomplete (possibly empty).
        self._partial = pieces.pop()
        return pieces

    def flush(self) -> str | None:
        """Return the residual fragment at end of stream, if non-empty."""
        residual, self._partial = self._partial, ""
        return residual or None
