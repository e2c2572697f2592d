"""OutputSink — line buffer behind a live, read-only display surface."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable, Iterator, Sequence
from typing import Protocol, runtime_checkable

from agentpane.constants import DEFAULT_PLACEHOLDER

logger = logging.getLogger(__name__)


class SinkLockedError(RuntimeError):
    """Raised when sink content is mutated outside an unlocked section."""


@runtime_checkable
class Viewport(Protocol):
    """A visible rendering of a sink (a TUI log widget, a console, ...)."""

    def is_alive(self) -> bool:
        """Whether the viewport can still be drawn to."""
        ...

    def write_lines(self, lines: Sequence[str]) -> None:
        """Append *lines* and keep the view scrolled to the end."""
        ...

    def clear(self) -> None:
        """Remove everything currently shown."""
        ...

    def focus(self) -> None:
        """Bring the viewport to the user's attention."""
        ...

    def close(self) -> None:
        """Stop displaying; the sink keeps its content."""
        ...


class OutputSink:
    """Content buffer for one display surface.

    The buffer is authoritative; an attached :class:`Viewport` mirrors it.
    Content is only changed inside :meth:`_unlocked`, which opens the
    editable gate for the duration of one mutation and closes it again, so
    a display layer reading ``lines`` never sees the gate left open.

    A fresh sink holds a single placeholder line.  Once the sink is closed
    (its surface destroyed) every mutation is a no-op.
    """

    def __init__(
        self, title: str = "", placeholder: str | None = DEFAULT_PLACEHOLDER
    ) -> None:
        self.title = title
        self._lines: list[str] = [placeholder] if placeholder else []
        self._editable = False
        self._closed = False
        self._viewport: Viewport | None = None

    @property
    def lines(self) -> tuple[str, ...]:
        return tuple(self._lines)

    @property
    def text(self) -> str:
        return "\n".join(self._lines)

    @property
    def editable(self) -> bool:
        return self._editable

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def viewport(self) -> Viewport | None:
        """The attached viewport, or ``None`` if detached or no longer alive."""
        if self._viewport is not None and not self._viewport.is_alive():
            self._viewport = None
        return self._viewport

    # ------------------------------------------------------------------ #
    # Viewport management
    # ------------------------------------------------------------------ #

    def attach(self, viewport: Viewport) -> None:
        """Show this sink in *viewport*, replaying the current content."""
        self.detach()
        self._viewport = viewport
        viewport.clear()
        if self._lines:
            viewport.write_lines(list(self._lines))

    def detach(self) -> None:
        """Close the attached viewport; the content buffer is kept."""
        viewport, self._viewport = self._viewport, None
        if viewport is not None and viewport.is_alive():
            viewport.close()

    def close(self) -> None:
        """Mark the surface destroyed; later mutations are ignored."""
        self.detach()
        self._closed = True

    # ------------------------------------------------------------------ #
    # Mutation
    # ------------------------------------------------------------------ #

    def append(self, lines: Sequence[str]) -> None:
        """Append *lines* to the end of the content."""
        if self._closed or not lines:
            return
        new_lines = list(lines)
        with self._unlocked():
            self._set_lines(self._lines + new_lines)
            self._render(lambda viewport: viewport.write_lines(new_lines))

    def replace(self, lines: Sequence[str]) -> None:
        """Discard all content and install *lines* in its place."""
        if self._closed:
            return
        new_lines = list(lines)

        def _redraw(viewport: Viewport) -> None:
            viewport.clear()
            if new_lines:
                viewport.write_lines(new_lines)

        with self._unlocked():
            self._set_lines(list(new_lines))
            self._render(_redraw)

    def _render(self, draw: Callable[[Viewport], None]) -> None:
        """Mirror a mutation into the viewport, dropping it if drawing fails.

        The buffer has already been updated, so a broken viewport (closed
        pipe, removed widget) never loses content.
        """
        viewport = self.viewport
        if viewport is None:
            return
        try:
            draw(viewport)
        except Exception as exc:
            logger.warning("sink %r: viewport failed, detaching: %s", self.title, exc)
            self._viewport = None

    @contextlib.contextmanager
    def _unlocked(self) -> Iterator[None]:
        self._editable = True
        try:
            yield
        finally:
            self._editable = False

    def _set_lines(self, lines: list[str]) -> None:
        if not self._editable:
            msg = f"sink {self.title!r} is read-only outside an unlocked section"
            raise SinkLockedError(msg)
        self._lines = lines
