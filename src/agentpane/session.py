"""SessionManager — the single long-lived interactive agent process."""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
from collections.abc import Callable
from typing import Literal

from agentpane.client import AgentClient
from agentpane.constants import READ_CHUNK_SIZE
from agentpane.errors import SessionError
from agentpane.sink import OutputSink, Viewport
from agentpane.stream.framer import LineFramer

logger = logging.getLogger(__name__)

SessionState = Literal["absent", "open", "hidden"]

#: Seconds to wait after SIGTERM before SIGKILL when closing.
_SIGTERM_WAIT = 3.0


class SessionManager:
    """Owns at most one interactive agent process and its display surface.

    The surface is an :class:`OutputSink` whose content survives hiding;
    showing it again attaches a fresh viewport from *viewport_factory* and
    replays the content.  Session output is shown as raw lines, it is not
    decoded as protocol events.

    States::

        absent -> open <-> hidden
          ^        |         |
          +--------+---------+   (close, or process exit while hidden)
    """

    def __init__(
        self,
        client: AgentClient,
        viewport_factory: Callable[[], Viewport],
    ) -> None:
        self._client = client
        self._viewport_factory = viewport_factory
        self._process: asyncio.subprocess.Process | None = None
        self._sink: OutputSink | None = None
        self._reader: asyncio.Task[None] | None = None

    @property
    def process(self) -> asyncio.subprocess.Process | None:
        return self._process

    @property
    def sink(self) -> OutputSink | None:
        return self._sink

    @property
    def alive(self) -> bool:
        """Whether the interactive process is running."""
        return self._process is not None and self._process.returncode is None

    @property
    def state(self) -> SessionState:
        if self._sink is not None and self._sink.viewport is not None:
            return "open"
        if self.alive:
            return "hidden"
        return "absent"

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    async def open(self) -> None:
        """Show and focus the session, starting the process if needed.

        An existing live surface is only focused; a second process is
        never started while one is running.

        Raises:
            AgentUnavailableError: The agent binary is not on PATH.
            SessionError: The process could not be started.
        """
        sink = self._sink
        if sink is None or not self.alive:
            sink = await self._start_process()

        viewport = sink.viewport
        if viewport is None:
            viewport = self._show(sink)
        viewport.focus()

    async def toggle(self) -> None:
        """Hide a visible session, show a hidden one, or open an absent one."""
        sink = self._sink
        if sink is not None and sink.viewport is not None:
            sink.detach()
            logger.debug("session hidden")
        elif sink is not None and self.alive:
            self._show(sink)
            logger.debug("session shown")
        else:
            await self.open()

    async def send(self, text: str) -> None:
        """Write *text* plus a newline to the session's stdin.

        Opens the session first if no process is running.  The surface is
        not focused, so callers can keep working elsewhere.

        Raises:
            SessionError: The write to the process failed.
        """
        if not self.alive:
            await self.open()

        proc = self._process
        if proc is None or proc.stdin is None:
            msg = "Interactive session has no input stream"
            raise SessionError(msg)

        try:
            proc.stdin.write(f"{text}\n".encode())
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            msg = f"Failed to write to interactive session: {exc}"
            raise SessionError(msg) from exc

    async def close(self) -> None:
        """Stop the process and destroy the surface."""
        proc = self._process
        if proc is not None and proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.terminate()
            try:
                await asyncio.wait_for(proc.wait(), timeout=_SIGTERM_WAIT)
            except TimeoutError:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()

        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
        self._reader = None
        self._process = None

        if self._sink is not None:
            self._sink.close()
            self._sink = None

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _show(self, sink: OutputSink) -> Viewport:
        viewport = self._viewport_factory()
        sink.attach(viewport)
        return viewport

    async def _start_process(self) -> OutputSink:
        self._client.require_available()
        args = self._client.build_command()
        try:
            proc = await self._client.spawn(args, interactive=True)
        except OSError as exc:
            logger.error("failed to start interactive %s: %s", self._client.binary, exc)
            msg = f"Failed to start {self._client.binary}: {exc}"
            raise SessionError(msg) from exc

        sink = self._sink
        if sink is None or sink.closed:
            sink = OutputSink(title="session", placeholder=None)
        self._sink = sink
        self._process = proc
        self._reader = asyncio.create_task(self._pump(proc, sink))
        logger.info("interactive session started (pid %s)", proc.pid)
        return sink

    async def _pump(self, proc: asyncio.subprocess.Process, sink: OutputSink) -> None:
        """Copy the process's output into *sink* until it exits."""
        framer = LineFramer()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        if proc.stdout is not None:
            try:
                while True:
                    data = await proc.stdout.read(READ_CHUNK_SIZE)
                    sink.append(framer.feed(decoder.decode(data, final=not data)))
                    if not data:
                        break
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("error reading interactive session output: %s", exc)

        residual = framer.flush()
        if residual is not None:
            sink.append([residual])

        returncode = await proc.wait()
        logger.info("interactive session exited with code %s", returncode)
        sink.append([f"[session exited with code {returncode}]"])
        if self._process is proc:
            self._process = None
