"""JobSupervisor — run concurrent streaming one-shot jobs into output sinks.

Each job is one agent process started with ``--output-format stream-json``.
Per job, reader tasks push raw stdout/stderr chunks and finally an exit
notification onto one shared queue; a single consumer task drains that
queue and performs every framer, decoder, sink and registry mutation.
Messages for one job are therefore handled strictly in arrival order and
the exit notification always follows the job's last chunk.  Jobs make no
ordering promises relative to each other.

Lifecycle of a job::

    spawning -> streaming -> finalizing -> removed

``finalizing`` is entered when the terminal result arrives; removal happens
only on the exit notification, so exit-time text can still be appended.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import time
from collections.abc import Callable, Coroutine, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal

from agentpane.client import AgentClient
from agentpane.constants import READ_CHUNK_SIZE, STDERR_MARKER
from agentpane.helpers import format_duration
from agentpane.sink import OutputSink
from agentpane.stream.events import AssistantText, Result, Unparseable, decode_line
from agentpane.stream.framer import LineFramer

logger = logging.getLogger(__name__)

JobState = Literal["spawning", "streaming", "finalizing", "removed"]

SinkFactory = Callable[[str], OutputSink]


@dataclass
class JobContext:
    """State of one active one-shot job."""

    job_id: str
    sink: OutputSink
    started_at: float
    process: asyncio.subprocess.Process | None = None
    state: JobState = "spawning"
    seen_first_event: bool = False
    final_result: str | None = None
    done: bool = False
    exit_code: int | None = None
    elapsed: float | None = None
    stdout_framer: LineFramer = field(default_factory=LineFramer, repr=False)
    stderr_framer: LineFramer = field(default_factory=LineFramer, repr=False)
    finished: asyncio.Future[JobContext] | None = field(default=None, repr=False)

    @property
    def partial_buffer(self) -> str:
        """Incomplete stdout line still waiting for its newline."""
        return self.stdout_framer.partial

    @property
    def failed(self) -> bool:
        return self.exit_code not in (None, 0) and self.final_result is None


@dataclass(frozen=True)
class _JobMessage:
    """One I/O notification for the consumer loop."""

    job_id: str
    kind: Literal["stdout", "stderr", "exit"]
    text: str = ""
    returncode: int | None = None


class JobSupervisor:
    """Owns the registry of running jobs keyed by job id.

    Args:
        client: Builds the agent command line and spawns processes.
        sink_factory: Creates the output sink for a new job id.  Defaults to
            a detached :class:`OutputSink` showing the configured placeholder.
        on_finish: Called with the job context after a job is removed.
        clock: Monotonic time source used for elapsed-time reporting.
    """

    def __init__(
        self,
        client: AgentClient,
        sink_factory: SinkFactory | None = None,
        on_finish: Callable[[JobContext], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._sink_factory = sink_factory or self._default_sink
        self._on_finish = on_finish
        self._clock = clock

        self._jobs: dict[str, JobContext] = {}
        self._job_counter = 0
        self._queue: asyncio.Queue[_JobMessage] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._io_tasks: set[asyncio.Task[None]] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def jobs(self) -> Mapping[str, JobContext]:
        """Read-only view of the active jobs."""
        return MappingProxyType(self._jobs)

    def get(self, job_id: str) -> JobContext | None:
        return self._jobs.get(job_id)

    def _default_sink(self, job_id: str) -> OutputSink:
        return OutputSink(title=job_id, placeholder=self._client.config.placeholder)

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    async def start_job(self, prompt: str) -> str | None:
        """Spawn a streaming job for *prompt*.

        Returns the new job id, or ``None`` when the process could not be
        started; in that case the error is written to the job's sink and
        nothing enters the registry.

        Raises:
            AgentUnavailableError: The agent binary is not on PATH.  Raised
                before any id or sink is allocated.
        """
        self._client.require_available()

        self._job_counter += 1
        job_id = f"job-{self._job_counter}"
        sink = self._sink_factory(job_id)
        args = self._client.build_command(prompt, "stream-json")

        try:
            proc = await self._client.spawn(args)
        except OSError as exc:
            logger.error("%s: failed to spawn %s: %s", job_id, self._client.binary, exc)
            sink.replace([f"Failed to start {self._client.binary}: {exc}"])
            return None

        loop = asyncio.get_running_loop()
        ctx = JobContext(
            job_id=job_id,
            sink=sink,
            started_at=self._clock(),
            process=proc,
            state="streaming",
            finished=loop.create_future(),
        )
        self._jobs[job_id] = ctx
        self._idle.clear()
        self._ensure_consumer()
        self._spawn_io_task(self._pump(job_id, proc))
        logger.info("%s: started (pid %s)", job_id, proc.pid)
        return job_id

    def cancel(self, job_id: str) -> str | None:
        """Send SIGTERM to a job's process.

        Returns ``None`` when the signal was sent, otherwise a warning
        message.  The job stays registered until its exit is processed.
        """
        ctx = self._jobs.get(job_id)
        if ctx is None or ctx.process is None:
            warning = f"No running job '{job_id}' to cancel"
            logger.warning("%s", warning)
            return warning

        with contextlib.suppress(ProcessLookupError):
            ctx.process.terminate()
        logger.info("%s: cancellation requested", job_id)
        return None

    async def wait(self, job_id: str) -> JobContext:
        """Wait for an active job to be removed and return its final context."""
        ctx = self._jobs.get(job_id)
        if ctx is None or ctx.finished is None:
            msg = f"Unknown job '{job_id}'"
            raise KeyError(msg)
        return await asyncio.shield(ctx.finished)

    async def join(self) -> None:
        """Wait until no jobs are registered."""
        await self._idle.wait()

    async def shutdown(self, timeout: float | None = None) -> None:
        """Terminate every job, wait for exits, then stop the consumer.

        Processes that ignore SIGTERM for *timeout* seconds are killed.
        """
        if timeout is None:
            timeout = self._client.config.shutdown_timeout

        for job_id in list(self._jobs):
            self.cancel(job_id)

        if self._jobs:
            try:
                await asyncio.wait_for(self.join(), timeout=timeout)
            except TimeoutError:
                logger.warning(
                    "%d job(s) ignored SIGTERM, sending SIGKILL", len(self._jobs)
                )
                for ctx in self._jobs.values():
                    if ctx.process is not None:
                        with contextlib.suppress(ProcessLookupError):
                            ctx.process.kill()
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self.join(), timeout=timeout)

        pending = [t for t in self._io_tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        if self._consumer is not None and not self._consumer.done():
            self._consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer
        self._consumer = None

    # ------------------------------------------------------------------ #
    # Process I/O (one set of tasks per job)
    # ------------------------------------------------------------------ #

    def _spawn_io_task(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._io_tasks.add(task)
        task.add_done_callback(self._io_tasks.discard)

    async def _pump(self, job_id: str, proc: asyncio.subprocess.Process) -> None:
        """Forward a job's output, then its exit status, to the queue."""
        await asyncio.gather(
            self._read_stream(job_id, "stdout", proc.stdout),
            self._read_stream(job_id, "stderr", proc.stderr),
        )
        returncode = await proc.wait()
        self._queue.put_nowait(_JobMessage(job_id, "exit", returncode=returncode))

    async def _read_stream(
        self,
        job_id: str,
        kind: Literal["stdout", "stderr"],
        stream: asyncio.StreamReader | None,
    ) -> None:
        if stream is None:
            return

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                data = await stream.read(READ_CHUNK_SIZE)
                text = decoder.decode(data, final=not data)
                if text:
                    self._queue.put_nowait(_JobMessage(job_id, kind, text))
                if not data:
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("%s: error reading %s: %s", job_id, kind, exc)

    # ------------------------------------------------------------------ #
    # Consumer loop
    # ------------------------------------------------------------------ #

    def _ensure_consumer(self) -> None:
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(self._consume())

    async def _consume(self) -> None:
        while True:
            msg = await self._queue.get()
            try:
                self._handle(msg)
            except Exception:
                logger.exception("%s: error handling %s message", msg.job_id, msg.kind)
            finally:
                self._queue.task_done()

    def _handle(self, msg: _JobMessage) -> None:
        ctx = self._jobs.get(msg.job_id)
        if ctx is None:
            logger.debug("%s: dropping %s message for removed job", msg.job_id, msg.kind)
            return

        if msg.kind == "stdout":
            for line in ctx.stdout_framer.feed(msg.text):
                self._process_line(ctx, line)
        elif msg.kind == "stderr":
            self._append_stderr(ctx, ctx.stderr_framer.feed(msg.text))
        else:
            self._finish(ctx, msg.returncode)

    def _process_line(self, ctx: JobContext, line: str) -> None:
        if not line.strip():
            return

        event = decode_line(line)

        if not ctx.seen_first_event:
            ctx.seen_first_event = True
            ctx.sink.replace([])

        if isinstance(event, Result):
            if ctx.done:
                logger.debug("%s: ignoring additional result event", ctx.job_id)
                return
            ctx.final_result = event.text
            ctx.done = True
            ctx.state = "finalizing"
            ctx.sink.replace([*event.text.split("\n"), ""])
            return

        if ctx.done:
            return

        if isinstance(event, AssistantText):
            if event.fragments:
                ctx.sink.append("".join(event.fragments).split("\n"))
        elif isinstance(event, Unparseable):
            ctx.sink.append([event.raw_line])

    def _append_stderr(self, ctx: JobContext, lines: list[str]) -> None:
        if lines:
            ctx.sink.append([f"{STDERR_MARKER}{line}" for line in lines])

    def _finish(self, ctx: JobContext, returncode: int | None) -> None:
        ctx.exit_code = returncode
        ctx.elapsed = self._clock() - ctx.started_at
        try:
            self._flush_and_summarize(ctx)
        finally:
            ctx.state = "removed"
            ctx.process = None
            self._jobs.pop(ctx.job_id, None)
            if not self._jobs:
                self._idle.set()
            if ctx.finished is not None and not ctx.finished.done():
                ctx.finished.set_result(ctx)

        if self._on_finish is not None:
            self._on_finish(ctx)

    def _flush_and_summarize(self, ctx: JobContext) -> None:
        residual = ctx.stdout_framer.flush()
        if residual is not None:
            self._process_line(ctx, residual)
        residual = ctx.stderr_framer.flush()
        if residual is not None:
            self._append_stderr(ctx, [residual])

        duration = format_duration(ctx.elapsed or 0.0)
        if ctx.exit_code != 0 and ctx.final_result is None:
            summary = f"Job failed with exit code {ctx.exit_code} after {duration}"
            logger.error("%s: exited with code %s", ctx.job_id, ctx.exit_code)
        elif ctx.final_result is None:
            summary = f"Job ended without a result after {duration}"
            logger.info("%s: ended without a result", ctx.job_id)
        else:
            summary = f"Job finished in {duration}"
            logger.info("%s: finished in %s", ctx.job_id, duration)
        ctx.sink.append([summary])
