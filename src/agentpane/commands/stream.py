"""agentpane stream — run prompts as concurrent streaming jobs on the console."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from collections.abc import Sequence

import click

from agentpane.client import AgentClient
from agentpane.commands import load_config_or_exit
from agentpane.config import AgentPaneConfig
from agentpane.errors import AgentUnavailableError
from agentpane.sink import OutputSink
from agentpane.supervisor import JobContext, JobSupervisor


class ConsoleViewport:
    """Viewport that echoes sink updates to stdout.

    A terminal cannot take back printed lines, so ``clear`` only marks the
    next write as a fresh block.
    """

    def __init__(self, label: str | None = None) -> None:
        self._label = label
        self._alive = True
        self._written = False
        self._cleared = False

    def is_alive(self) -> bool:
        return self._alive

    def write_lines(self, lines: Sequence[str]) -> None:
        prefix = click.style(f"[{self._label}] ", fg="cyan") if self._label else ""
        if self._cleared:
            self._cleared = False
            click.echo(f"{prefix}{click.style('──', dim=True)}")
        for line in lines:
            click.echo(f"{prefix}{line}")
            self._written = True

    def clear(self) -> None:
        self._cleared = self._written

    def focus(self) -> None:
        """Nothing to focus on a console."""

    def close(self) -> None:
        self._alive = False


@click.command()
@click.argument("prompts", nargs=-1, required=True)
@click.pass_context
def stream(ctx: click.Context, prompts: tuple[str, ...]) -> None:
    """Run each PROMPT as a streaming job and print output as it arrives.

    Several prompts run concurrently; Ctrl-C cancels every running job.
    """
    config = load_config_or_exit(ctx)
    try:
        failed = asyncio.run(_run_stream(config, list(prompts)))
    except AgentUnavailableError as exc:
        raise click.ClickException(str(exc)) from exc
    if failed:
        raise SystemExit(1)


async def _run_stream(config: AgentPaneConfig, prompts: list[str]) -> int:
    """Run *prompts* to completion; return the number of failed jobs."""
    client = AgentClient(config)
    labelled = len(prompts) > 1
    failures: list[str] = []

    def _make_sink(job_id: str) -> OutputSink:
        # Placeholder is skipped on the console; it would only be cleared.
        sink = OutputSink(title=job_id, placeholder=None)
        sink.attach(ConsoleViewport(job_id if labelled else None))
        return sink

    def _on_finish(job: JobContext) -> None:
        if job.failed:
            failures.append(job.job_id)

    supervisor = JobSupervisor(client, sink_factory=_make_sink, on_finish=_on_finish)

    def _cancel_all() -> None:
        click.echo("\nCancelling running jobs...", err=True)
        for job_id in list(supervisor.jobs):
            supervisor.cancel(job_id)

    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, _cancel_all)

    try:
        for prompt in prompts:
            if await supervisor.start_job(prompt) is None:
                failures.append(prompt)
        await supervisor.join()
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)
        await supervisor.shutdown()

    return len(failures)
