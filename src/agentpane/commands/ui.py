"""agentpane ui — Textual app with a pane per streaming job."""

from __future__ import annotations

from collections.abc import Sequence

import click
from textual import on, work
from textual.app import App, ComposeResult
from textual.containers import Vertical, VerticalScroll
from textual.widgets import Footer, Header, Input, Log

from agentpane.client import AgentClient
from agentpane.commands import load_config_or_exit
from agentpane.config import AgentPaneConfig
from agentpane.errors import AgentPaneError
from agentpane.session import SessionManager
from agentpane.sink import OutputSink, Viewport
from agentpane.supervisor import JobContext, JobSupervisor

#: Prompts starting with this are sent to the interactive session.
SESSION_PREFIX = ">"


class LogViewport:
    """Viewport backed by a Textual ``Log`` widget."""

    def __init__(self, log: Log) -> None:
        self._log = log
        self._closed = False

    def is_alive(self) -> bool:
        return not self._closed

    def write_lines(self, lines: Sequence[str]) -> None:
        self._log.write_lines(lines)

    def clear(self) -> None:
        self._log.clear()

    def focus(self) -> None:
        self._log.focus()

    def close(self) -> None:
        self._closed = True
        self._log.remove()


class PaneApp(App[None]):
    """Streaming job panes, an optional session pane, and a prompt bar."""

    CSS = """
    #jobs {
        height: 1fr;
    }

    #session-area {
        height: auto;
        max-height: 50%;
    }

    .job-log {
        height: auto;
        max-height: 20;
        border: solid $primary;
    }

    .job-log.finished {
        border: solid $success;
    }

    .job-log.failed {
        border: solid $error;
    }

    #session-log {
        height: 16;
        border: solid $accent;
    }

    #prompt-bar {
        dock: bottom;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("ctrl+t", "toggle_session", "Session"),
        ("ctrl+x", "cancel_job", "Cancel newest job"),
    ]

    def __init__(self, config: AgentPaneConfig) -> None:
        super().__init__()
        self.config = config
        self.client = AgentClient(config)
        self.supervisor = JobSupervisor(
            self.client,
            sink_factory=self._make_job_sink,
            on_finish=self._on_job_finished,
        )
        self.session = SessionManager(self.client, self._make_session_viewport)
        self._logs: dict[str, Log] = {}

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield VerticalScroll(id="jobs")
        yield Vertical(id="session-area")
        yield Input(
            placeholder=f"Prompt (prefix with '{SESSION_PREFIX}' for the session)",
            id="prompt-bar",
        )
        yield Footer()

    def on_mount(self) -> None:
        if not self.client.available():
            self.notify(
                f"Agent CLI '{self.client.binary}' not found on PATH",
                severity="error",
                timeout=10,
            )
        self.set_focus(self.query_one("#prompt-bar", Input))

    async def on_unmount(self) -> None:
        await self.supervisor.shutdown()
        await self.session.close()

    # ------------------------------------------------------------------ #
    # Sinks and viewports
    # ------------------------------------------------------------------ #

    def _make_job_sink(self, job_id: str) -> OutputSink:
        log = Log(classes="job-log")
        log.border_title = job_id
        self._logs[job_id] = log
        self.query_one("#jobs", VerticalScroll).mount(log)
        sink = OutputSink(title=job_id, placeholder=self.config.placeholder)
        sink.attach(LogViewport(log))
        return sink

    def _make_session_viewport(self) -> Viewport:
        log = Log(id="session-log")
        log.border_title = "session"
        self.query_one("#session-area", Vertical).mount(log)
        return LogViewport(log)

    def _on_job_finished(self, job: JobContext) -> None:
        log = self._logs.pop(job.job_id, None)
        if log is not None:
            log.add_class("failed" if job.failed else "finished")

    # ------------------------------------------------------------------ #
    # Input and actions
    # ------------------------------------------------------------------ #

    @on(Input.Submitted, "#prompt-bar")
    def _submit(self, event: Input.Submitted) -> None:
        text = event.value.strip()
        event.input.value = ""
        if not text:
            return
        if text.startswith(SESSION_PREFIX):
            self._send_to_session(text[len(SESSION_PREFIX) :].strip())
        else:
            self._start_job(text)

    @work(group="jobs")
    async def _start_job(self, prompt: str) -> None:
        try:
            job_id = await self.supervisor.start_job(prompt)
        except AgentPaneError as exc:
            self.notify(str(exc), severity="error")
            return
        if job_id is None:
            self.notify("Agent failed to start", severity="error")

    @work(group="session")
    async def _send_to_session(self, text: str) -> None:
        try:
            await self.session.send(text)
        except AgentPaneError as exc:
            self.notify(str(exc), severity="error")

    def action_toggle_session(self) -> None:
        self._toggle_session()

    @work(group="session")
    async def _toggle_session(self) -> None:
        try:
            await self.session.toggle()
        except AgentPaneError as exc:
            self.notify(str(exc), severity="error")
        if self.session.state != "open":
            self.set_focus(self.query_one("#prompt-bar", Input))

    def action_cancel_job(self) -> None:
        running = list(self.supervisor.jobs)
        if not running:
            self.notify("No running jobs", severity="warning")
            return
        warning = self.supervisor.cancel(running[-1])
        if warning:
            self.notify(warning, severity="warning")


@click.command()
@click.pass_context
def ui(ctx: click.Context) -> None:
    """Open the live TUI: one pane per job plus the interactive session."""
    config = load_config_or_exit(ctx)
    PaneApp(config).run()
