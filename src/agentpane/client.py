"""AgentClient — locate, invoke, and collect output from the agent CLI."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil

from agentpane.config.models import AgentPaneConfig
from agentpane.constants import OutputFormat
from agentpane.errors import AgentUnavailableError
from agentpane.helpers import format_stderr_preview
from agentpane.stream.events import AssistantText, Result, decode_line
from agentpane.stream.framer import LineFramer

logger = logging.getLogger(__name__)


class AgentClient:
    """Builds agent command lines and runs non-streaming one-shot prompts.

    The same argument vector and environment are used by the streaming
    job supervisor and the interactive session, so every process the
    package starts is invoked identically.
    """

    def __init__(self, config: AgentPaneConfig | None = None) -> None:
        self._config = config or AgentPaneConfig()

    @property
    def config(self) -> AgentPaneConfig:
        return self._config

    @property
    def binary(self) -> str:
        return self._config.binary

    def available(self) -> bool:
        """Whether the agent binary can be found on PATH."""
        return shutil.which(self._config.binary) is not None

    def require_available(self) -> None:
        """Raise :class:`AgentUnavailableError` if the binary is missing."""
        if not self.available():
            logger.error("agent binary '%s' not found on PATH", self._config.binary)
            raise AgentUnavailableError(self._config.binary)

    # ------------------------------------------------------------------ #
    # Invocation
    # ------------------------------------------------------------------ #

    def build_command(
        self,
        prompt: str | None = None,
        output_format: OutputFormat | None = None,
    ) -> list[str]:
        """Return the argument vector for one invocation.

        With a *prompt* the agent runs in print mode and exits after
        answering; without one it starts interactively.  ``stream-json``
        in print mode always carries ``--verbose``, which claude requires.
        """
        args = [self._config.binary]
        if prompt is not None:
            args.append("--print")
            if output_format is not None:
                args.extend(["--output-format", output_format])
            if (
                output_format == "stream-json"
                and "--verbose" not in self._config.extra_args
            ):
                args.append("--verbose")
        if self._config.model:
            args.extend(["--model", self._config.model])
        args.extend(self._config.extra_args)
        if prompt is not None:
            args.append(prompt)
        return args

    def build_env(self) -> dict[str, str]:
        """Environment for agent subprocesses."""
        stripped = set(self._config.strip_env_keys)
        env = {k: v for k, v in os.environ.items() if k not in stripped}

        heap_mb = self._config.node_heap_limit_mb
        if heap_mb is not None:
            node_opts = env.get("NODE_OPTIONS", "")
            if "--max-old-space-size" not in node_opts:
                separator = " " if node_opts else ""
                heap_flag = f"--max-old-space-size={heap_mb}"
                env["NODE_OPTIONS"] = f"{node_opts}{separator}{heap_flag}"
        return env

    async def spawn(
        self,
        args: list[str],
        *,
        interactive: bool = False,
    ) -> asyncio.subprocess.Process:
        """Start *args* with piped output.

        Interactive processes get a stdin pipe and stderr merged into
        stdout; one-shot processes get no stdin and a separate stderr pipe.
        Raises ``FileNotFoundError`` / ``OSError`` from the spawn itself.
        """
        return await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE if interactive else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT if interactive else asyncio.subprocess.PIPE,
            env=self.build_env(),
            start_new_session=True,
        )

    # ------------------------------------------------------------------ #
    # Non-streaming one-shot
    # ------------------------------------------------------------------ #

    async def run_one_shot(
        self,
        prompt: str,
        output_format: OutputFormat | None = None,
    ) -> str:
        """Run *prompt* to completion and return the answer text.

        Returns an empty string when the agent fails to start, exits
        non-zero, or produces no usable answer.
        """
        self.require_available()
        fmt = output_format or self._config.output_format

        try:
            proc = await self.spawn(self.build_command(prompt, fmt))
        except OSError as exc:
            logger.error("failed to spawn %s: %s", self._config.binary, exc)
            return ""

        stdout_bytes, stderr_bytes = await proc.communicate()
        if proc.returncode != 0:
            stderr_preview = format_stderr_preview(
                stderr_bytes.decode(errors="replace")
            )
            logger.error(
                "%s exited with code %s%s",
                self._config.binary,
                proc.returncode,
                f":\n  {stderr_preview}" if stderr_preview else "",
            )
            return ""

        stdout_text = stdout_bytes.decode(errors="replace")
        if fmt == "json":
            return _result_from_json(stdout_text)
        if fmt == "stream-json":
            return _result_from_stream(stdout_text)
        return stdout_text.strip()


def _result_from_json(text: str) -> str:
    """Extract ``result`` from a single JSON document."""
    try:
        payload = json.loads(text)
    except ValueError:
        logger.warning("agent output is not valid JSON: %s", text[:200])
        return ""
    if not isinstance(payload, dict):
        return ""
    result = payload.get("result")
    return result if isinstance(result, str) else ""


def _result_from_stream(text: str) -> str:
    """Reduce complete stream-json output to its answer.

    The first ``result`` event wins; without one, the assistant fragments
    are concatenated in order.
    """
    framer = LineFramer()
    lines = framer.feed(text)
    residual = framer.flush()
    if residual is not None:
        lines.append(residual)

    fragments: list[str] = []
    for line in lines:
        event = decode_line(line)
        if isinstance(event, Result):
            return event.text
        if isinstance(event, AssistantText):
            fragments.extend(event.fragments)
    return "".join(fragments)
