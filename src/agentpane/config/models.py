"""Pydantic v2 models for agentpane.yaml configuration."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agentpane.constants import DEFAULT_PLACEHOLDER, OutputFormat

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class AgentPaneConfig(BaseModel):
    """Top-level agentpane.yaml configuration.

    Every field has a default, so an absent config file is equivalent to
    an empty one.
    """

    model_config = ConfigDict(extra="forbid")

    binary: str = Field(
        default="claude",
        min_length=1,
        description="Agent CLI executable, looked up on PATH",
    )
    model: str | None = Field(
        default=None,
        description="Model name passed as --model (agent default when unset)",
    )
    output_format: OutputFormat = Field(
        default="text",
        description="Default --output-format for non-streaming one-shot prompts",
    )
    extra_args: list[str] = Field(
        default_factory=list,
        description="Extra arguments inserted before the prompt, e.g. ['--verbose']",
    )
    strip_env_keys: list[str] = Field(
        default_factory=list,
        description="Environment variables removed from the agent's environment",
    )
    node_heap_limit_mb: int | None = Field(
        default=None,
        gt=0,
        description="Cap the agent's Node.js heap via NODE_OPTIONS (MB)",
    )
    placeholder: str = Field(
        default=DEFAULT_PLACEHOLDER,
        description="Line shown in a job pane until its first event arrives",
    )
    shutdown_timeout: float = Field(
        default=5.0,
        ge=0,
        description="Seconds to wait after SIGTERM before SIGKILL on shutdown",
    )

    @field_validator("strip_env_keys")
    @classmethod
    def _validate_env_keys(cls, keys: list[str]) -> list[str]:
        bad = [k for k in keys if not _ENV_KEY_RE.match(k)]
        if bad:
            joined = ", ".join(f"'{k}'" for k in bad)
            msg = f"Invalid environment variable name(s): {joined}"
            raise ValueError(msg)
        return keys
