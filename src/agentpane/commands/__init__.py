"""Click subcommands for the agentpane CLI."""

from __future__ import annotations

from pathlib import Path

import click

from agentpane.config import AgentPaneConfig, ConfigError, load_config


def load_config_or_exit(ctx: click.Context) -> AgentPaneConfig:
    """Load the config named on the root group, exiting 1 on error."""
    obj = ctx.find_root().obj or {}
    config_file: Path | None = obj.get("config_file")
    try:
        return load_config(config_file)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
