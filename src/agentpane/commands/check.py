"""agentpane check — report whether the agent CLI is installed."""

from __future__ import annotations

import shutil

import click

from agentpane.client import AgentClient
from agentpane.commands import load_config_or_exit


@click.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Check that the agent CLI can be found on PATH."""
    config = load_config_or_exit(ctx)
    client = AgentClient(config)
    if not client.available():
        click.echo(
            f"Agent CLI '{client.binary}' not found on PATH.\n"
            f"Install it or set 'binary' in your agentpane.yaml.",
            err=True,
        )
        raise SystemExit(1)
    click.echo(f"  {client.binary}: {shutil.which(client.binary)}")
    if config.model:
        click.echo(f"  model: {config.model}")
