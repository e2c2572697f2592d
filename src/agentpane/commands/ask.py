"""agentpane ask — run one prompt to completion and print the answer."""

from __future__ import annotations

import asyncio

import click

from agentpane.client import AgentClient
from agentpane.commands import load_config_or_exit
from agentpane.constants import OUTPUT_FORMATS, OutputFormat
from agentpane.errors import AgentUnavailableError


@click.command()
@click.argument("prompt")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default=None,
    help="Agent output format (default from config).",
)
@click.pass_context
def ask(
    ctx: click.Context, prompt: str, output_format: OutputFormat | None
) -> None:
    """Send PROMPT to the agent and print its answer when it finishes."""
    config = load_config_or_exit(ctx)
    client = AgentClient(config)
    try:
        answer = asyncio.run(client.run_one_shot(prompt, output_format))
    except AgentUnavailableError as exc:
        raise click.ClickException(str(exc)) from exc

    if not answer:
        click.echo("No answer from agent.", err=True)
        raise SystemExit(1)
    click.echo(answer)
