"""Root CLI group and version flag."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from agentpane import __version__
from agentpane.commands.ask import ask
from agentpane.commands.check import check
from agentpane.commands.init import init
from agentpane.commands.stream import stream
from agentpane.commands.ui import ui


@click.group()
@click.version_option(version=__version__, prog_name="agentpane")
@click.option(
    "-f", "--file", "config_file", type=click.Path(), help="Config file path."
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_file: str | None, verbose: bool) -> None:
    """agentpane — live panes for a streaming coding agent."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config_file": Path(config_file) if config_file else None}


cli.add_command(check)
cli.add_command(ask)
cli.add_command(stream)
cli.add_command(ui)
cli.add_command(init)
