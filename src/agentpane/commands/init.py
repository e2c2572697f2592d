"""agentpane init — scaffold an agentpane.yaml in the current directory."""

from __future__ import annotations

from pathlib import Path

import click

from agentpane.config import DEFAULT_CONFIG_NAME

TEMPLATE_YAML = """\
# agentpane configuration — every setting is optional.

# Agent CLI executable, looked up on PATH
binary: claude

# Model passed as --model (agent default when unset)
# model: sonnet

# Output format for `agentpane ask`: text, json or stream-json
output_format: text

# Extra arguments inserted before the prompt
# extra_args:
#   - --dangerously-skip-permissions

# Environment variables hidden from the agent, e.g. to force
# subscription auth instead of an API key
# strip_env_keys:
#   - ANTHROPIC_API_KEY

# Cap the agent's Node.js heap (MB)
# node_heap_limit_mb: 2048

# Seconds to wait after SIGTERM before SIGKILL on shutdown
# shutdown_timeout: 5
"""


@click.command()
@click.option(
    "--force",
    is_flag=True,
    help=f"Overwrite existing {DEFAULT_CONFIG_NAME} if it exists.",
)
def init(force: bool) -> None:
    """Write a starter agentpane.yaml in the current directory."""
    config_path = Path.cwd() / DEFAULT_CONFIG_NAME

    if config_path.exists() and not force:
        raise click.ClickException(
            f"{DEFAULT_CONFIG_NAME} already exists. Use --force to overwrite."
        )

    try:
        config_path.write_text(TEMPLATE_YAML, encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Cannot write {DEFAULT_CONFIG_NAME}: {exc}") from exc
    click.echo(f"  Created {DEFAULT_CONFIG_NAME}")
    click.echo()
    click.echo("Next steps:")
    click.echo("  1. Run `agentpane check` to confirm the agent CLI is installed")
    click.echo('  2. Run `agentpane stream "your prompt"` or `agentpane ui`')
