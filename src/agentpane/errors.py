"""Exception types raised across the agentpane core."""

from __future__ import annotations


class AgentPaneError(Exception):
    """Base class for agentpane errors."""


class AgentUnavailableError(AgentPaneError):
    """The configured agent binary could not be found on PATH."""

    def __init__(self, binary: str) -> None:
        self.binary = binary
        super().__init__(
            f"Agent CLI '{binary}' not found. "
            f"Make sure '{binary}' is installed and on your PATH."
        )


class SessionError(AgentPaneError):
    """Writing to the interactive session failed."""
