"""agentpane — live panes for streaming coding-agent jobs."""

__version__ = "0.1.0"
