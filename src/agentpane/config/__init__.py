"""Configuration model and parser for agentpane.yaml."""

from agentpane.config.models import AgentPaneConfig
from agentpane.config.parser import DEFAULT_CONFIG_NAME, ConfigError, load_config

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "AgentPaneConfig",
    "ConfigError",
    "load_config",
]
