"""Read agentpane.yaml into an AgentPaneConfig."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from agentpane.config.models import AgentPaneConfig

DEFAULT_CONFIG_NAME = "agentpane.yaml"

# pydantic error type -> wording shown to the user
_ERROR_TEMPLATES = {
    "extra_forbidden": "Unknown setting",
    "literal_error": "Invalid value: {msg}",
}


class ConfigError(Exception):
    """User-facing configuration error."""


def load_config(path: Path | None = None) -> AgentPaneConfig:
    """Load the config at *path*, or ``./agentpane.yaml`` when present.

    Without an explicit path and without a file in the working directory
    the defaults are returned.  A ``.env`` next to the config file is
    loaded into the environment before validation.

    Raises:
        ConfigError: The explicit file is missing, or the file is not a
            valid YAML mapping of known settings.
    """
    if path is None:
        path = Path.cwd() / DEFAULT_CONFIG_NAME
        if not path.is_file():
            return AgentPaneConfig()
    elif not path.is_file():
        msg = f"Config file not found: {path}"
        raise ConfigError(msg)

    raw = _read_mapping(path)
    env_file = path.parent / ".env"
    if env_file.is_file():
        load_dotenv(env_file)

    try:
        return AgentPaneConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(_describe(exc)) from exc


def _read_mapping(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        msg = f"Cannot read config file: {exc}"
        raise ConfigError(msg) from exc
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" (line {mark.line + 1}, column {mark.column + 1})" if mark else ""
        msg = f"Invalid YAML in {path.name}{where}"
        raise ConfigError(msg) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {path.name}, got {type(data).__name__}"
        raise ConfigError(msg)
    return data


def _describe(exc: ValidationError) -> str:
    lines = ["Config validation failed:"]
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "(root)"
        template = _ERROR_TEMPLATES.get(err["type"], "{msg}")
        lines.append(f"  {field}: {template.format(msg=err['msg'])}")
    return "\n".join(lines)
