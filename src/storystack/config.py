"""Engine configuration loading.

Resolution order, lowest to highest precedence:
1. Built-in defaults
2. ``storystack.yaml`` in the working directory, or an explicit file
3. ``STORYSTACK_*`` environment variables
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from storystack.errors import ConfigError
from storystack.graph.analysis import DEFAULT_PLACEHOLDER_TITLE
from storystack.graph.diff import DEFAULT_POSITION_THRESHOLD
from storystack.graph.orphans import DEFAULT_SUGGESTION_LIMIT
from storystack.observability.logging import get_logger
from storystack.viewport import (
    DEFAULT_DEBOUNCE_DELAY,
    DEFAULT_FRAME_INTERVAL,
    DEFAULT_VIEWPORT_THRESHOLD,
)

log = get_logger(__name__)

CONFIG_FILENAME = "storystack.yaml"

# Environment variable -> EngineConfig field
ENV_VARS = {
    "STORYSTACK_PLACEHOLDER_TITLE": "placeholder_title",
    "STORYSTACK_SUGGESTION_LIMIT": "suggestion_limit",
    "STORYSTACK_POSITION_THRESHOLD": "position_threshold",
    "STORYSTACK_DEBOUNCE_DELAY": "debounce_delay",
    "STORYSTACK_FRAME_INTERVAL": "frame_interval",
    "STORYSTACK_VIEWPORT_THRESHOLD": "viewport_threshold",
}


@dataclass
class EngineConfig:
    """Tunable settings of the graph engine.

    Attributes:
        placeholder_title: Title the editor gives new cards; it counts as
            no title for completeness checks.
        suggestion_limit: Maximum parent suggestions per orphan.
        position_threshold: Largest node move, in pixels, the diff treats
            as noise.
        debounce_delay: Quiet period before debounced viewport work runs,
            in seconds.
        frame_interval: Frame length for throttled viewport work, in seconds.
        viewport_threshold: Pan distance, in pixels, below which two
            viewports count as equal.
    """

    placeholder_title: str = DEFAULT_PLACEHOLDER_TITLE
    suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT
    position_threshold: float = DEFAULT_POSITION_THRESHOLD
    debounce_delay: float = DEFAULT_DEBOUNCE_DELAY
    frame_interval: float = DEFAULT_FRAME_INTERVAL
    viewport_threshold: float = DEFAULT_VIEWPORT_THRESHOLD

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, source: str = "config") -> EngineConfig:
        """Create config from a dictionary, ignoring unknown keys.

        Raises:
            ConfigError: If a value has the wrong type or is out of range.
        """
        config = cls()
        known = {f.name for f in fields(cls)}
        for key, value in data.items():
            if key not in known:
                log.warning("config_key_unknown", key=key, source=source)
                continue
            setattr(config, key, _coerce(key, value, source))
        return config


def _coerce(key: str, value: Any, source: str) -> Any:
    if key == "placeholder_title":
        if not isinstance(value, str):
            raise ConfigError(source, f"{key} must be a string")
        return value

    if isinstance(value, bool):
        raise ConfigError(source, f"{key} must be a number, got {value!r}")
    if key == "suggestion_limit":
        return _coerce_limit(key, value, source)

    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(source, f"{key} must be a number, got {value!r}") from e
    if number < 0:
        raise ConfigError(source, f"{key} must be a non-negative number, got {value!r}")
    return number


def _coerce_limit(key: str, value: Any, source: str) -> int:
    # int() would silently truncate 2.5 to 2
    if isinstance(value, float) and not value.is_integer():
        raise ConfigError(source, f"{key} must be a whole number, got {value!r}")
    try:
        limit = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(source, f"{key} must be a whole number, got {value!r}") from e
    if limit < 1:
        raise ConfigError(source, f"{key} must be at least 1, got {value!r}")
    return limit


def _read_yaml(path: Path) -> dict[str, Any]:
    yaml = YAML(typ="safe")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
    except (OSError, YAMLError) as e:
        raise ConfigError(str(path), str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(str(path), "expected a mapping at the top level")
    return dict(data)


def load_config(path: Path | None = None) -> EngineConfig:
    """Load engine configuration.

    Args:
        path: Explicit config file. When omitted, ``storystack.yaml`` in
            the working directory is used if it exists.

    Returns:
        EngineConfig with file and environment overrides applied.

    Raises:
        ConfigError: If the file is missing (when given explicitly),
            unreadable, or holds invalid values.
    """
    if path is not None and not path.exists():
        raise ConfigError(str(path), "File not found")
    config_path = path if path is not None else Path.cwd() / CONFIG_FILENAME

    data: dict[str, Any] = {}
    if config_path.exists():
        data = _read_yaml(config_path)
        log.debug("config_file_loaded", path=str(config_path), keys=sorted(data))
    config = EngineConfig.from_dict(data, source=str(config_path))

    for env_var, key in ENV_VARS.items():
        raw = os.getenv(env_var)
        if raw is None or raw == "":
            continue
        setattr(config, key, _coerce(key, raw, env_var))
        log.debug("config_env_override", var=env_var)

    return config
