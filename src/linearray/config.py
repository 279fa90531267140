"""Configuration for line-addressed file accessors.

This module defines the configuration dataclass that controls how a file is
opened and scanned, plus helpers to build it from loose option mappings or a
YAML file.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Alternate spellings accepted for option keys
_OPTION_ALIASES = {
    "bufferSize": "buffer_size",
    "bufsize": "buffer_size",
    "pollInterval": "poll_interval",
    "queueSize": "queue_size",
    "maxCachedOffsets": "max_cached_offsets",
}


@dataclass
class AccessorConfig:
    """Configuration for a FileArray accessor.

    Attributes:
        flags: os.open() flags (default: os.O_RDONLY).
        mode: Permission bits used when the file is created (default: 0o666).
        buffer_size: Scan chunk size in bytes (default: 4096).
        fd: Pre-opened descriptor to use instead of opening the path.
        poll_interval: Seconds between stat polls while following (default: 0.1).
        queue_size: Lines buffered per stream before the producer waits (default: 64).
        max_cached_offsets: Upper bound for the offset cache, None for unbounded.
    """

    flags: int = os.O_RDONLY
    mode: int = 0o666
    buffer_size: int = 4096
    fd: int | None = None
    poll_interval: float = 0.1
    queue_size: int = 64
    max_cached_offsets: int | None = None

    def __post_init__(self) -> None:
        if self.buffer_size <= 0:
            raise ConfigError(f"buffer_size must be positive, got {self.buffer_size}")
        if self.poll_interval <= 0:
            raise ConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.queue_size < 0:
            raise ConfigError(f"queue_size must not be negative, got {self.queue_size}")
        if self.max_cached_offsets is not None and self.max_cached_offsets < 2:
            raise ConfigError(
                f"max_cached_offsets must be at least 2, got {self.max_cached_offsets}"
            )
        if self.fd is not None and self.fd < 0:
            raise ConfigError(f"fd must not be negative, got {self.fd}")

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None = None) -> AccessorConfig:
        """Build a config from a mapping of options.

        Unknown keys raise ConfigError; camelCase aliases such as
        ``bufferSize`` are accepted. A None value means "use the default".
        """
        return cls().merged(options or {})

    def merged(self, options: Mapping[str, Any]) -> AccessorConfig:
        """Return a copy with the given options applied on top."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in options.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in values:
                raise ConfigError(f"Unknown option: {key}")
            if value is not None:
                values[name] = value
        return type(self)(**values)


def load_config(path: str | Path) -> AccessorConfig:
    """Load accessor configuration from a YAML file.

    The options may sit at the top level or under a ``linearray`` section.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed AccessorConfig

    Raises:
        ConfigError: If the file is missing, unparsable or has invalid options
    """
    config_path = Path(path)

    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a mapping, got {type(data).__name__}")

    section = data.get("linearray", data)
    if not isinstance(section, dict):
        raise ConfigError("The 'linearray' section must be a mapping")

    config = AccessorConfig.from_options(section)
    logger.debug(f"Loaded accessor configuration from {config_path}")
    return config
