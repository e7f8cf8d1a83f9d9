"""Breaker settings loaded from TOML.

A settings file holds a ``[defaults]`` table and one table per endpoint
key under ``[breakers]``. Per-key tables inherit any field they omit from
the defaults:

    [defaults]
    failure_threshold = 3
    recovery_timeout_seconds = 5.0

    [breakers."API-B"]
    failure_threshold = 2
    recovery_timeout_seconds = 3

Settings are read once; changing the file has no effect on breakers that
already exist.
"""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .circuit_breaker_config import DEFAULT_CONFIG, CircuitBreakerConfig

logger = logging.getLogger(__name__)

_FIELDS = ("failure_threshold", "recovery_timeout_seconds")


@dataclass(frozen=True)
class BreakerSettings:
    """Default and per-key circuit breaker configuration."""

    defaults: CircuitBreakerConfig = DEFAULT_CONFIG
    breakers: Mapping[str, CircuitBreakerConfig] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def config_for(self, key: str) -> CircuitBreakerConfig:
        """Return the config for ``key``, falling back to the defaults."""
        return self.breakers.get(key, self.defaults)

    def to_dict(self) -> dict[str, Any]:
        return {
            "defaults": self.defaults.to_dict(),
            "breakers": {key: cfg.to_dict() for key, cfg in sorted(self.breakers.items())},
        }


def load_breaker_settings(path: Path) -> BreakerSettings:
    """Load settings from a TOML file.

    Args:
        path: Path to the settings file.

    Returns:
        Parsed BreakerSettings.

    Raises:
        FileNotFoundError: If the file is missing.
        ValueError: On invalid, empty, or corrupt TOML.
    """
    if not path.exists():
        msg = f"Breaker settings not found: {path}"
        raise FileNotFoundError(msg)

    content = path.read_text(encoding="utf-8")
    if not content.strip():
        msg = f"Settings file is empty: {path}"
        raise ValueError(msg)

    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path}: {exc}"
        raise ValueError(msg) from exc

    settings = parse_breaker_settings(data)
    logger.debug("Loaded %d breaker configs from %s", len(settings.breakers), path)
    return settings


def parse_breaker_settings(data: Mapping[str, object]) -> BreakerSettings:
    """Parse raw TOML data into BreakerSettings.

    Unknown fields are silently ignored for forward compatibility.
    """
    defaults_data = data.get("defaults", {})
    if not isinstance(defaults_data, dict):
        msg = "[defaults] section must be a table"
        raise ValueError(msg)

    breakers_data = data.get("breakers", {})
    if not isinstance(breakers_data, dict):
        msg = "[breakers] section must be a table"
        raise ValueError(msg)

    defaults = _parse_config(defaults_data, DEFAULT_CONFIG, "defaults")

    breakers: dict[str, CircuitBreakerConfig] = {}
    for key, table in breakers_data.items():
        if not isinstance(table, dict):
            msg = f"[breakers.{key}] section must be a table"
            raise ValueError(msg)
        breakers[key] = _parse_config(table, defaults, f"breakers.{key}")

    return BreakerSettings(defaults=defaults, breakers=MappingProxyType(breakers))


def _parse_config(
    table: Mapping[str, object],
    base: CircuitBreakerConfig,
    section: str,
) -> CircuitBreakerConfig:
    overrides = {name: table[name] for name in _FIELDS if name in table}
    try:
        return base.with_overrides(**overrides)
    except ValueError as exc:
        msg = f"Invalid [{section}]: {exc}"
        raise ValueError(msg) from exc
