"""Inventory configuration loading helpers.

Provides strict/non-strict YAML parsing used by the runner and by the
extraction layer when it builds its error-handling options.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigValidationError(RuntimeError):
    """Raised when strict configuration validation fails."""


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def resolve_strict_config_validation(default: bool = False) -> bool:
    """Resolve strict validation mode from ``STRICT_CONFIG_VALIDATION`` env."""
    return _env_flag("STRICT_CONFIG_VALIDATION", default=default)


def load_yaml_config(
    config_path: Optional[str],
    strict: bool = False,
) -> dict[str, Any]:
    """Load and parse an inventory YAML config.

    A ``None`` path means "no config file" and yields an empty dict.
    In non-strict mode this returns an empty dict on parse/read failures.
    In strict mode this raises ``ConfigValidationError``.
    """
    if config_path is None:
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            payload = yaml.safe_load(f)
    except FileNotFoundError as exc:
        msg = f"Config file not found: {config_path}"
        if strict:
            raise ConfigValidationError(msg) from exc
        logger.warning("%s; continuing with defaults", msg)
        return {}
    except yaml.YAMLError as exc:
        msg = f"Failed to parse config YAML at {config_path}: {exc}"
        if strict:
            raise ConfigValidationError(msg) from exc
        logger.warning("%s; continuing with defaults", msg)
        return {}

    if payload is None:
        logger.info("Config file %s is empty; using defaults", config_path)
        return {}

    if not isinstance(payload, dict):
        msg = f"Unexpected config payload type: {type(payload).__name__}"
        if strict:
            raise ConfigValidationError(msg)
        logger.warning("%s; continuing with defaults", msg)
        return {}

    return payload


def get_config_section(
    config: dict[str, Any],
    section: str,
    strict: bool = False,
) -> dict[str, Any]:
    """Fetch a named mapping section, tolerating its absence."""
    value = config.get(section)
    if value is None:
        return {}
    if not isinstance(value, dict):
        msg = f"Config section '{section}' must be a mapping"
        if strict:
            raise ConfigValidationError(msg)
        logger.warning("%s; using defaults", msg)
        return {}
    return value


def resolve_bool(
    section: dict[str, Any],
    key: str,
    default: bool,
    strict: bool = False,
) -> bool:
    """Read a boolean setting, accepting YAML booleans and flag strings."""
    if key not in section:
        return default

    raw = section[key]
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False

    msg = f"Setting '{key}' must be a boolean, got {raw!r}"
    if strict:
        raise ConfigValidationError(msg)
    logger.warning("%s; using default %s", msg, default)
    return default


def resolve_int(
    section: dict[str, Any],
    key: str,
    default: int,
    minimum: int = 0,
    strict: bool = False,
) -> int:
    """Read a non-negative integer setting."""
    if key not in section:
        return default

    raw = section[key]
    if isinstance(raw, int) and not isinstance(raw, bool) and raw >= minimum:
        return raw

    msg = f"Setting '{key}' must be an integer >= {minimum}, got {raw!r}"
    if strict:
        raise ConfigValidationError(msg)
    logger.warning("%s; using default %d", msg, default)
    return default


def reject_unknown_keys(
    section: dict[str, Any],
    allowed: set[str],
    section_name: str,
    strict: bool = False,
) -> list[str]:
    """Report keys in ``section`` that are not in ``allowed``."""
    unknown = sorted(key for key in section if key not in allowed)
    if unknown:
        msg = f"Unknown keys in '{section_name}': {', '.join(unknown)}"
        if strict:
            raise ConfigValidationError(msg)
        logger.warning("%s; ignoring them", msg)
    return unknown
