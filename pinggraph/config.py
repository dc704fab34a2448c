# Copyright 2025 icecake0141
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# This file was created or modified with the assistance of an AI (Large Language Model).
# Review required for correctness, security, and licensing.

"""
Configuration for PingGraph.

This module defines the immutable per-session probe configuration, the
dead-timeout validation rule, and loading of persistent settings from
~/.pinggraph.conf. Both YAML and INI formats are supported.

Priority order: CLI args > ~/.pinggraph.conf > hardcoded defaults
"""

import configparser
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.expanduser("~/.pinggraph.conf")

DEFAULT_TIMEOUT_MS = 150
DEFAULT_INTERVAL_SECONDS = 0.1
DEFAULT_DEAD_TIMEOUT_MS = 500.0
MAX_DEAD_TIMEOUT_MS = 10000.0

SCALE_LINEAR = "linear"
SCALE_LOG = "log"
SCALES = (SCALE_LINEAR, SCALE_LOG)

# Mapping of config field names to their expected Python types
_CONFIG_FIELD_TYPES: Dict[str, type] = {
    "host": str,
    "timeout": int,
    "interval": float,
    "dead_timeout": float,
    "ipv6": bool,
    "unprivileged": bool,
    "scale": str,
    "log_level": str,
    "log_file": str,
}

_BOOL_TRUE_VALUES = frozenset(("true", "yes", "1", "on"))
_BOOL_FALSE_VALUES = frozenset(("false", "no", "0", "off"))


class ConfigError(ValueError):
    """Raised when the probe configuration is out of range."""


def validate_dead_timeout(timeout_ms: float, dead_timeout_ms: float) -> None:
    """
    Check the dead-timeout sentinel against its ceiling and the probe timeout.

    Raises:
        ConfigError: If dead_timeout_ms is above the ceiling or below timeout_ms
    """
    if dead_timeout_ms > MAX_DEAD_TIMEOUT_MS or dead_timeout_ms < timeout_ms:
        raise ConfigError(
            f"Dead timeout (-D) value {dead_timeout_ms:g} out of range "
            f"(must be between timeout {timeout_ms:g} ms and {MAX_DEAD_TIMEOUT_MS:g} ms)."
        )


@dataclass(frozen=True)
class ProbeConfig:
    """Immutable probe settings for one monitoring session."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    interval: float = DEFAULT_INTERVAL_SECONDS
    dead_timeout_ms: float = DEFAULT_DEAD_TIMEOUT_MS
    ipv6: bool = False
    privileged: bool = True

    @classmethod
    def create(
        cls,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        dead_timeout_ms: float = DEFAULT_DEAD_TIMEOUT_MS,
        ipv6: bool = False,
        privileged: bool = True,
    ) -> "ProbeConfig":
        """
        Build a validated configuration.

        Raises:
            ConfigError: If any value is out of range
        """
        if timeout_ms <= 0:
            raise ConfigError("Timeout (-W) must be a positive number of milliseconds.")
        if interval <= 0:
            raise ConfigError("Interval (-i) must be a positive number of seconds.")
        validate_dead_timeout(timeout_ms, dead_timeout_ms)
        return cls(int(timeout_ms), float(interval), float(dead_timeout_ms), bool(ipv6), bool(privileged))

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def family_label(self) -> str:
        return "IPv6" if self.ipv6 else "IPv4"


def _parse_bool(value: str) -> bool:
    """Parse a boolean value from a string representation."""
    lower = value.lower()
    if lower in _BOOL_TRUE_VALUES:
        return True
    if lower in _BOOL_FALSE_VALUES:
        return False
    raise ValueError(f"Cannot parse '{value}' as a boolean. Use true/false, yes/no, 1/0, or on/off.")


def _coerce_field(key: str, raw_value: Any) -> Any:
    """Coerce a raw config value to the expected type for the given field name."""
    field_type = _CONFIG_FIELD_TYPES[key]
    # bool is an int subclass; only accept it for bool fields
    if isinstance(raw_value, field_type) and (field_type is bool or not isinstance(raw_value, bool)):
        value = raw_value
    else:
        try:
            if field_type is bool:
                value = _parse_bool(str(raw_value))
            elif field_type is int and isinstance(raw_value, (bool, float)):
                # Whole-number floats only, as int("150.7") rejects INI values
                if isinstance(raw_value, bool) or not raw_value.is_integer():
                    raise ValueError(f"{raw_value!r} is not an integer")
                value = int(raw_value)
            else:
                value = field_type(raw_value)
        except (ValueError, TypeError) as exc:
            raise ValueError(
                f"Invalid value for config field '{key}': expected {field_type.__name__}, got {raw_value!r}"
            ) from exc
    if key == "scale" and value not in SCALES:
        raise ValueError(f"Invalid value for config field 'scale': expected one of {', '.join(SCALES)}, got {raw_value!r}")
    return value


def load_ini_config(path: str) -> Dict[str, Any]:
    """
    Load and parse an INI-format config file.

    Only the ``[default]`` section is read. Supports ``=`` and ``:`` as
    key-value delimiters.

    Raises:
        ValueError: On parse errors or invalid field values.
    """
    parser = configparser.ConfigParser(allow_no_value=True, delimiters=("=", ":"))
    try:
        read_files = parser.read(path, encoding="utf-8")
    except configparser.Error as exc:
        raise ValueError(f"Invalid config file '{path}': {exc}") from exc

    if not read_files:
        raise ValueError(f"Config file '{path}' could not be read.")

    result: Dict[str, Any] = {}
    if not parser.has_section("default"):
        return result

    for key, raw_value in parser.items("default"):
        if key not in _CONFIG_FIELD_TYPES:
            logger.warning("Unknown config key '%s' in [default] section of '%s'; ignoring.", key, path)
            continue
        if raw_value is None:
            logger.warning("Config key '%s' has no value in '%s'; ignoring.", key, path)
            continue
        result[key] = _coerce_field(key, raw_value)
    return result


def load_yaml_config(path: str) -> Dict[str, Any]:
    """
    Load and parse a YAML-format config file.

    Uses ``yaml.safe_load`` and reads the ``default`` mapping.

    Raises:
        ValueError: On parse errors or invalid file content.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in config file '{path}': {exc}") from exc
    except OSError as exc:
        raise ValueError(f"Cannot read config file '{path}': {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file '{path}' must contain a YAML mapping at the top level, got {type(data).__name__}.")

    default_section = data.get("default") or {}
    if not isinstance(default_section, dict):
        raise ValueError(f"The 'default' section in '{path}' must be a YAML mapping.")

    result: Dict[str, Any] = {}
    for key, value in default_section.items():
        if key not in _CONFIG_FIELD_TYPES:
            logger.warning("Unknown config key '%s' in 'default' section of '%s'; ignoring.", key, path)
            continue
        if value is None:
            continue
        result[key] = _coerce_field(key, value)
    return result


def _is_yaml_file(path: str) -> bool:
    """
    Heuristically determine whether a config file uses YAML or INI format.

    INI files begin with a ``[section]`` header on the first non-blank,
    non-comment line. Anything else is treated as YAML.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            for line in fh:
                stripped = line.strip()
                if stripped and not stripped.startswith("#"):
                    return not stripped.startswith("[")
    except OSError as exc:
        logger.debug("Could not sniff config format of '%s': %s", path, exc)
    return False


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load persistent settings from a config file.

    Returns an empty dict if the config file does not exist.

    Raises:
        ValueError: If the file exists but cannot be parsed.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    if not os.path.exists(path):
        return {}

    if _is_yaml_file(path):
        logger.debug("Loading YAML config from '%s'.", path)
        return load_yaml_config(path)

    logger.debug("Loading INI config from '%s'.", path)
    return load_ini_config(path)
