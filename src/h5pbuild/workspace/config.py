# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Data model and YAML parser for the ``.h5pbuild.yaml`` build configuration file."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path

import yaml

# ###############
# Public Interface
# ###############

CONFIG_FILE_NAME = ".h5pbuild.yaml"


class ConfigError(Exception):
    """Raised when a build configuration file is invalid or cannot be loaded."""


@dataclass
class BuildConfig:
    """The parsed build configuration.

    Attributes:
        cache_directory: Directory holding cached ``.h5p`` library archives.
        hub_url: Root of the H5P Hub API.
        hub_timeout: Hub request timeout in seconds.
        main_library: Machine name of the package's main library.
        language: Default package language code.
        offline: Never contact the hub.
        strict: Treat content validation errors and cache mismatches as fatal.
    """

    cache_directory: str = "content-type-cache"
    hub_url: str = "https://api.h5p.org/v1/"
    hub_timeout: float = 30
    main_library: str = "H5P.InteractiveBook"
    language: str = "en"
    offline: bool = False
    strict: bool = False


def load_build_config(path: Path) -> BuildConfig:
    """Load and parse a build configuration file.

    Args:
        path: Path to the ``.h5pbuild.yaml`` file.

    Returns:
        A BuildConfig with defaults for every key the file omits.

    Raises:
        ConfigError: If the file cannot be read or the configuration is invalid.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Build config file not found: {path}") from None
    except OSError as exc:
        raise ConfigError(f"Cannot read build config file: {exc}") from exc

    return _parse_build_config(text, source_label=str(path))


# ################
# Implementation
# ################

_KEYS = {f.name.replace("_", "-"): f.name for f in fields(BuildConfig)}


def _parse_build_config(text: str, source_label: str = "<string>") -> BuildConfig:
    """Parse build config YAML text into a BuildConfig.

    An empty document yields the defaults.

    Raises:
        ConfigError: If the YAML is invalid, a key is unknown, or a value has the wrong type.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {source_label}: {exc}") from exc

    if data is None:
        return BuildConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"{source_label}: build config must be a YAML mapping")

    unknown = sorted(str(key) for key in data if key not in _KEYS)
    if unknown:
        raise ConfigError(f"{source_label}: unknown key(s): {', '.join(unknown)}")

    config = BuildConfig()
    for key in ("cache-directory", "hub-url", "main-library", "language"):
        if key in data:
            setattr(config, _KEYS[key], _require_string(data, key, source_label))
    for key in ("offline", "strict"):
        if key in data:
            setattr(config, _KEYS[key], _require_bool(data, key, source_label))
    if "hub-timeout" in data:
        config.hub_timeout = _require_positive_number(data, "hub-timeout", source_label)
    return config


def _require_string(mapping: dict[str, object], key: str, source_label: str) -> str:
    value = mapping[key]
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{source_label}: '{key}' must be a non-empty string")
    return value


def _require_bool(mapping: dict[str, object], key: str, source_label: str) -> bool:
    value = mapping[key]
    if not isinstance(value, bool):
        raise ConfigError(f"{source_label}: '{key}' must be true or false")
    return value


def _require_positive_number(mapping: dict[str, object], key: str, source_label: str) -> float:
    value = mapping[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{source_label}: '{key}' must be a positive number")
    return value
