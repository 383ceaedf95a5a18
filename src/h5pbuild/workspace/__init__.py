# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Build configuration for h5pbuild."""

from h5pbuild.workspace.config import CONFIG_FILE_NAME, BuildConfig, ConfigError, load_build_config

__all__ = [
    "BuildConfig",
    "CONFIG_FILE_NAME",
    "ConfigError",
    "load_build_config",
]
