# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Local cache of library archives: lookup, descriptor reading, and diagnostics."""

from h5pbuild.cache.archive import CacheError
from h5pbuild.cache.diagnostics import CacheSummary, CacheValidator, VersionCheck
from h5pbuild.cache.store import ARCHIVE_SUFFIX, CacheEntry, CacheStatus, ComponentCache

__all__ = [
    "ARCHIVE_SUFFIX",
    "CacheEntry",
    "CacheError",
    "CacheStatus",
    "CacheSummary",
    "CacheValidator",
    "ComponentCache",
    "VersionCheck",
]
