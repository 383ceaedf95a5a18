# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Pre-flight comparison of required libraries against the cache contents.

This pass only reports.  It never touches the cache or an output package;
callers decide whether a case or version mismatch should stop a build.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from h5pbuild.cache.archive import LIBRARY_FILE, CacheError
from h5pbuild.cache.store import CacheEntry, CacheStatus, ComponentCache

logger = logging.getLogger(__name__)

# ###############
# Public Interface
# ###############


@dataclass(frozen=True)
class VersionCheck:
    """Result of comparing a declared version with the cached one.

    ``match`` is ``True`` for unversioned (legacy) cache files, which carry
    no version to compare against.
    """

    match: bool
    cache_version: str | None = None
    cache_file: str | None = None


@dataclass(frozen=True)
class CacheSummary:
    """Counts of cache diagnostics by status."""

    total: int
    ok: int
    case_mismatch: int
    version_mismatch: int
    not_found: int

    @property
    def has_issues(self) -> bool:
        """True when a case or version mismatch was found.

        Missing libraries are not counted as issues here because they may
        still be fetched later.
        """
        return self.case_mismatch > 0 or self.version_mismatch > 0


class CacheValidator:
    """Diffs a list of required library names against a :class:`ComponentCache`."""

    def __init__(self, cache: ComponentCache) -> None:
        self._cache = cache

    def validate_all(
        self,
        required_names: Iterable[str],
        declared_versions: Mapping[str, str] | None = None,
    ) -> list[CacheEntry]:
        """Classify every required library as found, case-mismatched, or missing.

        Args:
            required_names: Machine names the build needs.
            declared_versions: Optional ``{name: "M.m"}`` expectations.  A found
                library whose cached version differs is reported as
                :attr:`CacheStatus.VERSION_MISMATCH`.

        Returns:
            One :class:`CacheEntry` per required name, in the given order.
        """
        names = list(required_names)
        logger.debug(
            "Validating %d required libraries against %d cached archives",
            len(names),
            len(self._cache.list_cached_components()),
        )
        entries: list[CacheEntry] = []
        for name in names:
            entry = self._classify(name)
            expected = (declared_versions or {}).get(name)
            if expected is not None and entry.matched_file_name is not None:
                entry = self._compare_version(entry, expected)
            _log_entry(entry)
            entries.append(entry)
        return entries

    def check_version_mismatch(self, name: str, declared_version: str) -> VersionCheck:
        """Compare *declared_version* (``"M.m"`` or ``"M.m.p"``) with the cached version of *name*.

        Only major and minor take part in the comparison.
        """
        entry = self._cache.find(name)
        if entry is None:
            return VersionCheck(match=False)
        if entry.resolved_version is None:
            return VersionCheck(match=True, cache_file=entry.matched_file_name)
        return VersionCheck(
            match=entry.resolved_version == _major_minor(declared_version),
            cache_version=entry.resolved_version,
            cache_file=entry.matched_file_name,
        )

    def actual_library_version(self, name: str) -> str | None:
        """Return the ``M.m.p`` version recorded in the ``library.json`` of the cached archive for *name*.

        File names can lie; the descriptor inside the archive cannot.  Returns
        ``None`` when nothing matches or the archive cannot be read.
        """
        entry = self._cache.find(name)
        if entry is None or entry.matched_file_name is None:
            return None
        try:
            metadata = self._cache.read_library_metadata(entry.matched_file_name)
        except CacheError as exc:
            logger.warning("Cannot read %s from '%s': %s", LIBRARY_FILE, entry.matched_file_name, exc)
            return None
        return metadata.full_version

    @staticmethod
    def summarize(entries: Iterable[CacheEntry]) -> CacheSummary:
        entries = list(entries)
        counts = {status: 0 for status in CacheStatus}
        for entry in entries:
            counts[entry.status] += 1
        return CacheSummary(
            total=len(entries),
            ok=counts[CacheStatus.OK],
            case_mismatch=counts[CacheStatus.CASE_MISMATCH],
            version_mismatch=counts[CacheStatus.VERSION_MISMATCH],
            not_found=counts[CacheStatus.NOT_FOUND],
        )

    # ################
    # Implementation
    # ################

    def _classify(self, name: str) -> CacheEntry:
        entry = self._cache.find_exact(name)
        if entry is not None:
            return entry
        entry = self._cache.find_case_insensitive(name)
        if entry is not None:
            return entry
        return CacheEntry(requested_name=name, status=CacheStatus.NOT_FOUND)

    def _compare_version(self, entry: CacheEntry, expected: str) -> CacheEntry:
        expected = _major_minor(expected)
        if entry.resolved_version is None or entry.resolved_version == expected:
            return entry
        return CacheEntry(
            requested_name=entry.requested_name,
            status=CacheStatus.VERSION_MISMATCH,
            matched_file_name=entry.matched_file_name,
            resolved_version=entry.resolved_version,
            expected_version=expected,
        )


def _major_minor(version: str) -> str:
    """Reduce ``"1.16.14"`` to ``"1.16"``; other strings are returned stripped."""
    parts = version.strip().split(".")
    if len(parts) >= 2 and parts[0].isdigit() and parts[1].isdigit():
        return f"{int(parts[0])}.{int(parts[1])}"
    return version.strip()


def _log_entry(entry: CacheEntry) -> None:
    if entry.status is CacheStatus.OK:
        logger.info("%s: %s", entry.requested_name, entry.message)
    elif entry.status is CacheStatus.NOT_FOUND:
        logger.info("%s: %s (may still be fetched)", entry.requested_name, entry.message)
    else:
        logger.warning("%s: %s", entry.requested_name, entry.message)
