# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Read-only access to the local cache of downloaded library archives.

The cache is a flat directory of ``.h5p`` archives named either
``MachineName.h5p`` (legacy, unversioned) or ``MachineName-Major.Minor.h5p``.
A file matches a requested name ``N`` when its name without the extension
equals ``N`` or starts with ``N-``.  Case-sensitive matches are tried first;
the case-insensitive pass is a fallback for caches populated with
inconsistent casing.  Among several matches the numerically highest
``(major, minor)`` wins; unversioned files rank below every versioned one.

Nothing in this module writes to the cache directory.
"""

from __future__ import annotations

import logging
import re
import zipfile
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from h5pbuild.cache.archive import (
    CacheError,
    library_directories,
    main_library_directory,
    parse_directory_name,
    read_library,
)
from h5pbuild.model.library import LibraryMetadata, LibraryVersion

logger = logging.getLogger(__name__)

# ###############
# Public Interface
# ###############

ARCHIVE_SUFFIX = ".h5p"


class CacheStatus(Enum):
    """Outcome of looking up one required library in the cache."""

    OK = "ok"
    CASE_MISMATCH = "case-mismatch"
    VERSION_MISMATCH = "version-mismatch"
    NOT_FOUND = "not-found"


@dataclass(frozen=True)
class CacheEntry:
    """Diagnostic record for one requested library.

    Attributes:
        requested_name: The machine name that was asked for.
        status: How the request was satisfied.
        matched_file_name: The cache file that matched, if any.
        resolved_version: ``"M.m"`` extracted from the file name, if it has one.
        expected_version: The version the caller declared, for version checks.
    """

    requested_name: str
    status: CacheStatus
    matched_file_name: str | None = None
    resolved_version: str | None = None
    expected_version: str | None = None

    @property
    def message(self) -> str:
        if self.status is CacheStatus.OK:
            return f"Found exact match: {self.matched_file_name}"
        if self.status is CacheStatus.CASE_MISMATCH:
            return f"Case mismatch: requested '{self.requested_name}' but found '{self.matched_file_name}'"
        if self.status is CacheStatus.VERSION_MISMATCH:
            return (
                f"Version mismatch: '{self.requested_name}' declared as {self.expected_version} "
                f"but cache holds {self.resolved_version} ({self.matched_file_name})"
            )
        return f"Library '{self.requested_name}' not found in cache"


class ComponentCache:
    """Lookup of cached library archives by machine name.

    Args:
        directory: The cache directory.  A missing directory reads as an
            empty cache.
        suffix: Archive file extension.
    """

    def __init__(self, directory: Path, suffix: str = ARCHIVE_SUFFIX) -> None:
        self._directory = Path(directory)
        self._suffix = suffix
        self._directory_index: dict[str, list[str]] = {}

    @property
    def directory(self) -> Path:
        return self._directory

    def list_cached_components(self) -> list[str]:
        """Return the sorted file names of every archive in the cache."""
        if not self._directory.is_dir():
            return []
        return sorted(
            p.name for p in self._directory.iterdir() if p.is_file() and p.name.lower().endswith(self._suffix.lower())
        )

    def extract_version(self, file_name: str) -> tuple[int, int] | None:
        """Return ``(major, minor)`` encoded in *file_name*, or ``None`` for legacy names."""
        match = _FILE_VERSION_RE.search(self._stem(file_name))
        if match is None:
            return None
        return int(match.group("major")), int(match.group("minor"))

    def find_exact(self, name: str, preferred_version: str | None = None) -> CacheEntry | None:
        """Find *name* with case-sensitive matching."""
        file_name = self._select(self._matching(name, fold_case=False), preferred_version)
        if file_name is None:
            return None
        return CacheEntry(
            requested_name=name,
            status=CacheStatus.OK,
            matched_file_name=file_name,
            resolved_version=self._version_string(file_name),
        )

    def find_case_insensitive(self, name: str, preferred_version: str | None = None) -> CacheEntry | None:
        """Find *name* ignoring case.

        The entry is reported as :attr:`CacheStatus.CASE_MISMATCH` unless the
        matched file also matches case-sensitively.
        """
        file_name = self._select(self._matching(name, fold_case=True), preferred_version)
        if file_name is None:
            return None
        exact = _matches(self._stem(file_name), name, fold_case=False)
        return CacheEntry(
            requested_name=name,
            status=CacheStatus.OK if exact else CacheStatus.CASE_MISMATCH,
            matched_file_name=file_name,
            resolved_version=self._version_string(file_name),
        )

    def find(self, name: str, preferred_version: str | None = None) -> CacheEntry | None:
        """Find *name* case-sensitively, falling back to a case-insensitive match."""
        entry = self.find_exact(name, preferred_version)
        if entry is not None:
            return entry
        entry = self.find_case_insensitive(name, preferred_version)
        if entry is not None and entry.status is CacheStatus.CASE_MISMATCH:
            logger.warning("Requested library '%s' matched cache file '%s' only ignoring case", name, entry.matched_file_name)
        return entry

    def archive_path(self, file_name: str) -> Path:
        return self._directory / file_name

    @contextmanager
    def open_archive(self, file_name: str) -> Iterator[zipfile.ZipFile]:
        """Open a cached archive for reading.

        Raises:
            CacheError: If the file is missing or is not a valid zip archive.
        """
        path = self.archive_path(file_name)
        try:
            archive = zipfile.ZipFile(path)
        except FileNotFoundError:
            raise CacheError(f"Cached archive not found: {path}") from None
        except (OSError, zipfile.BadZipFile) as exc:
            raise CacheError(f"Cannot open cached archive '{path}': {exc}") from exc
        with archive:
            yield archive

    def library_directories(self, file_name: str) -> list[str]:
        """Return the ``Name-M.m`` library directories bundled in *file_name*."""
        if file_name not in self._directory_index:
            with self.open_archive(file_name) as archive:
                self._directory_index[file_name] = library_directories(archive)
        return self._directory_index[file_name]

    def read_library_metadata(self, file_name: str, directory: str | None = None) -> LibraryMetadata:
        """Read the metadata of a library from a cached archive.

        Without *directory*, the archive's own library is used: the main
        library from ``h5p.json`` for content packages, otherwise the library
        directory whose machine name matches the file name.

        Raises:
            CacheError: If the archive or its descriptor cannot be read.
        """
        with self.open_archive(file_name) as archive:
            if directory is None:
                directory = main_library_directory(archive) or self._own_directory(file_name, archive)
            return read_library(archive, directory)

    def find_bundled(
        self,
        version: LibraryVersion,
        file_names: Iterable[str] | None = None,
    ) -> tuple[str, LibraryMetadata] | None:
        """Locate *version* bundled as a directory inside a cached archive.

        Hub packages ship the libraries they depend on next to their own.
        The archives in *file_names* are searched in order (every cached
        archive by default); the directory name is compared ignoring case.
        When scanning the whole cache, unreadable archives are skipped with a
        warning.

        Returns:
            ``(file_name, metadata)`` for the first archive that bundles the
            library, or ``None``.

        Raises:
            CacheError: If an archive named in *file_names* cannot be read.
        """
        wanted = version.directory_name.lower()
        scan_all = file_names is None
        for file_name in self.list_cached_components() if scan_all else file_names:
            try:
                directories = self.library_directories(file_name)
            except CacheError as exc:
                if not scan_all:
                    raise
                logger.warning("Skipping unreadable cache file '%s': %s", file_name, exc)
                continue
            for directory in directories:
                if directory.lower() == wanted:
                    return file_name, self.read_library_metadata(file_name, directory)
        return None

    # ################
    # Implementation
    # ################

    def _stem(self, file_name: str) -> str:
        if file_name.lower().endswith(self._suffix.lower()):
            return file_name[: -len(self._suffix)]
        return file_name

    def _matching(self, name: str, *, fold_case: bool) -> list[str]:
        return [f for f in self.list_cached_components() if _matches(self._stem(f), name, fold_case=fold_case)]

    def _select(self, file_names: list[str], preferred_version: str | None) -> str | None:
        if not file_names:
            return None
        if preferred_version is not None:
            wanted = _parse_version(preferred_version)
            for file_name in file_names:
                if wanted is not None and self.extract_version(file_name) == wanted:
                    return file_name
        return max(file_names, key=self._rank)

    def _rank(self, file_name: str) -> tuple[bool, tuple[int, int], str]:
        version = self.extract_version(file_name)
        return (version is not None, version or (0, 0), file_name)

    def _version_string(self, file_name: str) -> str | None:
        version = self.extract_version(file_name)
        return f"{version[0]}.{version[1]}" if version is not None else None

    def _own_directory(self, file_name: str, archive: zipfile.ZipFile) -> str:
        directories = library_directories(archive)
        stem = self._stem(file_name)
        name = _FILE_VERSION_RE.sub("", stem).lower()
        candidates = [
            (parsed, d)
            for d in directories
            if (parsed := parse_directory_name(d)) is not None and parsed.machine_name.lower() == name
        ]
        if candidates:
            return max(candidates, key=lambda c: (c[0].major_version, c[0].minor_version))[1]
        if len(directories) == 1:
            return directories[0]
        raise CacheError(f"Cannot determine which library directory of '{file_name}' holds '{stem}'")


_FILE_VERSION_RE = re.compile(r"-(?P<major>\d+)\.(?P<minor>\d+)(?:\.\d+)?$")


def _matches(stem: str, name: str, *, fold_case: bool) -> bool:
    if fold_case:
        stem, name = stem.lower(), name.lower()
    return stem == name or stem.startswith(name + "-")


def _parse_version(version: str) -> tuple[int, int] | None:
    parts = version.strip().split(".")
    if len(parts) < 2 or not parts[0].isdigit() or not parts[1].isdigit():
        return None
    return int(parts[0]), int(parts[1])
