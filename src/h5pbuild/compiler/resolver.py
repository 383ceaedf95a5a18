# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Transitive dependency resolution for H5P libraries.

Starting from a root library, every ``preloadedDependencies`` edge is followed
until the closure is complete.  Each library is looked up in this order:

1. its own archive in the cache (exact ``major.minor`` preferred);
2. a ``Name-M.m`` directory bundled inside an archive already opened during
   this resolution, then inside any cached archive;
3. a compatible version from its own archive (same major, higher minor);
4. the :class:`LibraryFetcher` collaborator, when one is configured.

A visited set keyed by ``(machine_name, major, minor)`` guarantees
termination even when descriptors declare a cycle.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Protocol

from h5pbuild.cache.archive import CacheError
from h5pbuild.cache.store import ComponentCache
from h5pbuild.model.library import LibraryMetadata, LibraryVersion

logger = logging.getLogger(__name__)

# ###############
# Public Interface
# ###############


class ResolutionError(Exception):
    """Raised when a required library cannot be found anywhere."""


@dataclass(frozen=True)
class FetchedLibrary:
    """A library obtained from a remote source.

    Attributes:
        metadata: The library's descriptor.
        archive: The raw archive bytes.
        file_name: Name under which the archive is now available in the cache,
            if the fetcher stored it there.
    """

    metadata: LibraryMetadata
    archive: bytes
    file_name: str | None = None


class LibraryFetcher(Protocol):
    """Remote source consulted when the cache cannot supply a library."""

    def fetch(self, machine_name: str) -> FetchedLibrary | None:
        """Return the library, or ``None`` if the source does not know it."""
        ...


@dataclass(frozen=True)
class ResolvedLibrary:
    """A member of a dependency closure and the cache archive it was read from."""

    metadata: LibraryMetadata
    archive: str | None = None

    @property
    def version(self) -> LibraryVersion:
        return self.metadata.version


class DependencyClosure:
    """Deduplicated set of libraries keyed by ``(machine_name, major, minor)``.

    Iteration is sorted by machine name, then version, so packages built from
    the same closure are reproducible.
    """

    def __init__(self, root: LibraryVersion | None = None) -> None:
        self.root = root
        self._libraries: dict[tuple[str, int, int], ResolvedLibrary] = {}

    def add(self, library: ResolvedLibrary) -> bool:
        """Add *library*; return ``False`` if its identity is already present."""
        key = library.version.key
        if key in self._libraries:
            return False
        self._libraries[key] = library
        return True

    def get(self, machine_name: str) -> ResolvedLibrary | None:
        """Return the highest version of *machine_name* in the closure."""
        matches = [lib for lib in self._libraries.values() if lib.metadata.machine_name == machine_name]
        if not matches:
            return None
        return max(matches, key=lambda lib: (lib.metadata.major_version, lib.metadata.minor_version))

    def versions(self) -> list[LibraryVersion]:
        return [lib.version for lib in self]

    def archives(self) -> list[str]:
        """Return the distinct cache archives members were read from, in insertion order."""
        seen: dict[str, None] = {}
        for lib in self._libraries.values():
            if lib.archive is not None:
                seen.setdefault(lib.archive, None)
        return list(seen)

    def merge(self, other: DependencyClosure) -> None:
        for library in other:
            self.add(library)
        if self.root is None:
            self.root = other.root

    def __contains__(self, item: object) -> bool:
        if isinstance(item, LibraryVersion):
            return item.key in self._libraries
        return item in self._libraries

    def __len__(self) -> int:
        return len(self._libraries)

    def __iter__(self) -> Iterator[ResolvedLibrary]:
        return iter(sorted(self._libraries.values(), key=lambda lib: lib.version.key))


class DependencyResolver:
    """Expands a root library into its complete dependency closure.

    Args:
        cache: The component cache consulted first for every library.
        fetcher: Optional remote source for libraries the cache lacks.
        include_editor_dependencies: Also follow ``editorDependencies`` edges.
    """

    def __init__(
        self,
        cache: ComponentCache,
        fetcher: LibraryFetcher | None = None,
        *,
        include_editor_dependencies: bool = False,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._include_editor_dependencies = include_editor_dependencies

    def resolve(self, root_name: str, preferred_version: str | None = None) -> DependencyClosure:
        """Return the closure of *root_name*: the root plus everything it reaches.

        Raises:
            ResolutionError: If the root or any transitive dependency cannot be found.
        """
        root = self._load_root(root_name, preferred_version)
        closure = DependencyClosure(root=root.version)
        closure.add(root)
        visited: set[tuple[str, int, int]] = {root.version.key}
        stack = [root]
        while stack:
            current = stack.pop()
            for dependency in self._edges(current.metadata):
                if dependency.key in visited:
                    continue
                visited.add(dependency.key)
                resolved = self._load_dependency(dependency, current.metadata, closure)
                if closure.add(resolved):
                    logger.debug("Resolved %s (required by %s)", resolved.version, current.version)
                    stack.append(resolved)
        logger.info("Resolved %s to %d libraries", root.version, len(closure))
        return closure

    def resolve_all(self, root_names: Iterable[str]) -> DependencyClosure:
        """Return the union of the closures of every name in *root_names*.

        The first name becomes the closure's root.
        """
        combined = DependencyClosure()
        for name in root_names:
            combined.merge(self.resolve(name))
        return combined

    # ################
    # Implementation
    # ################

    def _edges(self, metadata: LibraryMetadata) -> list[LibraryVersion]:
        edges = list(metadata.preloaded_dependencies)
        if self._include_editor_dependencies:
            edges.extend(metadata.editor_dependencies)
        return edges

    def _read(self, file_name: str, directory: str | None = None) -> ResolvedLibrary:
        try:
            return ResolvedLibrary(self._cache.read_library_metadata(file_name, directory), file_name)
        except CacheError as exc:
            raise ResolutionError(f"Cannot read library from cached archive '{file_name}': {exc}") from exc

    def _load_root(self, name: str, preferred_version: str | None) -> ResolvedLibrary:
        entry = self._cache.find(name, preferred_version)
        if entry is not None and entry.matched_file_name is not None:
            logger.debug("Using cached library package %s", entry.matched_file_name)
            return self._read(entry.matched_file_name)
        fetched = self._fetch(name)
        if fetched is not None:
            return fetched
        raise ResolutionError(f"Library '{name}' is not in the cache and no remote source could supply it")

    def _load_dependency(
        self,
        dependency: LibraryVersion,
        parent: LibraryMetadata,
        closure: DependencyClosure,
    ) -> ResolvedLibrary:
        compatible: ResolvedLibrary | None = None

        entry = self._cache.find(dependency.machine_name, dependency.version)
        if entry is not None and entry.matched_file_name is not None:
            own = self._read(entry.matched_file_name)
            if own.version.key == dependency.key:
                return own
            if _is_compatible(own.version, dependency):
                compatible = own

        try:
            bundled = self._cache.find_bundled(dependency, closure.archives()) or self._cache.find_bundled(dependency)
        except CacheError as exc:
            raise ResolutionError(f"Cannot search cached archives for {dependency}: {exc}") from exc
        if bundled is not None:
            file_name, metadata = bundled
            logger.debug("Found %s bundled in %s", dependency, file_name)
            return ResolvedLibrary(metadata, file_name)

        if compatible is not None:
            logger.warning(
                "%s requires %s; using compatible cached version %s",
                parent.machine_name,
                dependency,
                compatible.version,
            )
            return compatible

        fetched = self._fetch(dependency.machine_name)
        if fetched is not None:
            if fetched.version.key == dependency.key or _is_compatible(fetched.version, dependency):
                return fetched
            raise ResolutionError(
                f"{parent.machine_name} requires {dependency} but the remote source supplied {fetched.version}"
            )

        raise ResolutionError(
            f"Cannot resolve {dependency} required by {parent.machine_name} {parent.version.version}: "
            "not in the cache, not bundled in any cached package, and no remote source could supply it"
        )

    def _fetch(self, name: str) -> ResolvedLibrary | None:
        if self._fetcher is None:
            return None
        logger.info("Fetching %s from the remote source", name)
        fetched = self._fetcher.fetch(name)
        if fetched is None:
            return None
        return ResolvedLibrary(fetched.metadata, fetched.file_name)


def _is_compatible(candidate: LibraryVersion, wanted: LibraryVersion) -> bool:
    """Same library, same major version, and at least the wanted minor version."""
    return (
        candidate.machine_name.lower() == wanted.machine_name.lower()
        and candidate.major_version == wanted.major_version
        and candidate.minor_version >= wanted.minor_version
    )
