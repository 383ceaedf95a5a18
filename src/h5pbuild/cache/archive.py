# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Reading library descriptors out of opened .h5p archives."""

from __future__ import annotations

import json
import re
import zipfile
from typing import Any

from pydantic import ValidationError

from h5pbuild.model.library import LibraryMetadata, LibraryVersion

# ###############
# Public Interface
# ###############

MANIFEST_FILE = "h5p.json"
LIBRARY_FILE = "library.json"
SEMANTICS_FILE = "semantics.json"

LIBRARY_DIRECTORY_RE = re.compile(r"^(?P<name>.+)-(?P<major>\d+)\.(?P<minor>\d+)$")


class CacheError(Exception):
    """Raised when a cached archive cannot be read or is missing its descriptor."""


def library_directories(archive: zipfile.ZipFile) -> list[str]:
    """Return the sorted ``Name-M.m`` directories that hold a ``library.json``."""
    directories: set[str] = set()
    for name in archive.namelist():
        head, sep, tail = name.partition("/")
        if sep and tail == LIBRARY_FILE and LIBRARY_DIRECTORY_RE.match(head):
            directories.add(head)
    return sorted(directories)


def parse_directory_name(directory: str) -> LibraryVersion | None:
    """Parse ``"H5P.Column-1.18"`` into a LibraryVersion, or ``None`` if it does not match."""
    match = LIBRARY_DIRECTORY_RE.match(directory.rstrip("/"))
    if match is None:
        return None
    return LibraryVersion(
        machine_name=match.group("name"),
        major_version=int(match.group("major")),
        minor_version=int(match.group("minor")),
    )


def main_library_directory(archive: zipfile.ZipFile) -> str | None:
    """Return the directory of the archive's main library as declared by ``h5p.json``.

    Returns ``None`` for library-only archives that carry no ``h5p.json``.

    Raises:
        CacheError: If ``h5p.json`` names a main library it does not list
            among its preloaded dependencies.
    """
    if MANIFEST_FILE not in archive.namelist():
        return None
    manifest = read_json(archive, MANIFEST_FILE)
    if not isinstance(manifest, dict):
        raise CacheError(f"'{MANIFEST_FILE}' must contain a JSON object")
    main_library = manifest.get("mainLibrary")
    dependencies = manifest.get("preloadedDependencies") or []
    if not isinstance(dependencies, list):
        raise CacheError(f"'preloadedDependencies' in {MANIFEST_FILE} must be a list")
    for raw in dependencies:
        if not isinstance(raw, dict):
            raise CacheError(f"Invalid dependency entry in {MANIFEST_FILE}: {raw!r}")
        if raw.get("machineName") == main_library:
            try:
                return LibraryVersion.model_validate(raw).directory_name
            except ValidationError as exc:
                raise CacheError(f"Invalid dependency entry for '{main_library}' in {MANIFEST_FILE}: {exc}") from exc
    raise CacheError(f"Main library '{main_library}' is not listed in the preloaded dependencies of {MANIFEST_FILE}")


def read_library(archive: zipfile.ZipFile, directory: str) -> LibraryMetadata:
    """Read ``library.json`` (and ``semantics.json`` when present) from *directory*.

    Raises:
        CacheError: If the descriptor is missing or invalid.
    """
    names = set(archive.namelist())
    library_path = f"{directory}/{LIBRARY_FILE}"
    if library_path not in names:
        raise CacheError(f"Archive has no '{library_path}'")
    data = read_json(archive, library_path)
    if not isinstance(data, dict):
        raise CacheError(f"'{library_path}' must contain a JSON object")

    semantics_path = f"{directory}/{SEMANTICS_FILE}"
    if semantics_path in names:
        data = {**data, "semantics": read_json(archive, semantics_path)}
    data["libraryDirectory"] = directory

    try:
        return LibraryMetadata.model_validate(data)
    except ValidationError as exc:
        raise CacheError(f"Invalid '{library_path}': {exc}") from exc


def read_json(archive: zipfile.ZipFile, name: str) -> Any:
    try:
        return json.loads(archive.read(name).decode("utf-8"))
    except KeyError:
        raise CacheError(f"Archive has no '{name}'") from None
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CacheError(f"Invalid JSON in '{name}': {exc}") from exc
