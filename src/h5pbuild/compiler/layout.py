# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Structural layout libraries that content nesting requires implicitly.

Interactive Book content wraps every chapter in ``H5P.Column`` and every item
in ``H5P.Row`` / ``H5P.RowColumn`` containers.  No library declares these as
preloaded dependencies, so the assembler looks for them in the archives it
already bundles from and adds whatever it finds.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from h5pbuild.cache.archive import parse_directory_name
from h5pbuild.model.library import LibraryVersion

# ###############
# Public Interface
# ###############


@dataclass(frozen=True)
class LayoutLibrary:
    """A library that content structure depends on without a declared edge.

    Attributes:
        machine_name: The library's machine name.
        role: Where the content tree uses it.
    """

    machine_name: str
    role: str


KNOWN_LAYOUT_LIBRARIES: tuple[LayoutLibrary, ...] = (
    LayoutLibrary("H5P.Column", "chapter container"),
    LayoutLibrary("H5P.Row", "row wrapping each content item"),
    LayoutLibrary("H5P.RowColumn", "cell inside a row"),
)


@dataclass(frozen=True)
class DetectedLayout:
    """A layout library found in a bundled archive."""

    layout: LayoutLibrary
    version: LibraryVersion
    archive: str
    directory: str


def detect_layout_libraries(
    archive_directories: dict[str, Iterable[str]],
    table: Iterable[LayoutLibrary] = KNOWN_LAYOUT_LIBRARIES,
) -> list[DetectedLayout]:
    """Find every layout library present among the given archive directories.

    Args:
        archive_directories: ``{archive_file_name: [library directory names]}``.
        table: The layout libraries to look for.

    Returns:
        At most one :class:`DetectedLayout` per table entry, in table order.
        Directories whose machine name matches exactly win over ones that
        match only ignoring case; among those, the highest version wins.
    """
    candidates: list[tuple[str, str, LibraryVersion]] = []
    for archive, directories in archive_directories.items():
        for directory in directories:
            version = parse_directory_name(directory)
            if version is not None:
                candidates.append((archive, directory, version))

    detected: list[DetectedLayout] = []
    for layout in table:
        exact = [c for c in candidates if c[2].machine_name == layout.machine_name]
        folded = [c for c in candidates if c[2].machine_name.lower() == layout.machine_name.lower()]
        matches = exact or folded
        if not matches:
            continue
        archive, directory, version = max(matches, key=lambda c: (c[2].major_version, c[2].minor_version))
        detected.append(DetectedLayout(layout=layout, version=version, archive=archive, directory=directory))
    return detected
