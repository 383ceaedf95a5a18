# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Media files embedded under ``content/`` in a package."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

# ###############
# Public Interface
# ###############

# Directory used for generated names of each media kind.
MEDIA_DIRECTORIES: dict[str, str] = {
    "image": "images",
    "audio": "audios",
    "video": "videos",
    "file": "files",
}


@dataclass(frozen=True)
class MediaFile:
    """One file to embed, at *path* relative to the package's ``content/`` directory."""

    path: str
    data: bytes


@dataclass
class MediaCollection:
    """Ordered media files plus the per-kind counters used to name new ones.

    Generated names are ``images/0.png``, ``images/1.jpg``, ``audios/0.mp3``
    and so on; the counters belong to this collection, so independent builds
    never share numbering.
    """

    files: list[MediaFile] = field(default_factory=list)
    counters: dict[str, int] = field(default_factory=dict)

    def add(self, path: str, data: bytes) -> MediaFile:
        """Add a file at an explicit relative path.

        Raises:
            ValueError: If *path* is absolute, empty, escapes ``content/``,
                or is already taken.
        """
        normalized = normalize_media_path(path)
        if any(f.path == normalized for f in self.files):
            raise ValueError(f"Duplicate media path '{normalized}'")
        media = MediaFile(path=normalized, data=data)
        self.files.append(media)
        return media

    def add_generated(self, kind: str, data: bytes, extension: str) -> MediaFile:
        """Add a file under the next sequential name for *kind* (``image``, ``audio``, ...)."""
        if kind not in MEDIA_DIRECTORIES:
            raise ValueError(f"Unknown media kind '{kind}'; expected one of {sorted(MEDIA_DIRECTORIES)}")
        index = self.counters.get(kind, 0)
        self.counters[kind] = index + 1
        suffix = extension if extension.startswith(".") else f".{extension}"
        return self.add(f"{MEDIA_DIRECTORIES[kind]}/{index}{suffix.lower()}", data)

    @classmethod
    def from_directory(cls, directory: Path) -> MediaCollection:
        """Collect every file below *directory*, keeping relative paths."""
        collection = cls()
        for path in sorted(p for p in directory.rglob("*") if p.is_file()):
            collection.add(path.relative_to(directory).as_posix(), path.read_bytes())
        return collection

    def __iter__(self) -> Iterator[MediaFile]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)


def normalize_media_path(path: str) -> str:
    """Return *path* as a clean relative path below ``content/``.

    Raises:
        ValueError: If the path is empty, absolute, or leaves the directory.
    """
    pure = PurePosixPath(path.replace("\\", "/"))
    if not path or pure.is_absolute() or ".." in pure.parts or str(pure) == ".":
        raise ValueError(f"Invalid media path '{path}': must be a relative path inside content/")
    return str(pure)
