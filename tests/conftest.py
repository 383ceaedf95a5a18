# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures that build small .h5p archives in a temporary cache directory."""

from __future__ import annotations

import json
import zipfile
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pytest

# ###############
# Helpers
# ###############


def _library_def(
    name: str,
    major: int = 1,
    minor: int = 0,
    *,
    patch: int = 0,
    dependencies: Iterable[tuple[str, int, int]] = (),
    semantics: Any = None,
    files: dict[str, bytes] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Describe one library directory: its library.json, semantics, and asset files."""
    descriptor = {
        "machineName": name,
        "title": name,
        "majorVersion": major,
        "minorVersion": minor,
        "patchVersion": patch,
        "runnable": 1,
        "preloadedJs": [{"path": "scripts/main.js"}],
        "preloadedDependencies": [
            {"machineName": dep_name, "majorVersion": dep_major, "minorVersion": dep_minor}
            for dep_name, dep_major, dep_minor in dependencies
        ],
        **extra,
    }
    return {
        "library": descriptor,
        "semantics": semantics,
        "files": files if files is not None else {"scripts/main.js": f"/* {name} */".encode()},
    }


def _directory(definition: dict[str, Any]) -> str:
    lib = definition["library"]
    return f"{lib['machineName']}-{lib['majorVersion']}.{lib['minorVersion']}"


def _write_h5p(
    path: Path,
    libraries: Iterable[dict[str, Any]],
    *,
    main: str | None = None,
    content: Any = None,
    with_directory_entries: bool = False,
) -> Path:
    """Write a zip with one directory per library, plus h5p.json when *main* is given."""
    libraries = list(libraries)
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        if main is not None:
            manifest = {
                "title": main,
                "language": "en",
                "mainLibrary": main,
                "embedTypes": ["div"],
                "preloadedDependencies": [
                    {
                        "machineName": d["library"]["machineName"],
                        "majorVersion": d["library"]["majorVersion"],
                        "minorVersion": d["library"]["minorVersion"],
                    }
                    for d in libraries
                ],
            }
            archive.writestr("h5p.json", json.dumps(manifest))
            archive.writestr("content/content.json", json.dumps(content if content is not None else {}))
        for definition in libraries:
            directory = _directory(definition)
            if with_directory_entries:
                archive.writestr(f"{directory}/", b"")
            archive.writestr(f"{directory}/library.json", json.dumps(definition["library"]))
            if definition["semantics"] is not None:
                archive.writestr(f"{directory}/semantics.json", json.dumps(definition["semantics"]))
            for relative, data in definition["files"].items():
                archive.writestr(f"{directory}/{relative}", data)
    return path


# ###############
# Fixtures
# ###############


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """An empty cache directory."""
    directory = tmp_path / "cache"
    directory.mkdir()
    return directory


@pytest.fixture
def library_def() -> Callable[..., dict[str, Any]]:
    """Factory for library definitions: ``library_def("H5P.Foo", 1, 2, dependencies=[...])``."""
    return _library_def


@pytest.fixture
def write_h5p(cache_dir: Path) -> Callable[..., Path]:
    """Factory writing an archive into the cache: ``write_h5p("H5P.Foo-1.2.h5p", [defs], main="H5P.Foo")``."""

    def _write(file_name: str, libraries: Iterable[dict[str, Any]], **kwargs: Any) -> Path:
        return _write_h5p(cache_dir / file_name, libraries, **kwargs)

    return _write


@pytest.fixture
def h5p_bytes(tmp_path: Path) -> Callable[..., bytes]:
    """Factory returning archive bytes instead of writing into the cache."""

    def _bytes(libraries: Iterable[dict[str, Any]], **kwargs: Any) -> bytes:
        return _write_h5p(tmp_path / "scratch.h5p", libraries, **kwargs).read_bytes()

    return _bytes
