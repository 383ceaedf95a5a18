# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Assembly of the final .h5p package.

Every call to :meth:`PackageAssembler.assemble` runs the same self-contained
pipeline: detect implicit layout libraries, build the manifest, copy each
library's directory out of the cache, embed media and content.  A library
that cannot be located aborts the whole build; nothing partially assembled
is returned.

The rendered zip never contains directory entries, which the H5P runtime
rejects.
"""

from __future__ import annotations

import io
import json
import logging
import zipfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from h5pbuild.cache.archive import MANIFEST_FILE, CacheError
from h5pbuild.cache.store import ComponentCache
from h5pbuild.compiler.layout import (
    KNOWN_LAYOUT_LIBRARIES,
    DetectedLayout,
    LayoutLibrary,
    detect_layout_libraries,
)
from h5pbuild.compiler.media import MediaFile, normalize_media_path
from h5pbuild.compiler.resolver import DependencyClosure
from h5pbuild.model.library import LibraryVersion

logger = logging.getLogger(__name__)

# ###############
# Public Interface
# ###############

CONTENT_DIRECTORY = "content"
CONTENT_FILE = f"{CONTENT_DIRECTORY}/content.json"

# Fixed timestamp for every entry so identical inputs produce identical bytes.
_ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)


class AssemblyError(Exception):
    """Raised when a package cannot be assembled completely."""


class PackageManifest(BaseModel):
    """The package's ``h5p.json``."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    language: str
    main_library: str = Field(alias="mainLibrary")
    embed_types: list[str] = Field(default_factory=lambda: ["div"], alias="embedTypes")
    license: str = "U"
    preloaded_dependencies: list[LibraryVersion] = Field(default_factory=list, alias="preloadedDependencies")

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True), indent=2, ensure_ascii=False)


@dataclass
class AssembledPackage:
    """An assembled package held in memory.

    Attributes:
        manifest: The generated ``h5p.json`` model.
        entries: Archive member name to file content, in write order.
            Only files; never directories.
        libraries: Every bundled library, including detected layout ones.
    """

    manifest: PackageManifest
    entries: dict[str, bytes] = field(default_factory=dict)
    libraries: list[LibraryVersion] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        """Render the package as a DEFLATE-compressed zip with file entries only."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            for name, data in self.entries.items():
                if name.endswith("/"):
                    continue
                info = zipfile.ZipInfo(name, date_time=_ZIP_TIMESTAMP)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                archive.writestr(info, data)
        return buffer.getvalue()

    def write(self, path: Path) -> None:
        """Write the rendered package to *path*, creating parent directories as needed."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.to_bytes())
        logger.info("Saved package to %s", path)


class PackageAssembler:
    """Builds a package from a resolved closure using archives in the cache.

    Args:
        cache: Source of every library's files.
        layout_libraries: Libraries to add implicitly when found in the
            bundled archives.
    """

    def __init__(
        self,
        cache: ComponentCache,
        layout_libraries: Iterable[LayoutLibrary] = KNOWN_LAYOUT_LIBRARIES,
    ) -> None:
        self._cache = cache
        self._layout_libraries = tuple(layout_libraries)

    def assemble(
        self,
        content: Any,
        closure: DependencyClosure,
        media_files: Iterable[MediaFile],
        title: str,
        language: str,
        *,
        main_library: str | None = None,
        license: str = "U",
    ) -> AssembledPackage:
        """Assemble a package.

        Args:
            content: The content tree, embedded verbatim as ``content/content.json``.
            closure: Every library to bundle.
            media_files: Files placed under ``content/`` at their relative paths.
            title: Package title for ``h5p.json``.
            language: Language code for ``h5p.json``.
            main_library: The package's main library; defaults to the closure root.
            license: License code for ``h5p.json``.

        Raises:
            AssemblyError: If the closure is empty, a library cannot be found in
                the cache, or content and media cannot be embedded.
        """
        if len(closure) == 0:
            raise AssemblyError("Cannot assemble a package from an empty dependency closure")
        if main_library is None:
            if closure.root is None:
                raise AssemblyError("No main library given and the dependency closure has no root")
            main_library = closure.root.machine_name

        bundle: dict[tuple[str, int, int], str | None] = {lib.version.key: lib.archive for lib in closure}
        versions: dict[tuple[str, int, int], LibraryVersion] = {lib.version.key: lib.version for lib in closure}
        search_order = self._source_archives(closure)

        for detected in self._detect_layouts(search_order):
            bundled_names = {key[0].lower() for key in bundle}
            if detected.version.machine_name.lower() in bundled_names:
                continue
            logger.info("Adding layout library %s (%s) from %s", detected.version, detected.layout.role, detected.archive)
            bundle[detected.version.key] = detected.archive
            versions[detected.version.key] = detected.version

        libraries = [versions[key] for key in sorted(versions)]
        manifest = PackageManifest(
            title=title,
            language=language,
            main_library=main_library,
            license=license,
            preloaded_dependencies=libraries,
        )
        package = AssembledPackage(manifest=manifest, libraries=libraries)
        package.entries[MANIFEST_FILE] = manifest.to_json().encode("utf-8")

        for version in libraries:
            self._bundle_library(package, version, bundle[version.key], search_order)

        for media in media_files:
            try:
                path = normalize_media_path(media.path)
            except ValueError as exc:
                raise AssemblyError(str(exc)) from exc
            name = f"{CONTENT_DIRECTORY}/{path}"
            if name == CONTENT_FILE or name in package.entries:
                raise AssemblyError(f"Media file '{media.path}' collides with another package entry")
            package.entries[name] = media.data

        try:
            package.entries[CONTENT_FILE] = json.dumps(content, indent=2, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise AssemblyError(f"Content cannot be serialized to JSON: {exc}") from exc

        logger.info("Assembled package with %d libraries and %d entries", len(libraries), len(package.entries))
        return package

    # ################
    # Implementation
    # ################

    def _source_archives(self, closure: DependencyClosure) -> list[str]:
        """Archives the closure was read from, plus each member's own cached archive."""
        archives = closure.archives()
        for lib in closure:
            entry = self._cache.find(lib.metadata.machine_name, lib.version.version)
            if entry is not None and entry.matched_file_name not in archives:
                archives.append(entry.matched_file_name)
        return archives

    def _directories(self, archive: str) -> list[str]:
        try:
            return self._cache.library_directories(archive)
        except CacheError as exc:
            raise AssemblyError(f"Cannot read cached archive '{archive}': {exc}") from exc

    def _detect_layouts(self, archives: list[str]) -> list[DetectedLayout]:
        return detect_layout_libraries({a: self._directories(a) for a in archives}, self._layout_libraries)

    def _locate(self, version: LibraryVersion, hint: str | None, search_order: list[str]) -> tuple[str, str]:
        """Return ``(archive, directory)`` holding *version*, matching the directory ignoring case."""
        candidates: list[str] = []
        entry = self._cache.find(version.machine_name, version.version)
        if entry is not None and entry.matched_file_name is not None:
            candidates.append(entry.matched_file_name)
        if hint is not None:
            candidates.append(hint)
        candidates.extend(search_order)

        wanted = version.directory_name.lower()
        for archive in dict.fromkeys(candidates):
            for directory in self._directories(archive):
                if directory.lower() == wanted:
                    return archive, directory
        raise AssemblyError(
            f"Library {version} not found in the cache: no archive contains '{version.directory_name}/' "
            f"(searched {', '.join(dict.fromkeys(candidates)) or 'nothing'})"
        )

    def _bundle_library(
        self,
        package: AssembledPackage,
        version: LibraryVersion,
        hint: str | None,
        search_order: list[str],
    ) -> None:
        archive_name, directory = self._locate(version, hint, search_order)
        target = version.directory_name
        if directory != target:
            logger.warning("Renaming bundled directory '%s' to '%s'", directory, target)
        prefix = f"{directory}/".lower()
        copied = 0
        try:
            with self._cache.open_archive(archive_name) as archive:
                for info in archive.infolist():
                    if info.is_dir() or not info.filename.lower().startswith(prefix):
                        continue
                    name = f"{target}/{info.filename[len(prefix):]}"
                    if name not in package.entries:
                        package.entries[name] = archive.read(info)
                        copied += 1
        except CacheError as exc:
            raise AssemblyError(f"Cannot bundle {version}: {exc}") from exc
        except (OSError, zipfile.BadZipFile) as exc:
            raise AssemblyError(f"Cannot bundle {version} from '{archive_name}': {exc}") from exc
        logger.debug("Bundled %d files of %s from %s", copied, version, archive_name)


def assemble_package(
    content: Any,
    closure: DependencyClosure,
    media_files: Iterable[MediaFile],
    title: str,
    language: str,
    cache: ComponentCache,
    *,
    main_library: str | None = None,
) -> bytes:
    """Assemble a package and return the rendered .h5p bytes."""
    assembler = PackageAssembler(cache)
    package = assembler.assemble(content, closure, media_files, title, language, main_library=main_library)
    return package.to_bytes()


def strip_directory_entries(data: bytes) -> bytes:
    """Rewrite a zip archive keeping only its file entries."""
    source = zipfile.ZipFile(io.BytesIO(data))
    buffer = io.BytesIO()
    with source, zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as target:
        for info in source.infolist():
            if not info.is_dir():
                target.writestr(info, source.read(info))
    return buffer.getvalue()
