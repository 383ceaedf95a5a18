# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Package build pipeline: dependency resolution, layout detection, and assembly."""

from h5pbuild.compiler.assembler import (
    AssembledPackage,
    AssemblyError,
    PackageAssembler,
    PackageManifest,
    assemble_package,
    strip_directory_entries,
)
from h5pbuild.compiler.build import DEFAULT_MAIN_LIBRARY, BuildResult, CompilerError, compile_package
from h5pbuild.compiler.layout import KNOWN_LAYOUT_LIBRARIES, DetectedLayout, LayoutLibrary, detect_layout_libraries
from h5pbuild.compiler.media import MEDIA_DIRECTORIES, MediaCollection, MediaFile, normalize_media_path
from h5pbuild.compiler.resolver import (
    DependencyClosure,
    DependencyResolver,
    FetchedLibrary,
    LibraryFetcher,
    ResolutionError,
    ResolvedLibrary,
)

__all__ = [
    "AssembledPackage",
    "AssemblyError",
    "BuildResult",
    "CompilerError",
    "DEFAULT_MAIN_LIBRARY",
    "DependencyClosure",
    "DependencyResolver",
    "DetectedLayout",
    "FetchedLibrary",
    "KNOWN_LAYOUT_LIBRARIES",
    "LayoutLibrary",
    "LibraryFetcher",
    "MEDIA_DIRECTORIES",
    "MediaCollection",
    "MediaFile",
    "PackageAssembler",
    "PackageManifest",
    "ResolutionError",
    "ResolvedLibrary",
    "assemble_package",
    "compile_package",
    "detect_layout_libraries",
    "normalize_media_path",
    "strip_directory_entries",
]
