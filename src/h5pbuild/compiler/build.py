# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""End-to-end package build: diagnose, resolve, validate, assemble.

The content tree and the list of libraries it needs come from the caller
(e.g. a book definition processed by content handlers).  A build runs
sequentially:

1. The cache is checked for every required library.  Case and version
   mismatches are reported and only stop the build in strict mode.
2. The main library and every required library are resolved to one closure.
3. The content is validated against the main library's semantics.  Errors
   are reported and only stop the build in strict mode.
4. The package is assembled from the closure, media, and content.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from h5pbuild.cache.diagnostics import CacheValidator
from h5pbuild.cache.store import CacheEntry, CacheStatus, ComponentCache
from h5pbuild.compiler.assembler import AssembledPackage, AssemblyError, PackageAssembler
from h5pbuild.compiler.media import MediaFile
from h5pbuild.compiler.resolver import DependencyClosure, DependencyResolver, LibraryFetcher, ResolutionError
from h5pbuild.semantics.validator import SemanticsError, ValidationResult, parse_semantics, validate

logger = logging.getLogger(__name__)

# ###############
# Public Interface
# ###############

DEFAULT_MAIN_LIBRARY = "H5P.InteractiveBook"

_MISMATCH_STATUSES = (CacheStatus.CASE_MISMATCH, CacheStatus.VERSION_MISMATCH)


class CompilerError(Exception):
    """Raised when a build cannot produce a complete package.

    Covers unresolvable libraries, malformed semantics, assembly failures,
    and, in strict mode, content validation errors and cache mismatches.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


@dataclass
class BuildResult:
    """Everything a build produced, including its non-fatal diagnostics.

    Attributes:
        package: The assembled package.
        closure: The resolved dependency closure (before layout detection).
        cache_entries: Cache diagnostics for each required library.
        validation: Content validation against the main library's semantics.
    """

    package: AssembledPackage
    closure: DependencyClosure
    cache_entries: list[CacheEntry] = field(default_factory=list)
    validation: ValidationResult = field(default_factory=ValidationResult)

    def to_bytes(self) -> bytes:
        return self.package.to_bytes()


def compile_package(
    content: Any,
    required_libraries: Sequence[str],
    cache: ComponentCache,
    *,
    title: str,
    language: str = "en",
    main_library: str = DEFAULT_MAIN_LIBRARY,
    media_files: Iterable[MediaFile] = (),
    fetcher: LibraryFetcher | None = None,
    strict: bool = False,
) -> BuildResult:
    """Build a package for *content*.

    Args:
        content: The content tree of the main library.
        required_libraries: Machine names the content needs besides the main library.
        cache: The component cache.
        title: Package title.
        language: Package language code.
        main_library: The package's main library.
        media_files: Files to embed under ``content/``.
        fetcher: Remote source for libraries missing from the cache.
        strict: Treat content validation errors and cache mismatches as fatal.

    Returns:
        A :class:`BuildResult` with the package and the collected diagnostics.

    Raises:
        CompilerError: If the package cannot be built.
    """
    names = list(dict.fromkeys([main_library, *required_libraries]))

    cache_validator = CacheValidator(cache)
    cache_entries = cache_validator.validate_all(names)
    summary = cache_validator.summarize(cache_entries)
    if summary.has_issues:
        logger.warning(
            "Found %d library issue(s) in the cache",
            summary.case_mismatch + summary.version_mismatch,
        )
        if strict:
            details = "\n".join(f"  {e.message}" for e in cache_entries if e.status in _MISMATCH_STATUSES)
            raise CompilerError(f"Cache mismatches in strict mode:\n{details}")

    resolver = DependencyResolver(cache, fetcher)
    try:
        closure = resolver.resolve_all(names)
    except ResolutionError as exc:
        raise CompilerError(f"Dependency resolution failed: {exc}") from exc
    logger.info("Total libraries with dependencies: %d", len(closure))

    # The descriptor's spelling, not the caller's, must reach h5p.json.
    if closure.root is not None and closure.root.machine_name != main_library:
        logger.warning("Using main library name '%s' for requested '%s'", closure.root.machine_name, main_library)
        main_library = closure.root.machine_name

    main = closure.get(main_library)
    validation = ValidationResult()
    if main is not None and main.metadata.semantics is not None:
        try:
            schema = parse_semantics(main.metadata.semantics)
        except SemanticsError as exc:
            raise CompilerError(f"Malformed semantics for {main.version}: {exc}") from exc
        validation = validate(content, schema)
        for error in validation.errors:
            logger.warning("Content validation: %s: %s", error.field_path or "<root>", error.message)
        if strict and not validation.valid:
            details = "\n".join(f"  {e.field_path}: {e.message}" for e in validation.errors)
            raise CompilerError(f"Content does not match {main.version} semantics:\n{details}")

    media = list(media_files)
    try:
        package = PackageAssembler(cache).assemble(
            content,
            closure,
            media,
            title,
            language,
            main_library=main_library,
        )
    except AssemblyError as exc:
        raise CompilerError(f"Package assembly failed: {exc}") from exc

    return BuildResult(package=package, closure=closure, cache_entries=cache_entries, validation=validation)
