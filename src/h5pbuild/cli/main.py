# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Entry point for the h5pbuild command-line interface."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml
from yachalk import chalk

from h5pbuild.cache.archive import CacheError
from h5pbuild.cache.diagnostics import CacheValidator
from h5pbuild.cache.store import CacheEntry, CacheStatus, ComponentCache
from h5pbuild.compiler.build import CompilerError, compile_package
from h5pbuild.compiler.media import MediaCollection
from h5pbuild.compiler.resolver import DependencyResolver, LibraryFetcher, ResolutionError
from h5pbuild.hub.client import HubClient, HubError, HubFetcher
from h5pbuild.model.library import LibraryMetadata
from h5pbuild.semantics.validator import SemanticsError, parse_semantics, validate
from h5pbuild.workspace.config import CONFIG_FILE_NAME, BuildConfig, ConfigError, load_build_config

# ###############
# Public Interface
# ###############


def main() -> None:
    """Run the h5pbuild CLI."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--cache", help="Directory of cached .h5p library archives (overrides the config file)")
    common.add_argument("--config", help=f"Build configuration file (default: ./{CONFIG_FILE_NAME} if present)")
    common.add_argument("--offline", action="store_true", help="Never download missing libraries from the hub")
    common.add_argument(
        "--strict",
        action="store_true",
        help="Fail on content validation errors and cache mismatches",
    )
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    parser = argparse.ArgumentParser(
        prog="h5pbuild",
        description="h5pbuild: assemble H5P packages from cached content-type libraries",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # check-cache subcommand
    check_parser = subparsers.add_parser(
        "check-cache",
        parents=[common],
        help="Check that libraries are present in the cache",
        description="Report, for each library, whether the cache holds it and under which file.",
    )
    check_parser.add_argument("names", nargs="+", metavar="NAME", help="Library machine names")
    check_parser.add_argument(
        "--expect",
        action="append",
        default=[],
        metavar="NAME=VERSION",
        help="Declare the version a library is expected to have (repeatable)",
    )

    # resolve subcommand
    resolve_parser = subparsers.add_parser(
        "resolve",
        parents=[common],
        help="Print the dependency closure of a library",
        description="Resolve a library and every library it transitively depends on.",
    )
    resolve_parser.add_argument("name", metavar="NAME", help="Library machine name")

    # validate subcommand
    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common],
        help="Validate content against a library's semantics",
        description="Check a JSON or YAML content file against the semantics of a library.",
    )
    validate_parser.add_argument("content", metavar="CONTENT", help="Content file (.json, .yaml or .yml)")
    validate_parser.add_argument("--library", required=True, metavar="NAME", help="Library whose semantics apply")

    # build subcommand
    build_parser = subparsers.add_parser(
        "build",
        parents=[common],
        help="Assemble an .h5p package",
        description="Resolve, validate, and assemble content into an .h5p package.",
    )
    build_parser.add_argument("content", metavar="CONTENT", help="Content file (.json, .yaml or .yml)")
    build_parser.add_argument("-o", "--output", required=True, help="Path of the .h5p file to write")
    build_parser.add_argument(
        "--library",
        action="append",
        default=[],
        metavar="NAME",
        help="Library the content uses besides the main library (repeatable)",
    )
    build_parser.add_argument("--main-library", help="Main library (overrides the config file)")
    build_parser.add_argument("--title", help="Package title (default: content file name)")
    build_parser.add_argument("--language", help="Package language code (overrides the config file)")
    build_parser.add_argument("--media", help="Directory of media files to embed under content/")

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        sys.exit(0)

    sys.exit(_dispatch(args))


# ################
# Implementation
# ################


def _dispatch(args: argparse.Namespace) -> int:
    """Dispatch to the appropriate subcommand handler."""
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        config = _load_config(args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.command == "check-cache":
        return _cmd_check_cache(args, config)
    if args.command == "resolve":
        return _cmd_resolve(args, config)
    if args.command == "validate":
        return _cmd_validate(args, config)
    if args.command == "build":
        return _cmd_build(args, config)
    return 0


def _load_config(args: argparse.Namespace) -> BuildConfig:
    """Load the config file and apply command-line overrides."""
    if args.config is not None:
        config = load_build_config(Path(args.config))
    elif Path(CONFIG_FILE_NAME).is_file():
        config = load_build_config(Path(CONFIG_FILE_NAME))
    else:
        config = BuildConfig()

    if args.cache is not None:
        config.cache_directory = args.cache
    if args.offline:
        config.offline = True
    if args.strict:
        config.strict = True
    return config


def _fetcher(config: BuildConfig) -> LibraryFetcher | None:
    if config.offline:
        return None
    return HubFetcher(HubClient(config.hub_url, config.hub_timeout), Path(config.cache_directory))


_STATUS_COLORS = {
    CacheStatus.OK: chalk.green,
    CacheStatus.CASE_MISMATCH: chalk.yellow,
    CacheStatus.VERSION_MISMATCH: chalk.yellow,
    CacheStatus.NOT_FOUND: chalk.red,
}


def _print_entry(entry: CacheEntry) -> None:
    color = _STATUS_COLORS[entry.status]
    print(f"  {color(entry.status.value)}  {entry.message}")


def _cmd_check_cache(args: argparse.Namespace, config: BuildConfig) -> int:
    """Handle the check-cache subcommand."""
    declared: dict[str, str] = {}
    for expectation in args.expect:
        name, sep, version = expectation.partition("=")
        if not sep or not name or not version:
            print(f"Error: --expect must have the form NAME=VERSION, got '{expectation}'.", file=sys.stderr)
            return 1
        declared[name] = version

    cache = ComponentCache(Path(config.cache_directory))
    validator = CacheValidator(cache)
    entries = validator.validate_all(args.names, declared)

    print(f"Checking {len(entries)} library(ies) in '{cache.directory}'...")
    for entry in entries:
        _print_entry(entry)

    summary = validator.summarize(entries)
    print(
        f"\n{summary.ok} ok, {summary.case_mismatch} case mismatch(es), "
        f"{summary.version_mismatch} version mismatch(es), {summary.not_found} not found."
    )
    if summary.not_found or (config.strict and summary.has_issues):
        return 1
    return 0


def _cmd_resolve(args: argparse.Namespace, config: BuildConfig) -> int:
    """Handle the resolve subcommand."""
    cache = ComponentCache(Path(config.cache_directory))
    resolver = DependencyResolver(cache, _fetcher(config))
    try:
        closure = resolver.resolve(args.name)
    except (ResolutionError, HubError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"{chalk.blue(str(closure.root))} requires {len(closure)} library(ies):")
    for library in closure:
        source = library.archive or "remote"
        print(f"  {library.version}  ({source})")
    return 0


def _cmd_validate(args: argparse.Namespace, config: BuildConfig) -> int:
    """Handle the validate subcommand."""
    try:
        content = _load_content(Path(args.content))
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    cache = ComponentCache(Path(config.cache_directory))
    try:
        metadata = _load_library(cache, args.library, _fetcher(config))
    except (CacheError, HubError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if metadata is None:
        print(f"Error: library '{args.library}' not found.", file=sys.stderr)
        return 1
    if metadata.semantics is None:
        print(f"Library {metadata.version} has no semantics; nothing to validate.")
        return 0

    try:
        schema = parse_semantics(metadata.semantics)
    except SemanticsError as exc:
        print(f"Error: malformed semantics in {metadata.version}: {exc}", file=sys.stderr)
        return 1

    result = validate(content, schema)
    if result.valid:
        print(chalk.green(f"Content matches the semantics of {metadata.version}."))
        return 0
    for error in result.errors:
        print(f"{chalk.red('Error:')} {error.field_path or '<root>'}: {error.message}", file=sys.stderr)
    print(f"{len(result.errors)} validation error(s).", file=sys.stderr)
    return 1


def _cmd_build(args: argparse.Namespace, config: BuildConfig) -> int:
    """Handle the build subcommand."""
    content_path = Path(args.content)
    try:
        content = _load_content(content_path)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    media = MediaCollection()
    if args.media is not None:
        media_dir = Path(args.media)
        if not media_dir.is_dir():
            print(f"Error: media directory '{media_dir}' does not exist.", file=sys.stderr)
            return 1
        try:
            media = MediaCollection.from_directory(media_dir)
        except (OSError, ValueError) as exc:
            print(f"Error: cannot read media: {exc}", file=sys.stderr)
            return 1

    cache = ComponentCache(Path(config.cache_directory))
    try:
        result = compile_package(
            content,
            args.library,
            cache,
            title=args.title or content_path.stem,
            language=args.language or config.language,
            main_library=args.main_library or config.main_library,
            media_files=media,
            fetcher=_fetcher(config),
            strict=config.strict,
        )
    except (CompilerError, HubError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    for entry in result.cache_entries:
        if entry.status is not CacheStatus.OK:
            print(f"{chalk.yellow('Warning:')} {entry.message}")
    for error in result.validation.errors:
        print(f"{chalk.yellow('Warning:')} {error.field_path or '<root>'}: {error.message}")

    output = Path(args.output)
    try:
        result.package.write(output)
    except OSError as exc:
        print(f"Error: cannot write '{output}': {exc}", file=sys.stderr)
        return 1
    print(chalk.green(f"Built '{output}' with {len(result.package.libraries)} libraries and {len(media)} media file(s)."))
    return 0


def _load_content(path: Path) -> Any:
    """Read a JSON or YAML content file."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ValueError(f"content file '{path}' does not exist") from None
    except OSError as exc:
        raise ValueError(f"cannot read content file '{path}': {exc}") from exc

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(text)
        return json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ValueError(f"invalid content in '{path}': {exc}") from exc


def _load_library(cache: ComponentCache, name: str, fetcher: LibraryFetcher | None) -> LibraryMetadata | None:
    """Read a library's descriptor from the cache, falling back to the fetcher."""
    entry = cache.find(name)
    if entry is not None and entry.matched_file_name is not None:
        return cache.read_library_metadata(entry.matched_file_name)
    if fetcher is None:
        return None
    fetched = fetcher.fetch(name)
    return fetched.metadata if fetched is not None else None
