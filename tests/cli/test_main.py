# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Tests for the h5pbuild CLI entry point."""

import json
import sys
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from h5pbuild.cli.main import main

# ###############
# Helpers
# ###############

SEMANTICS = [{"name": "text", "type": "text"}, {"name": "score", "type": "number", "min": 0}]


def _run(monkeypatch: pytest.MonkeyPatch, *argv: str) -> int:
    """Run the CLI with *argv* and return its exit code."""
    monkeypatch.setattr(sys, "argv", ["h5pbuild", *argv])
    with pytest.raises(SystemExit) as exc_info:
        main()
    return exc_info.value.code


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run each test from an empty directory so no stray config file is picked up."""
    directory = tmp_path / "work"
    directory.mkdir()
    monkeypatch.chdir(directory)
    return directory


@pytest.fixture
def text_cache(
    cache_dir: Path,
    write_h5p: Callable[..., Path],
    library_def: Callable[..., dict[str, Any]],
) -> Path:
    """A cache holding H5P.Text (with FontAwesome bundled) and a lower-cased H5P.Column."""
    write_h5p(
        "H5P.Text-1.1.h5p",
        [
            library_def("H5P.Text", 1, 1, semantics=SEMANTICS, dependencies=[("FontAwesome", 4, 5)]),
            library_def("FontAwesome", 4, 5),
        ],
        main="H5P.Text",
    )
    write_h5p("h5p.column-1.18.h5p", [library_def("H5P.Column", 1, 18)], main="H5P.Column")
    return cache_dir


def _write_content(directory: Path, content: Any, name: str = "content.json") -> Path:
    path = directory / name
    path.write_text(json.dumps(content), encoding="utf-8")
    return path


# ###############
# General
# ###############


def test_main_no_args_prints_help_and_exits(monkeypatch: pytest.MonkeyPatch) -> None:
    """main() with no subcommand prints help and exits with code 0."""
    assert _run(monkeypatch) == 0


def test_invalid_config_file(workdir: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    """An invalid --config file is reported and exits with 1."""
    config = workdir / "bad.yaml"
    config.write_text("unknown-key: 1\n", encoding="utf-8")
    assert _run(monkeypatch, "check-cache", "H5P.Text", "--config", str(config)) == 1
    assert "unknown key" in capsys.readouterr().err


def test_config_file_in_working_directory_is_used(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """./.h5pbuild.yaml supplies the cache directory when --cache is absent."""
    (workdir / ".h5pbuild.yaml").write_text(f"cache-directory: {text_cache}\noffline: true\n", encoding="utf-8")
    assert _run(monkeypatch, "check-cache", "H5P.Text") == 0
    assert "Found exact match: H5P.Text-1.1.h5p" in capsys.readouterr().out


# -------- check-cache tests --------


def test_check_cache_all_found(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """check-cache exits with 0 when every library is present."""
    assert _run(monkeypatch, "check-cache", "H5P.Text", "--cache", str(text_cache)) == 0
    out = capsys.readouterr().out
    assert "Found exact match: H5P.Text-1.1.h5p" in out
    assert "1 ok" in out


def test_check_cache_missing_library(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """check-cache exits with 1 when a library is missing."""
    assert _run(monkeypatch, "check-cache", "H5P.Text", "H5P.Missing", "--cache", str(text_cache)) == 1
    assert "Library 'H5P.Missing' not found in cache" in capsys.readouterr().out


def test_check_cache_case_mismatch_fails_only_when_strict(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """A case mismatch is reported, and is fatal with --strict."""
    assert _run(monkeypatch, "check-cache", "H5P.Column", "--cache", str(text_cache)) == 0
    assert "Case mismatch: requested 'H5P.Column' but found 'h5p.column-1.18.h5p'" in capsys.readouterr().out
    assert _run(monkeypatch, "check-cache", "H5P.Column", "--cache", str(text_cache), "--strict") == 1


def test_check_cache_expected_version(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """--expect turns a version difference into a version mismatch."""
    code = _run(monkeypatch, "check-cache", "H5P.Text", "--expect", "H5P.Text=1.3", "--cache", str(text_cache))
    assert code == 0
    out = capsys.readouterr().out
    assert "declared as 1.3 but cache holds 1.1" in out
    assert "1 version mismatch(es)" in out


def test_check_cache_malformed_expectation(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """--expect without '=' is rejected."""
    assert _run(monkeypatch, "check-cache", "H5P.Text", "--expect", "H5P.Text", "--cache", str(text_cache)) == 1
    assert "NAME=VERSION" in capsys.readouterr().err


# -------- resolve tests --------


def test_resolve_prints_closure(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """resolve lists every library in the closure with its source archive."""
    assert _run(monkeypatch, "resolve", "H5P.Text", "--cache", str(text_cache), "--offline") == 0
    out = capsys.readouterr().out
    assert "requires 2 library(ies)" in out
    assert "FontAwesome 4.5  (H5P.Text-1.1.h5p)" in out
    assert "H5P.Text 1.1  (H5P.Text-1.1.h5p)" in out


def test_resolve_missing_offline(
    workdir: Path,
    cache_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """resolve exits with 1 when the library is unavailable offline."""
    with patch("h5pbuild.hub.client.requests.post") as post:
        assert _run(monkeypatch, "resolve", "H5P.Nope", "--cache", str(cache_dir), "--offline") == 1
    post.assert_not_called()
    assert "Error:" in capsys.readouterr().err


def test_resolve_consults_hub_when_online(
    workdir: Path,
    cache_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Without --offline a missing library is requested from the hub."""
    response = MagicMock(status_code=404, content=b"")
    with patch("h5pbuild.hub.client.requests.post", return_value=response) as post:
        assert _run(monkeypatch, "resolve", "H5P.Nope", "--cache", str(cache_dir)) == 1
    assert post.call_args.args[0] == "https://api.h5p.org/v1/content-types/H5P.Nope"


def test_resolve_hub_failure(
    workdir: Path,
    cache_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """A hub error is reported and exits with 1."""
    response = MagicMock(status_code=503, content=b"")
    with patch("h5pbuild.hub.client.requests.post", return_value=response):
        assert _run(monkeypatch, "resolve", "H5P.Nope", "--cache", str(cache_dir)) == 1
    assert "HTTP 503" in capsys.readouterr().err


# -------- validate tests --------


def test_validate_valid_content(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """validate exits with 0 for matching content."""
    content = _write_content(workdir, {"text": "<p>Hi</p>", "score": 3})
    code = _run(monkeypatch, "validate", str(content), "--library", "H5P.Text", "--cache", str(text_cache), "--offline")
    assert code == 0


def test_validate_yaml_content(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """validate accepts YAML content files."""
    content = workdir / "content.yaml"
    content.write_text("text: hello\n", encoding="utf-8")
    code = _run(monkeypatch, "validate", str(content), "--library", "H5P.Text", "--cache", str(text_cache), "--offline")
    assert code == 0


def test_validate_reports_every_error(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """validate prints each violation and exits with 1."""
    content = _write_content(workdir, {"score": -1})
    code = _run(monkeypatch, "validate", str(content), "--library", "H5P.Text", "--cache", str(text_cache), "--offline")
    assert code == 1
    err = capsys.readouterr().err
    assert 'text: Required field "text" is missing' in err
    assert 'score: Field "score" must be at least 0' in err
    assert "2 validation error(s)." in err


def test_validate_unknown_library(
    workdir: Path,
    cache_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """validate exits with 1 when the library is not cached."""
    content = _write_content(workdir, {})
    code = _run(monkeypatch, "validate", str(content), "--library", "H5P.Nope", "--cache", str(cache_dir), "--offline")
    assert code == 1
    assert "'H5P.Nope' not found" in capsys.readouterr().err


def test_validate_missing_content_file(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """validate exits with 1 when the content file does not exist."""
    code = _run(monkeypatch, "validate", "nope.json", "--library", "H5P.Text", "--cache", str(text_cache))
    assert code == 1
    assert "does not exist" in capsys.readouterr().err


def test_validate_invalid_json(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """validate exits with 1 for unparsable content."""
    content = workdir / "content.json"
    content.write_text("{not json", encoding="utf-8")
    code = _run(monkeypatch, "validate", str(content), "--library", "H5P.Text", "--cache", str(text_cache))
    assert code == 1
    assert "invalid content" in capsys.readouterr().err


# -------- build tests --------


def test_build_writes_package(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """build writes an .h5p package with media and content."""
    content = _write_content(workdir, {"text": "hello"})
    media = workdir / "media"
    (media / "images").mkdir(parents=True)
    (media / "images" / "0.png").write_bytes(b"png")
    output = workdir / "dist" / "out.h5p"

    code = _run(
        monkeypatch,
        "build",
        str(content),
        "-o",
        str(output),
        "--main-library",
        "H5P.Text",
        "--title",
        "Greeting",
        "--language",
        "nl",
        "--media",
        str(media),
        "--cache",
        str(text_cache),
        "--offline",
    )

    assert code == 0
    assert "Built" in capsys.readouterr().out
    with zipfile.ZipFile(output) as archive:
        names = archive.namelist()
        manifest = json.loads(archive.read("h5p.json"))
    assert "content/images/0.png" in names
    assert "FontAwesome-4.5/library.json" in names
    assert manifest["title"] == "Greeting"
    assert manifest["language"] == "nl"
    assert manifest["mainLibrary"] == "H5P.Text"


def test_build_title_defaults_to_content_file_name(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Without --title the content file's stem is used."""
    content = _write_content(workdir, {"text": "hello"}, name="lesson-one.json")
    output = workdir / "out.h5p"
    code = _run(
        monkeypatch,
        "build",
        str(content),
        "-o",
        str(output),
        "--main-library",
        "H5P.Text",
        "--cache",
        str(text_cache),
        "--offline",
    )
    assert code == 0
    with zipfile.ZipFile(output) as archive:
        assert json.loads(archive.read("h5p.json"))["title"] == "lesson-one"


def test_build_invalid_content_warns_unless_strict(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """Content errors are warnings by default and fatal with --strict."""
    content = _write_content(workdir, {})
    output = workdir / "out.h5p"
    args = ["build", str(content), "-o", str(output), "--main-library", "H5P.Text", "--cache", str(text_cache)]

    assert _run(monkeypatch, *args, "--offline") == 0
    assert 'Required field "text" is missing' in capsys.readouterr().out

    output.unlink()
    assert _run(monkeypatch, *args, "--offline", "--strict") == 1
    assert not output.exists()


def test_build_missing_media_directory(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """build exits with 1 when --media does not exist."""
    content = _write_content(workdir, {"text": "hello"})
    code = _run(
        monkeypatch,
        "build",
        str(content),
        "-o",
        "out.h5p",
        "--main-library",
        "H5P.Text",
        "--media",
        "missing",
        "--cache",
        str(text_cache),
        "--offline",
    )
    assert code == 1
    assert "media directory" in capsys.readouterr().err


def test_build_unresolvable_library(
    workdir: Path,
    text_cache: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """build exits with 1 when a required library cannot be resolved."""
    content = _write_content(workdir, {"text": "hello"})
    code = _run(
        monkeypatch,
        "build",
        str(content),
        "-o",
        "out.h5p",
        "--main-library",
        "H5P.Text",
        "--library",
        "H5P.Missing",
        "--cache",
        str(text_cache),
        "--offline",
    )
    assert code == 1
    assert "Dependency resolution failed" in capsys.readouterr().err
