# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Tests for media collection and naming."""

from pathlib import Path

import pytest

from h5pbuild.compiler import MediaCollection, MediaFile


class TestMediaCollection:
    def test_generated_names_are_sequential_per_kind(self) -> None:
        media = MediaCollection()
        names = [
            media.add_generated("image", b"1", "png").path,
            media.add_generated("image", b"2", ".JPG").path,
            media.add_generated("audio", b"3", "mp3").path,
        ]
        assert names == ["images/0.png", "images/1.jpg", "audios/0.mp3"]
        assert len(media) == 3

    def test_counters_are_not_shared_between_collections(self) -> None:
        first, second = MediaCollection(), MediaCollection()
        first.add_generated("image", b"", "png")
        assert second.add_generated("image", b"", "png").path == "images/0.png"

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValueError, match="Unknown media kind"):
            MediaCollection().add_generated("hologram", b"", "bin")

    def test_explicit_path_is_normalized(self) -> None:
        media = MediaCollection()
        assert media.add("images\\cover.png", b"x") == MediaFile("images/cover.png", b"x")

    @pytest.mark.parametrize("path", ["", "/etc/passwd", "../escape.png", "images/../../x.png", "."])
    def test_invalid_paths(self, path: str) -> None:
        with pytest.raises(ValueError, match="Invalid media path"):
            MediaCollection().add(path, b"")

    def test_duplicate_path(self) -> None:
        media = MediaCollection()
        media.add("images/0.png", b"a")
        with pytest.raises(ValueError, match="Duplicate media path"):
            media.add("images/0.png", b"b")

    def test_generated_name_collides_with_explicit_one(self) -> None:
        media = MediaCollection()
        media.add("images/0.png", b"a")
        with pytest.raises(ValueError, match="Duplicate"):
            media.add_generated("image", b"b", "png")

    def test_from_directory(self, tmp_path: Path) -> None:
        (tmp_path / "images").mkdir()
        (tmp_path / "images" / "0.png").write_bytes(b"png")
        (tmp_path / "audios").mkdir()
        (tmp_path / "audios" / "0.mp3").write_bytes(b"mp3")
        media = MediaCollection.from_directory(tmp_path)
        assert [(f.path, f.data) for f in media] == [("audios/0.mp3", b"mp3"), ("images/0.png", b"png")]
