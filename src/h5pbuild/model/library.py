# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Library identity and metadata models for the H5P component ecosystem."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ###############
# Public Interface
# ###############

_VERSION_REF_RE = re.compile(r"^(?P<name>[^\s]+?)[\s-](?P<major>\d+)\.(?P<minor>\d+)(?:\.\d+)?$")


class LibraryVersion(BaseModel):
    """Identity of a library: machine name plus major and minor version.

    The patch version is not part of the identity; two libraries
    with the same machine name, major and minor version are the same
    dependency.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    machine_name: str = Field(alias="machineName")
    major_version: int = Field(alias="majorVersion")
    minor_version: int = Field(alias="minorVersion")

    @property
    def key(self) -> tuple[str, int, int]:
        return (self.machine_name, self.major_version, self.minor_version)

    @property
    def version(self) -> str:
        return f"{self.major_version}.{self.minor_version}"

    @property
    def directory_name(self) -> str:
        """Directory used for this library inside an .h5p archive (``Name-M.m``)."""
        return f"{self.machine_name}-{self.version}"

    @classmethod
    def parse(cls, ref: str) -> LibraryVersion:
        """Parse ``"H5P.Column 1.18"`` or ``"H5P.Column-1.18"`` into a LibraryVersion.

        Raises:
            ValueError: If *ref* does not carry a ``major.minor`` version.
        """
        match = _VERSION_REF_RE.match(ref.strip())
        if match is None:
            raise ValueError(f"Invalid library reference '{ref}': expected 'Name major.minor'")
        return cls(
            machine_name=match.group("name"),
            major_version=int(match.group("major")),
            minor_version=int(match.group("minor")),
        )

    def to_manifest(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def __str__(self) -> str:
        return f"{self.machine_name} {self.version}"


class AssetPath(BaseModel):
    """A preloaded JavaScript or CSS file reference from library.json."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    path: str


class LibraryMetadata(BaseModel):
    """The declared contract of one library, read from its ``library.json``.

    Script and style assets are carried through untouched.  The raw
    ``semantics.json`` declaration is kept as-is; use
    :func:`h5pbuild.semantics.parse_semantics` to turn it into a schema.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    machine_name: str = Field(alias="machineName")
    title: str = ""
    major_version: int = Field(alias="majorVersion")
    minor_version: int = Field(alias="minorVersion")
    patch_version: int = Field(default=0, alias="patchVersion")
    runnable: bool = False
    fullscreen: bool = False
    embed_types: list[str] = Field(default_factory=list, alias="embedTypes")
    preloaded_js: list[AssetPath] = Field(default_factory=list, alias="preloadedJs")
    preloaded_css: list[AssetPath] = Field(default_factory=list, alias="preloadedCss")
    preloaded_dependencies: list[LibraryVersion] = Field(default_factory=list, alias="preloadedDependencies")
    editor_dependencies: list[LibraryVersion] = Field(default_factory=list, alias="editorDependencies")
    dynamic_dependencies: list[LibraryVersion] = Field(default_factory=list, alias="dynamicDependencies")
    semantics: Any = None
    library_directory: str | None = Field(default=None, alias="libraryDirectory")

    @field_validator("runnable", "fullscreen", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> Any:
        # library.json stores these flags as 0/1.
        if value is None:
            return False
        return value

    @property
    def version(self) -> LibraryVersion:
        return LibraryVersion(
            machine_name=self.machine_name,
            major_version=self.major_version,
            minor_version=self.minor_version,
        )

    @property
    def full_version(self) -> str:
        return f"{self.major_version}.{self.minor_version}.{self.patch_version}"
