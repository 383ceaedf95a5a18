# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Data model for H5P libraries and their field schemas."""

from h5pbuild.model.library import AssetPath, LibraryMetadata, LibraryVersion
from h5pbuild.model.semantics import RAW_TYPE_KINDS, FieldKind, FieldSchema, Semantics

__all__ = [
    # Libraries
    "AssetPath",
    "LibraryMetadata",
    "LibraryVersion",
    # Schemas
    "RAW_TYPE_KINDS",
    "FieldKind",
    "FieldSchema",
    "Semantics",
]
