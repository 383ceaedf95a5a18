# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Schema parsing and content validation for library semantics."""

from h5pbuild.semantics.validator import (
    SemanticsError,
    ValidationError,
    ValidationResult,
    get_field_definition,
    parse_field,
    parse_semantics,
    validate,
)

__all__ = [
    "SemanticsError",
    "ValidationError",
    "ValidationResult",
    "get_field_definition",
    "parse_field",
    "parse_semantics",
    "validate",
]
