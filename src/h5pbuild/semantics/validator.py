# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Parsing of ``semantics.json`` declarations and validation of content against them.

Validation never stops at the first problem: every violation in the content
tree is collected into one :class:`ValidationResult`.  Extra keys in the
content are ignored; only the declared structure is enforced.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from h5pbuild.model.semantics import RAW_TYPE_KINDS, FieldKind, FieldSchema, Semantics

# ###############
# Public Interface
# ###############


class SemanticsError(Exception):
    """Raised when a ``semantics.json`` declaration is malformed."""


@dataclass(frozen=True)
class ValidationError:
    """A single content violation.

    Attributes:
        field_path: Location of the value, e.g. ``"chapters[0].params.text"``.
        message: Human-readable description of the violation.
        expected_kind: What the schema declared, if relevant.
        actual_kind: What the content held, if relevant.
    """

    field_path: str
    message: str
    expected_kind: str | None = None
    actual_kind: str | None = None


@dataclass
class ValidationResult:
    """Every violation found while validating one content tree."""

    errors: list[ValidationError] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def parse_semantics(raw: Any) -> Semantics:
    """Parse a raw ``semantics.json`` array into a :class:`Semantics` tree.

    Raises:
        SemanticsError: If *raw* is not a list or any field declaration is malformed.
    """
    if not isinstance(raw, list):
        raise SemanticsError(f"Semantics must be a list of field declarations, got {_kind_of(raw)}")
    return Semantics(fields=[_parse_field(entry, f"[{index}]") for index, entry in enumerate(raw)])


def parse_field(raw: Any) -> FieldSchema:
    """Parse a single field declaration.

    Raises:
        SemanticsError: If the declaration is malformed.
    """
    return _parse_field(raw, "<field>")


def validate(content: Any, schema: Semantics | FieldSchema) -> ValidationResult:
    """Validate *content* against *schema*, collecting every violation.

    *content* is the object holding the declared fields.  A single
    :class:`FieldSchema` is treated as a schema with one top-level field.
    Structurally wrong content never raises.
    """
    fields = schema.fields if isinstance(schema, Semantics) else [schema]
    errors: list[ValidationError] = []
    if not isinstance(content, Mapping):
        errors.append(
            ValidationError(
                field_path="",
                message="Content must be an object",
                expected_kind="object",
                actual_kind=_kind_of(content),
            )
        )
        return ValidationResult(errors=errors)
    for field_schema in fields:
        _validate_field(content, field_schema, field_schema.name, errors)
    return ValidationResult(errors=errors)


def get_field_definition(field_path: str, schema: Semantics) -> FieldSchema | None:
    """Look up a field by dotted path, stepping into list item groups.

    ``"cards.text"`` finds the ``text`` child of the group that describes each
    element of the ``cards`` list.  Returns ``None`` when the path does not
    resolve.
    """
    current_fields = schema.fields
    current: FieldSchema | None = None
    parts = field_path.split(".")
    for index, part in enumerate(parts):
        current = next((f for f in current_fields if f.name == part), None)
        if current is None:
            return None
        if index == len(parts) - 1:
            break
        container = current.element if current.kind is FieldKind.LIST else current
        if container is None or container.kind is not FieldKind.GROUP or container.children is None:
            return None
        current_fields = container.children
    return current


# ################
# Implementation
# ################


def _parse_field(raw: Any, location: str, *, default_name: str | None = None) -> FieldSchema:
    if not isinstance(raw, Mapping):
        raise SemanticsError(f"{location}: field declaration must be an object, got {_kind_of(raw)}")

    name = raw.get("name", default_name)
    if not isinstance(name, str):
        raise SemanticsError(f"{location}: field declaration is missing a string 'name'")
    raw_type = raw.get("type")
    if not isinstance(raw_type, str):
        raise SemanticsError(f"{location} '{name}': field declaration is missing a string 'type'")

    kind = RAW_TYPE_KINDS.get(raw_type, FieldKind.OTHER)
    path = f"{location}.{name}" if location.startswith("[") else name

    children: list[FieldSchema] | None = None
    element: FieldSchema | None = None
    if kind is FieldKind.GROUP and "fields" in raw:
        raw_children = raw["fields"]
        if not isinstance(raw_children, list):
            raise SemanticsError(f"{path}: group 'fields' must be a list")
        children = [_parse_field(child, f"{path}.fields[{i}]") for i, child in enumerate(raw_children)]
    if kind is FieldKind.LIST and "field" in raw:
        element = _parse_field(raw["field"], f"{path}.field", default_name=name)

    options = raw.get("options") or []
    if not isinstance(options, list):
        raise SemanticsError(f"{path}: 'options' must be a list")

    return FieldSchema(
        name=name,
        kind=kind,
        type=raw_type,
        optional=bool(raw.get("optional", False)),
        has_default="default" in raw,
        default=raw.get("default"),
        min=_bound(raw, "min", path),
        max=_bound(raw, "max", path),
        options=options,
        children=children,
        element=element,
        label=raw.get("label"),
        description=raw.get("description"),
        importance=raw.get("importance"),
        widget=raw.get("widget"),
        pattern=raw.get("pattern"),
        common=bool(raw.get("common", False)),
    )


def _bound(raw: Mapping[str, Any], key: str, path: str) -> float | None:
    value = raw.get(key)
    if value is None:
        return None
    # Some published semantics store bounds as strings.
    try:
        return float(value)
    except (TypeError, ValueError):
        raise SemanticsError(f"{path}: '{key}' must be a number, got {value!r}") from None


def _kind_of(value: Any) -> str:
    """Return the JSON kind of *value*: string, number, boolean, array, object, or null."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _format_bound(bound: float) -> str:
    return str(int(bound)) if bound.is_integer() else str(bound)


def _validate_field(
    parent: Mapping[str, Any],
    field_schema: FieldSchema,
    field_path: str,
    errors: list[ValidationError],
) -> None:
    """Validate the value stored under ``field_schema.name`` in *parent*."""
    _validate_value(parent.get(field_schema.name), field_schema, field_path, errors)


def _validate_value(
    value: Any,
    field_schema: FieldSchema,
    field_path: str,
    errors: list[ValidationError],
) -> None:
    name = field_schema.name
    if value is None:
        if not field_schema.is_optional:
            errors.append(
                ValidationError(
                    field_path=field_path,
                    message=f'Required field "{name}" is missing',
                    expected_kind=field_schema.type,
                )
            )
        return

    actual = _kind_of(value)
    kind = field_schema.kind

    if kind is FieldKind.TEXT:
        if actual != "string":
            errors.append(ValidationError(field_path, f'Field "{name}" must be a string', "string", actual))

    elif kind is FieldKind.NUMBER:
        if actual != "number":
            errors.append(ValidationError(field_path, f'Field "{name}" must be a number', "number", actual))
            return
        if field_schema.min is not None and value < field_schema.min:
            errors.append(
                ValidationError(field_path, f'Field "{name}" must be at least {_format_bound(field_schema.min)}', "number")
            )
        if field_schema.max is not None and value > field_schema.max:
            errors.append(
                ValidationError(field_path, f'Field "{name}" must be at most {_format_bound(field_schema.max)}', "number")
            )

    elif kind is FieldKind.BOOLEAN:
        if actual != "boolean":
            errors.append(ValidationError(field_path, f'Field "{name}" must be a boolean', "boolean", actual))

    elif kind is FieldKind.LIST:
        if actual != "array":
            errors.append(ValidationError(field_path, f'Field "{name}" must be an array', "array", actual))
            return
        if field_schema.min is not None and len(value) < field_schema.min:
            errors.append(
                ValidationError(
                    field_path, f'Field "{name}" must have at least {_format_bound(field_schema.min)} items', "array"
                )
            )
        if field_schema.max is not None and len(value) > field_schema.max:
            errors.append(
                ValidationError(
                    field_path, f'Field "{name}" must have at most {_format_bound(field_schema.max)} items', "array"
                )
            )
        if field_schema.element is not None:
            for index, item in enumerate(value):
                _validate_value(item, field_schema.element, f"{field_path}[{index}]", errors)

    elif kind is FieldKind.GROUP:
        if actual != "object":
            errors.append(ValidationError(field_path, f'Field "{name}" must be an object', "object", actual))
            return
        for child in field_schema.children or []:
            _validate_field(value, child, f"{field_path}.{child.name}", errors)

    elif kind is FieldKind.LIBRARY:
        if actual != "object":
            errors.append(
                ValidationError(field_path, f'Field "{name}" must be a library object', "library (object)", actual)
            )
        elif field_schema.options and not value.get("library"):
            errors.append(
                ValidationError(field_path, 'Library object must have a "library" property', "library (object)")
            )

    elif kind is FieldKind.MEDIA:
        if actual != "object":
            errors.append(
                ValidationError(
                    field_path,
                    f'Field "{name}" must be a {field_schema.type} object',
                    f"{field_schema.type} (object)",
                    actual,
                )
            )
