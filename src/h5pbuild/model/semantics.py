# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Schema representations for library field declarations (``semantics.json``)."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic import Field as _Field

# ###############
# Public Interface
# ###############


class FieldKind(Enum):
    """Structural kinds a declared field can take."""

    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"
    GROUP = "group"
    LIBRARY = "library"
    MEDIA = "media"
    OTHER = "other"


# Raw semantics.json type names and the kind each one maps to.
RAW_TYPE_KINDS: dict[str, FieldKind] = {
    "text": FieldKind.TEXT,
    "number": FieldKind.NUMBER,
    "boolean": FieldKind.BOOLEAN,
    "list": FieldKind.LIST,
    "group": FieldKind.GROUP,
    "library": FieldKind.LIBRARY,
    "image": FieldKind.MEDIA,
    "video": FieldKind.MEDIA,
    "audio": FieldKind.MEDIA,
    "file": FieldKind.MEDIA,
}


class FieldSchema(BaseModel):
    """One declared field.

    ``group`` fields carry ``children``; ``list`` fields carry a single
    ``element`` describing every item.  ``type`` keeps the raw type name
    (e.g. ``"image"``) so messages can name what the declaration said.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    kind: FieldKind
    type: str
    optional: bool = False
    has_default: bool = False
    default: Any = None
    min: float | None = None
    max: float | None = None
    options: list[Any] = _Field(default_factory=list)
    children: list[FieldSchema] | None = None
    element: FieldSchema | None = None
    label: str | None = None
    description: str | None = None
    importance: str | None = None
    widget: str | None = None
    pattern: str | None = None
    common: bool = False

    @property
    def is_optional(self) -> bool:
        """Whether a missing value is acceptable.

        Boolean fields always count as optional, whether or not they
        declare a default.
        """
        return self.optional or self.has_default or self.kind is FieldKind.BOOLEAN


class Semantics(BaseModel):
    """A parsed ``semantics.json``: the ordered top-level field declarations."""

    model_config = ConfigDict(frozen=True)

    fields: list[FieldSchema] = _Field(default_factory=list)


FieldSchema.model_rebuild()
Semantics.model_rebuild()
