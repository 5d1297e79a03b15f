"""
Common utility functions and errors for structuralize.
"""

# pylint: disable=line-too-long

import json
from typing import Any, Iterable, Optional, Union

from jsonpointer import JsonPointer

PathParts = Iterable[Union[str, int]]

# Signature of the null branch of an optional enum: `"anyOf": [X, NULLABLE_MARKER]`
NULLABLE_MARKER = {"enum": [None], "nullable": True}

NULLABLE_KEY = 'nullable'
PRESERVE_UNKNOWN_FIELDS_KEY = 'x-kubernetes-preserve-unknown-fields'


def json_path(parts: Optional[PathParts] = None) -> str:
    """
    Render a list of path segments as a JSON Pointer fragment.

    Args:
        parts (Iterable[Union[str, int]]): The path segments from the document root.

    Returns:
        str: The pointer as a URI fragment, e.g. `#/properties/spec/oneOf/1`.
    """
    return '#' + JsonPointer.from_parts([str(p) for p in (parts or [])]).path


def canonical_json(value: Any) -> str:
    """Serialize a JSON value so that structurally equal values produce equal strings."""
    return json.dumps(value, sort_keys=True, separators=(',', ':'), ensure_ascii=False)


class StructuralSchemaError(Exception):
    """
    Exception raised when a schema cannot be rewritten into a structural schema.

    These are precondition violations in the input document. They are
    deterministic and must be fixed in the schema producer.

    Attributes:
        message: Human-readable error description
        path: JSON Pointer of the offending schema node
    """

    def __init__(self, message: str, path: str = '#') -> None:
        self.message = message
        self.path = path
        super().__init__(f"{message} at {path}")


class BooleanVariantError(StructuralSchemaError):
    """A `oneOf`/`anyOf` variant is a boolean schema."""


class MissingVariantTypeError(StructuralSchemaError):
    """An enum variant does not declare a `type`."""


class VariantTypeMismatchError(StructuralSchemaError):
    """Variants of one union, or a variant and its parent, disagree on `type`."""


class MissingEnumValuesError(StructuralSchemaError):
    """An enum variant provides neither `enum` nor `const`."""


class ContradictoryNullableError(StructuralSchemaError):
    """Both entries of a two-entry `anyOf` are the nullable marker."""


class TaggedVariantShapeError(StructuralSchemaError):
    """A tagged (`oneOf`) variant declares more than one property."""


class ConflictingSubschemasError(StructuralSchemaError):
    """A node carries both `oneOf` and `anyOf`."""


class HoistConflictError(StructuralSchemaError):
    """A keyword hoisted from a variant differs from the value already set on the parent."""

    def __init__(self, keyword: str, existing: Any, incoming: Any, path: str = '#') -> None:
        self.keyword = keyword
        self.existing = existing
        self.incoming = incoming
        super().__init__(
            f"Keyword {keyword!r} hoisted as {canonical_json(incoming)} but the parent already defines {canonical_json(existing)}",
            path)


class PropertyConflictError(StructuralSchemaError):
    """
    Two variants define the same property with different shapes.

    Attributes:
        property_name: The property defined more than once
        existing: JSON of the schema already hoisted
        incoming: JSON of the conflicting schema
    """

    def __init__(self, property_name: str, existing: Any, incoming: Any, path: str = '#') -> None:
        self.property_name = property_name
        self.existing = existing
        self.incoming = incoming
        super().__init__(
            f"Properties for {property_name!r} are defined multiple times with different shapes: "
            f"{canonical_json(incoming)} was already defined as {canonical_json(existing)}. "
            "The schemas for a property used in multiple subschemas must be identical",
            path)
