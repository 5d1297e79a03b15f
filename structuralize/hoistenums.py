"""
Enum hoisting passes.

Structural schemas may not declare `enum` below a `oneOf`/`anyOf`. These passes
move the enum values of such unions up into the parent schema.

Each pass mutates the schema it is given and returns True if it changed it.
A schema the pass does not apply to is returned untouched; a schema the pass
applies to but which is malformed raises a `StructuralSchemaError`.
"""

# pylint: disable=line-too-long

import copy
import dataclasses
import logging
from typing import List, Union

from structuralize.common import (NULLABLE_KEY, NULLABLE_MARKER, BooleanVariantError, ContradictoryNullableError,
                                  HoistConflictError, MissingEnumValuesError, MissingVariantTypeError,
                                  VariantTypeMismatchError, canonical_json, json_path)
from structuralize.schemamodel import InstanceType, Many, Schema, SchemaObject, Single, encode_schema

logger = logging.getLogger(__name__)

PathParts = List[Union[str, int]]


def is_nullable_marker(variant: Schema) -> bool:
    """True if the variant is exactly `{"enum": [null], "nullable": true}`."""
    return canonical_json(encode_schema(variant)) == canonical_json(NULLABLE_MARKER)


def _is_object_shaped(variant: Schema) -> bool:
    if not isinstance(variant, SchemaObject):
        return False
    if variant.has_object_validation:
        return True
    if isinstance(variant.instance_type, Single):
        return variant.instance_type.item == InstanceType.OBJECT
    if isinstance(variant.instance_type, Many):
        return InstanceType.OBJECT in variant.instance_type.items
    return False


def hoist_one_of_enum(schema: SchemaObject, path: PathParts) -> bool:
    """
    Hoist a `oneOf` of enum variants into a top level `type` and `enum`.

    Serde enums with documented unit variants are generated as a `oneOf` where
    every variant is `{"type": ..., "enum": [...]}` or `{"type": ..., "const": ...}`.
    All values are appended, in variant order, to the parent `enum` and the
    common `type` becomes the parent `type`. Variant descriptions are lost.

    The pass does not apply to unions with object-shaped variants, which are
    left for property hoisting.

    Args:
        schema (SchemaObject): The schema to rewrite in place.
        path (List[Union[str, int]]): Location of the schema, for error messages.

    Returns:
        bool: True if the `oneOf` was hoisted.

    Raises:
        BooleanVariantError: A variant is `true` or `false`.
        MissingVariantTypeError: A variant has no `type`.
        VariantTypeMismatchError: Variants declare different types.
        MissingEnumValuesError: A variant has neither `enum` nor `const`.
    """
    one_of = schema.subschemas.one_of
    if not one_of:
        return False
    if any(_is_object_shaped(variant) for variant in one_of):
        return False

    for index, variant in enumerate(one_of):
        if isinstance(variant, bool):
            raise BooleanVariantError("oneOf variants can not be boolean schemas", json_path([*path, 'oneOf', index]))
        if variant.instance_type is None:
            raise MissingVariantTypeError(
                f"oneOf variants need to define a type: {canonical_json(variant.to_json())}",
                json_path([*path, 'oneOf', index]))

    hoisted_type = one_of[0].instance_type
    for index, variant in enumerate(one_of[1:], start=1):
        if variant.instance_type != hoisted_type:
            raise VariantTypeMismatchError(
                f"All oneOf variants must have the same type, found {canonical_json(encode_schema(variant)['type'])} "
                f"after {canonical_json(encode_schema(one_of[0])['type'])}",
                json_path([*path, 'oneOf', index]))

    new_values = []
    for index, variant in enumerate(one_of):
        # enum takes precedence over const
        if variant.enum_values is not None:
            new_values.extend(variant.enum_values)
        elif 'const' in variant.other:
            new_values.append(variant.other['const'])
        else:
            raise MissingEnumValuesError(
                f"oneOf variant did not provide \"enum\" or \"const\": {canonical_json(variant.to_json())}",
                json_path([*path, 'oneOf', index]))

    if schema.enum_values is None:
        schema.enum_values = []
    schema.enum_values.extend(new_values)
    schema.instance_type = copy.deepcopy(hoisted_type)
    schema.subschemas.one_of = None
    logger.debug("Hoisted %d oneOf enum variants at %s", len(one_of), json_path(path))
    return True


def hoist_any_of_option_enum(schema: SchemaObject, path: PathParts) -> bool:
    """
    Hoist an optional enum expressed as `"anyOf": [X, {"enum": [null], "nullable": true}]`.

    The `description`, `type` and `enum` of X replace those of the parent and
    the parent is marked `nullable`. Any other keyword X carries moves to the
    parent too.

    Raises:
        ContradictoryNullableError: Both entries are the nullable marker.
        BooleanVariantError: X is a boolean schema.
        HoistConflictError: X and the parent set the same keyword differently.
    """
    any_of = schema.subschemas.any_of
    if any_of is None or len(any_of) != 2:
        return False

    matches = [is_nullable_marker(variant) for variant in any_of]
    if all(matches):
        raise ContradictoryNullableError("Both anyOf entries are the nullable marker", json_path([*path, 'anyOf']))
    if not any(matches):
        return False

    index = 1 if matches[0] else 0
    entry = any_of[index]
    if isinstance(entry, bool):
        raise BooleanVariantError("anyOf variants can not be boolean schemas", json_path([*path, 'anyOf', index]))

    schema.subschemas.any_of = None
    _carry_over_keywords(schema, entry, [*path, 'anyOf', index])

    schema.metadata.description = entry.metadata.description
    schema.instance_type = copy.deepcopy(entry.instance_type)
    schema.enum_values = copy.deepcopy(entry.enum_values)
    schema.extensions[NULLABLE_KEY] = True
    logger.debug("Hoisted optional enum at %s", json_path(path))
    return True


def _carry_over_keywords(schema: SchemaObject, entry: SchemaObject, entry_path: PathParts) -> None:
    remaining = entry.to_json()
    for keyword in ('description', 'type', 'enum'):
        remaining.pop(keyword, None)
    if not remaining:
        return

    merged = schema.to_json()
    for keyword, value in remaining.items():
        if keyword in merged and canonical_json(merged[keyword]) != canonical_json(value):
            raise HoistConflictError(keyword, merged[keyword], value, json_path(entry_path))
        merged[keyword] = value

    carried = SchemaObject.from_json(merged)
    for f in dataclasses.fields(SchemaObject):
        setattr(schema, f.name, getattr(carried, f.name))


def hoist_subschema_enum_values(schema: SchemaObject, path: PathParts) -> bool:
    """
    Bring all plain enum values of the remaining `oneOf` variants up to the root schema,
    since Kubernetes doesn't allow subschemas to define enum options.

    Variants without an `enum` are kept in the `oneOf`.

    Raises:
        VariantTypeMismatchError: A variant type differs from the type already set on the root.
    """
    one_of = schema.subschemas.one_of
    if not one_of:
        return False

    retained = []
    hoisted = False
    for index, variant in enumerate(one_of):
        if not isinstance(variant, SchemaObject) or variant.enum_values is None:
            retained.append(variant)
            continue
        if variant.instance_type is not None:
            if schema.instance_type is None:
                schema.instance_type = copy.deepcopy(variant.instance_type)
            elif schema.instance_type != variant.instance_type:
                raise VariantTypeMismatchError(
                    f"Enum variant set {canonical_json(variant.enum_values)} has type {canonical_json(encode_schema(variant)['type'])} "
                    f"but the type was already defined as {canonical_json(schema.to_json()['type'])}. "
                    "The instance type must be equal for all subschema variants",
                    json_path([*path, 'oneOf', index]))
        if schema.enum_values is None:
            schema.enum_values = []
        schema.enum_values.extend(variant.enum_values)
        hoisted = True

    schema.subschemas.one_of = retained
    return hoisted
