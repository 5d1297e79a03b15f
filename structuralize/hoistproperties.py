"""
Property hoisting pass.

Kubernetes does not allow subschemas to define properties. Tagged enums are
generated as a `oneOf` of single-property objects and untagged enums as an
`anyOf` of object shapes; in both cases the properties move up to the parent
while the variants keep their `required` lists, so the union still expresses
which combinations of fields are valid.
"""

# pylint: disable=line-too-long

import logging
from typing import List, Union

from structuralize.common import (BooleanVariantError, ConflictingSubschemasError, PropertyConflictError,
                                  TaggedVariantShapeError, json_path)
from structuralize.schemamodel import InstanceType, Metadata, SchemaObject, Single, encode_schema, schemas_equal

logger = logging.getLogger(__name__)

PathParts = List[Union[str, int]]


def hoist_subschema_properties(schema: SchemaObject, tagged: bool, path: PathParts) -> bool:
    """
    Move the properties of the `oneOf` (tagged) or `anyOf` (untagged) variants into the parent.

    For every variant with object validation the variant `type` is dropped,
    its properties are merged into the parent `properties`, its
    `additionalProperties` is cleared and the parent `type` becomes `object`.
    The variant description is moved onto the single property of a tagged
    variant and dropped for untagged variants.

    A variant with no object validation and `"type": "object"` is the
    variant for "no fields present"; it is reduced to `{}`.

    Args:
        schema (SchemaObject): The schema to rewrite in place.
        tagged (bool): True to process `oneOf`, False to process `anyOf`.
        path (List[Union[str, int]]): Location of the schema, for error messages.

    Returns:
        bool: True if any variant was rewritten.

    Raises:
        ConflictingSubschemasError: Both `oneOf` and `anyOf` are set.
        BooleanVariantError: A variant is `true` or `false`.
        TaggedVariantShapeError: A tagged variant declares more than one property.
        PropertyConflictError: A property is hoisted twice with different schemas.
    """
    subschemas = schema.subschemas
    if subschemas.one_of and subschemas.any_of:
        raise ConflictingSubschemasError("oneOf and anyOf are mutually exclusive", json_path(path))

    keyword = 'oneOf' if tagged else 'anyOf'
    variants = subschemas.one_of if tagged else subschemas.any_of
    if not variants:
        return False

    rewritten = False
    for index, variant in enumerate(variants):
        variant_path = [*path, keyword, index]
        if isinstance(variant, bool):
            raise BooleanVariantError(f"{keyword} variants can not be boolean schemas", json_path(variant_path))
        if variant.has_object_validation:
            _hoist_variant_properties(schema, variant, tagged, variant_path)
            rewritten = True
        elif variant.has_single_type(InstanceType.OBJECT):
            variant.instance_type = None
            variant.metadata = Metadata()
            rewritten = True

    if rewritten:
        logger.debug("Hoisted %s properties at %s", keyword, json_path(path))
    return rewritten


def _hoist_variant_properties(schema: SchemaObject, variant: SchemaObject, tagged: bool, variant_path: PathParts) -> None:
    variant_obj = variant.object
    description = variant.metadata.description
    variant.metadata.description = None
    variant.instance_type = None

    if tagged and variant_obj.properties:
        if len(variant_obj.properties) != 1:
            raise TaggedVariantShapeError(
                f"Expecting only a single property defined for the tagged enum variant schema, got {sorted(variant_obj.properties)}",
                json_path(variant_path))
        # the variant doc-comment documents the tag property
        property_name, property_schema = next(iter(variant_obj.properties.items()))
        if description is not None:
            if not isinstance(property_schema, SchemaObject):
                logger.debug("Dropping description of tagged variant at %s: property %r is a boolean schema",
                             json_path(variant_path), property_name)
            else:
                if property_schema.metadata.description is not None:
                    logger.debug("Replacing description of property %r with the tagged variant description at %s",
                                 property_name, json_path(variant_path))
                property_schema.metadata.description = description

    parent_properties = schema.object.properties
    for property_name, property_schema in variant_obj.properties.items():
        if property_name not in parent_properties:
            parent_properties[property_name] = property_schema
        elif not schemas_equal(parent_properties[property_name], property_schema):
            raise PropertyConflictError(
                property_name,
                encode_schema(parent_properties[property_name]),
                encode_schema(property_schema),
                json_path([*variant_path, 'properties', property_name]))

    variant_obj.properties = {}
    # Kubernetes doesn't allow variants to set additionalProperties
    variant_obj.additional_properties = None
    schema.instance_type = Single(InstanceType.OBJECT)
