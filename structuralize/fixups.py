"""
Keyword fixups for shapes the structural schema format expresses differently.
"""

from structuralize.common import NULLABLE_KEY, PRESERVE_UNKNOWN_FIELDS_KEY
from structuralize.schemamodel import SchemaObject


def remove_optional_enum_null_variant(schema: SchemaObject) -> bool:
    """
    Remove the trailing `null` from the enum of a nullable enum.

    `Option<Enum>` is generated with `nullable: true` as well as a `null` enum
    value. The flag already expresses it, so the value is dropped. A sole
    `null` is kept: that is the shape of an optional with no values yet.
    """
    if schema.enum_values is None or schema.extensions.get(NULLABLE_KEY) is not True:
        return False
    if len(schema.enum_values) <= 1:
        return False
    retained = [value for value in schema.enum_values if value is not None]
    if len(retained) == len(schema.enum_values):
        return False
    schema.enum_values = retained
    return True


def preserve_unknown_fields_for_maps(schema: SchemaObject, extension_key: str = PRESERVE_UNKNOWN_FIELDS_KEY) -> bool:
    """
    Rewrite a flattened map, i.e. known `properties` next to `"additionalProperties": true`,
    into the properties plus the preserve-unknown-fields extension.
    """
    obj = schema.object
    if not obj.properties or obj.additional_properties is not True:
        return False
    obj.additional_properties = None
    schema.extensions[extension_key] = True
    return True


def strip_unique_items(schema: SchemaObject) -> bool:
    """
    Remove `uniqueItems`, which Kubernetes (as of 1.30) does not accept.

    Set semantics have to be requested with `x-kubernetes-list-type: set` instead.
    """
    if schema.array.unique_items is None:
        return False
    schema.array.unique_items = None
    return True
