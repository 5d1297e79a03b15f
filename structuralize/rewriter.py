""" JSON Schema to Kubernetes structural schema rewriter. """

# pylint: disable=line-too-long, too-many-arguments

import copy
import json
import logging
import os
from typing import Any, Dict, List, Optional, Union

from structuralize.common import PRESERVE_UNKNOWN_FIELDS_KEY, ConflictingSubschemasError, json_path
from structuralize.fixups import preserve_unknown_fields_for_maps, remove_optional_enum_null_variant, strip_unique_items
from structuralize.hoistenums import hoist_any_of_option_enum, hoist_one_of_enum, hoist_subschema_enum_values
from structuralize.hoistproperties import hoist_subschema_properties
from structuralize.schemamodel import SchemaDecodeError, SchemaEncodeError, SchemaObject

logger = logging.getLogger(__name__)

PathParts = List[Union[str, int]]

SCHEMA = 'schema'
SCHEMA_LIST = 'list'
SCHEMA_MAP = 'map'
SCHEMA_OR_LIST = 'schema_or_list'

# Every keyword whose value holds child schemas, and the shape of that value.
SUBSCHEMA_SLOTS: Dict[str, str] = {
    'anyOf': SCHEMA_LIST,
    'oneOf': SCHEMA_LIST,
    'allOf': SCHEMA_LIST,
    'prefixItems': SCHEMA_LIST,
    'items': SCHEMA_OR_LIST,
    'additionalItems': SCHEMA,
    'contains': SCHEMA,
    'additionalProperties': SCHEMA,
    'propertyNames': SCHEMA,
    'not': SCHEMA,
    'if': SCHEMA,
    'then': SCHEMA,
    'else': SCHEMA,
    'properties': SCHEMA_MAP,
    'patternProperties': SCHEMA_MAP,
    'dependentSchemas': SCHEMA_MAP,
    '$defs': SCHEMA_MAP,
    'definitions': SCHEMA_MAP,
}


class StructuralSchemaRewriter:
    """
    Rewrites a JSON Schema so that it conforms to Kubernetes' "structural schema" rules.

    The following rewrites are applied to every schema node, children first:
     * `oneOf` unions of enum variants become a single `type` and `enum`
     * `anyOf` optional enums become a `nullable` enum
     * `oneOf` (tagged) and `anyOf` (untagged) object variants have their properties hoisted
     * `additionalProperties: true` next to properties becomes `x-kubernetes-preserve-unknown-fields`
     * `uniqueItems` is removed

    Attributes:
        preserve_unknown_fields_key: Extension set on flattened maps.
        strip_unique_items: Remove `uniqueItems` from array schemas.
        remove_optional_enum_null: Remove the redundant `null` from nullable enums.
    """

    def __init__(self,
                 preserve_unknown_fields_key: str = PRESERVE_UNKNOWN_FIELDS_KEY,
                 strip_unique_items: bool = True,
                 remove_optional_enum_null: bool = True) -> None:
        self.preserve_unknown_fields_key = preserve_unknown_fields_key
        self.strip_unique_items = strip_unique_items
        self.remove_optional_enum_null = remove_optional_enum_null

    def rewrite(self, schema: Any) -> Any:
        """
        Rewrite a schema document.

        The input is not modified. If a `StructuralSchemaError` is raised no
        partial result is produced.

        Args:
            schema (Any): The JSON Schema document, usually a dict.

        Returns:
            Any: The rewritten document.
        """
        return self.transform(copy.deepcopy(schema), [])

    def transform(self, node: Any, path: Optional[PathParts] = None) -> Any:
        """
        Rewrite a node after rewriting all of its child schemas.

        Children are rewritten in place; the return value replaces the node.
        A node that does not fit the schema model is returned unchanged.
        """
        if path is None:
            path = []
        if not isinstance(node, dict):
            return node
        self.transform_subschemas(node, path)

        try:
            schema = SchemaObject.from_json(node)
        except SchemaDecodeError as e:
            logger.debug("Skipping schema at %s: %s", json_path(path), e)
            return node

        self.apply(schema, path)

        try:
            rewritten = schema.to_json()
            SchemaObject.from_json(rewritten)
        except (SchemaEncodeError, SchemaDecodeError) as e:
            logger.warning("Discarding rewrite of schema at %s: %s", json_path(path), e)
            return node
        return rewritten

    def transform_subschemas(self, node: Dict[str, Any], path: PathParts) -> None:
        """Rewrite every child schema of the node in place."""
        for keyword, value in node.items():
            slot = SUBSCHEMA_SLOTS.get(keyword)
            if slot is None:
                continue
            if slot == SCHEMA or (slot == SCHEMA_OR_LIST and not isinstance(value, list)):
                node[keyword] = self.transform(value, [*path, keyword])
            elif slot in (SCHEMA_LIST, SCHEMA_OR_LIST):
                if isinstance(value, list):
                    for index, item in enumerate(value):
                        value[index] = self.transform(item, [*path, keyword, index])
            elif slot == SCHEMA_MAP:
                if isinstance(value, dict):
                    for name, item in value.items():
                        value[name] = self.transform(item, [*path, keyword, name])
            else:
                raise ValueError(f"Unknown subschema slot {slot!r} for {keyword!r}")

    def apply(self, schema: SchemaObject, path: PathParts) -> None:
        """Run the rewrite passes, in order, on a single decoded schema."""
        subschemas = schema.subschemas
        if subschemas.one_of and subschemas.any_of:
            raise ConflictingSubschemasError("oneOf and anyOf are mutually exclusive", json_path(path))

        hoist_one_of_enum(schema, path)
        hoist_any_of_option_enum(schema, path)
        if self.remove_optional_enum_null:
            remove_optional_enum_null_variant(schema)

        if subschemas.one_of is not None:
            # Tagged enums are serialized using `oneOf`
            hoist_subschema_properties(schema, True, path)
            # "Plain" enums are serialized using `oneOf` if they have doc tags
            hoist_subschema_enum_values(schema, path)
            if not subschemas.one_of:
                subschemas.one_of = None

        if subschemas.any_of is not None:
            # Untagged enums are serialized using `anyOf`
            hoist_subschema_properties(schema, False, path)

        # check for maps with properties (i.e. flattened maps)
        # and allow these to persist dynamically
        preserve_unknown_fields_for_maps(schema, self.preserve_unknown_fields_key)

        if self.strip_unique_items:
            strip_unique_items(schema)


def rewrite_structural_schema(schema: Any, **options) -> Any:
    """
    Rewrite a JSON Schema document into a Kubernetes structural schema.

    Args:
        schema (Any): The JSON Schema document.
        **options: Keyword arguments for `StructuralSchemaRewriter`.

    Returns:
        Any: The rewritten document. The input is left unchanged.
    """
    return StructuralSchemaRewriter(**options).rewrite(schema)


def convert_json_schema_to_structural_schema(input_data: str, **options) -> str:
    """
    Converts a JSON Schema document to a Kubernetes structural schema.

    Args:
        input_data (str): The JSON Schema document as a string.
        **options: Keyword arguments for `StructuralSchemaRewriter`.

    Returns:
        str: The rewritten document as a string.
    """
    json_schema = json.loads(input_data)
    result = rewrite_structural_schema(json_schema, **options)
    return json.dumps(result, indent=2)


def convert_json_schema_to_structural_schema_files(
    json_schema_file_path: str,
    structural_schema_path: Optional[str] = None,
    preserve_unknown_fields_key: Optional[str] = None,
    keep_unique_items: bool = False,
    keep_enum_null: bool = False
) -> str:
    """
    Convert a JSON Schema file to a Kubernetes structural schema.

    Args:
        json_schema_file_path (str): Path to the input JSON Schema file
        structural_schema_path (str): Optional path for the output file
        preserve_unknown_fields_key (str): Extension set on flattened maps
        keep_unique_items (bool): Do not remove `uniqueItems`
        keep_enum_null (bool): Do not remove `null` from nullable enums

    Returns:
        The rewritten schema as a string
    """
    with open(json_schema_file_path, 'r', encoding='utf-8') as f:
        schema_content = f.read()

    result = convert_json_schema_to_structural_schema(
        schema_content,
        preserve_unknown_fields_key=preserve_unknown_fields_key or PRESERVE_UNKNOWN_FIELDS_KEY,
        strip_unique_items=not keep_unique_items,
        remove_optional_enum_null=not keep_enum_null)

    if structural_schema_path:
        os.makedirs(os.path.dirname(structural_schema_path) or '.', exist_ok=True)
        with open(structural_schema_path, 'w', encoding='utf-8') as f:
            f.write(result)

    return result
