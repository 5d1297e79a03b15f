"""
Test module for the structural schema rewriter.

These tests run the full pipeline over whole documents: children are rewritten
before their parents, nodes that do not fit the schema model are skipped, and
malformed unions abort the run.
"""

import copy
import json
import os
import sys
import tempfile
import unittest
from unittest.mock import patch

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

from jsoncomparison import NO_DIFF, Compare

from structuralize.common import ConflictingSubschemasError, PropertyConflictError, StructuralSchemaError
from structuralize.rewriter import (StructuralSchemaRewriter, convert_json_schema_to_structural_schema,
                                    convert_json_schema_to_structural_schema_files, rewrite_structural_schema)
from structuralize.schemamodel import SchemaEncodeError, SchemaObject

NULLABLE_MARKER = {"enum": [None], "nullable": True}


def load_json(name):
    with open(os.path.join(os.path.dirname(__file__), 'jsons', name), 'r', encoding='utf-8') as f:
        return json.load(f)


class TestExamples(unittest.TestCase):
    """Whole-document rewrites."""

    def test_one_of_enum(self):
        result = rewrite_structural_schema({
            "oneOf": [
                {"type": "string", "enum": ["C", "D"]},
                {"type": "string", "enum": ["A"], "description": "first"}
            ]
        })
        self.assertEqual(result, {"type": "string", "enum": ["C", "D", "A"]})

    def test_untagged_enum(self):
        result = rewrite_structural_schema({
            "anyOf": [
                {"type": "object", "required": ["one"], "properties": {"one": {"type": "string"}}},
                {"type": "object", "required": ["two"], "properties": {"two": {"type": "string"}}}
            ]
        })
        self.assertEqual(result, {
            "type": "object",
            "anyOf": [{"required": ["one"]}, {"required": ["two"]}],
            "properties": {"one": {"type": "string"}, "two": {"type": "string"}}
        })

    def test_flattened_map(self):
        result = rewrite_structural_schema({
            "type": "object",
            "properties": {"a": {"type": "string"}},
            "additionalProperties": True
        })
        self.assertEqual(result, {
            "type": "object",
            "properties": {"a": {"type": "string"}},
            "x-kubernetes-preserve-unknown-fields": True
        })

    def test_optional_enum(self):
        result = rewrite_structural_schema({
            "anyOf": [
                {
                    "description": "Enum doc",
                    "oneOf": [
                        {"type": "string", "enum": ["A"]},
                        {"description": "Variant B", "type": "string", "const": "B"}
                    ]
                },
                NULLABLE_MARKER
            ]
        })
        self.assertEqual(result, {"description": "Enum doc", "type": "string", "enum": ["A", "B"], "nullable": True})

    def test_optional_enum_without_descriptions(self):
        result = rewrite_structural_schema({
            "anyOf": [{"type": "string", "enum": ["A", "B", None]}, NULLABLE_MARKER]
        })
        self.assertEqual(result, {"type": "string", "enum": ["A", "B"], "nullable": True})

    def test_sole_null_enum_is_kept(self):
        self.assertEqual(rewrite_structural_schema(NULLABLE_MARKER), NULLABLE_MARKER)

    def test_nested_enum_is_hoisted_before_parent(self):
        """The nested `oneOf` is rewritten first, so the parent sees a plain enum property."""
        result = rewrite_structural_schema({
            "description": "An untagged enum with a nested enum inside",
            "anyOf": [
                {
                    "description": "Used in case the `one` field is present",
                    "type": "object",
                    "required": ["one"],
                    "properties": {"one": {"type": "string"}}
                },
                {
                    "description": "Used in case the `two` field is present",
                    "type": "object",
                    "required": ["two"],
                    "properties": {
                        "two": {
                            "description": "A very simple enum with unit variants",
                            "oneOf": [
                                {"type": "string", "enum": ["C", "D"]},
                                {"description": "First variant doc-comment", "type": "string", "enum": ["A"]},
                                {"description": "Second variant doc-comment", "type": "string", "enum": ["B"]}
                            ]
                        }
                    }
                },
                {"description": "Used in case no fields are present", "type": "object"}
            ]
        })
        expected = {
            "description": "An untagged enum with a nested enum inside",
            "type": "object",
            "anyOf": [{"required": ["one"]}, {"required": ["two"]}, {}],
            "properties": {
                "one": {"type": "string"},
                "two": {
                    "description": "A very simple enum with unit variants",
                    "type": "string",
                    "enum": ["C", "D", "A", "B"]
                }
            }
        }
        self.assertEqual(result, expected)
        self.assertEqual(Compare().check(expected, result), NO_DIFF)

    def test_tagged_enum_with_unit_and_struct_variants(self):
        result = rewrite_structural_schema({
            "oneOf": [
                {
                    "description": "Struct variant",
                    "type": "object",
                    "required": ["data"],
                    "properties": {"data": {"type": "object", "properties": {"x": {"type": "integer"}}}},
                    "additionalProperties": False
                },
                {
                    "description": "Other struct variant",
                    "type": "object",
                    "required": ["other"],
                    "properties": {"other": {"type": "string"}},
                    "additionalProperties": False
                }
            ]
        })
        self.assertEqual(result, {
            "type": "object",
            "oneOf": [{"required": ["data"]}, {"required": ["other"]}],
            "properties": {
                "data": {"description": "Struct variant", "type": "object", "properties": {"x": {"type": "integer"}}},
                "other": {"description": "Other struct variant", "type": "string"}
            }
        })

    def test_unique_items_removed_everywhere(self):
        result = rewrite_structural_schema({
            "type": "array",
            "uniqueItems": True,
            "items": {
                "type": "object",
                "properties": {"tags": {"type": "array", "items": {"type": "string"}, "uniqueItems": False}}
            }
        })
        self.assertEqual(result, {
            "type": "array",
            "items": {"type": "object", "properties": {"tags": {"type": "array", "items": {"type": "string"}}}}
        })


class TestTraversal(unittest.TestCase):
    """Every child schema slot is visited."""

    ENUM_UNION = {"oneOf": [{"type": "string", "enum": ["A"]}, {"type": "string", "const": "B"}]}
    ENUM = {"type": "string", "enum": ["A", "B"]}

    def test_child_slots(self):
        for keyword in ('additionalItems', 'contains', 'additionalProperties', 'propertyNames', 'not', 'if', 'then', 'else', 'items'):
            with self.subTest(keyword=keyword):
                result = rewrite_structural_schema({keyword: copy.deepcopy(self.ENUM_UNION)})
                self.assertEqual(result, {keyword: self.ENUM})

    def test_child_list_slots(self):
        for keyword in ('allOf', 'prefixItems', 'items'):
            with self.subTest(keyword=keyword):
                result = rewrite_structural_schema({keyword: [copy.deepcopy(self.ENUM_UNION), True]})
                self.assertEqual(result, {keyword: [self.ENUM, True]})

    def test_child_map_slots(self):
        for keyword in ('properties', 'patternProperties', 'dependentSchemas', '$defs', 'definitions'):
            with self.subTest(keyword=keyword):
                result = rewrite_structural_schema({keyword: {"e": copy.deepcopy(self.ENUM_UNION)}})
                self.assertEqual(result, {keyword: {"e": self.ENUM}})

    def test_non_schema_values_are_not_visited(self):
        value = {
            "default": {"oneOf": [{"type": "string", "enum": ["A"]}]},
            "examples": [{"uniqueItems": True}],
            "x-kubernetes-validations": [{"rule": "self.a == 1"}]
        }
        self.assertEqual(rewrite_structural_schema(value), value)

    def test_slot_with_unexpected_shape_is_skipped(self):
        value = {"properties": ["a"], "items": {"type": "array", "uniqueItems": True}}
        self.assertEqual(rewrite_structural_schema(value), {"properties": ["a"], "items": {"type": "array"}})

    def test_boolean_documents(self):
        self.assertIs(rewrite_structural_schema(True), True)
        self.assertIs(rewrite_structural_schema(False), False)


class TestFailureHandling(unittest.TestCase):

    def test_undecodable_node_is_skipped(self):
        """A node outside the model is left alone, but its children are still rewritten."""
        result = rewrite_structural_schema({
            "type": "custom",
            "uniqueItems": True,
            "properties": {"a": {"type": "array", "uniqueItems": True}}
        })
        self.assertEqual(result, {
            "type": "custom",
            "uniqueItems": True,
            "properties": {"a": {"type": "array"}}
        })

    def test_conflict_aborts_the_run(self):
        document = load_json('conflicting_untagged.json')
        original = copy.deepcopy(document)
        with self.assertRaises(PropertyConflictError) as context:
            rewrite_structural_schema(document)
        self.assertEqual(context.exception.property_name, 'two')
        self.assertEqual(context.exception.path, '#/properties/spec/anyOf/1/properties/two')
        self.assertIsInstance(context.exception, StructuralSchemaError)
        self.assertEqual(document, original)

    def test_one_of_and_any_of(self):
        with self.assertRaises(ConflictingSubschemasError):
            rewrite_structural_schema({
                "oneOf": [{"type": "object", "properties": {"a": {"type": "string"}}}],
                "anyOf": [{"type": "object", "properties": {"b": {"type": "string"}}}]
            })

    def test_one_of_and_any_of_are_rejected_before_enum_hoisting(self):
        """A node with both unions aborts even when either union alone could be hoisted."""
        documents = [
            {
                "oneOf": [{"type": "string", "enum": ["A", "B"]}],
                "anyOf": [{"type": "integer", "enum": [1]}, NULLABLE_MARKER]
            },
            {
                "oneOf": [{"type": "string", "enum": ["A"]}],
                "anyOf": [{"type": "object", "properties": {"a": {"type": "string"}}}]
            },
        ]
        for document in documents:
            with self.subTest(document=document):
                wrapped = {"type": "object", "properties": {"spec": document}}
                with self.assertRaises(ConflictingSubschemasError) as context:
                    rewrite_structural_schema(wrapped)
                self.assertEqual(context.exception.path, '#/properties/spec')

    def test_failed_encoding_keeps_original_node(self):
        value = {"type": "array", "uniqueItems": True}
        with patch.object(SchemaObject, 'to_json', side_effect=SchemaEncodeError("boom")):
            with self.assertLogs('structuralize.rewriter', level='WARNING') as logs:
                result = rewrite_structural_schema(value)
        self.assertEqual(result, value)
        self.assertIn('boom', logs.output[0])

    def test_input_is_not_modified(self):
        document = load_json('crd_spec.json')
        original = copy.deepcopy(document)
        rewrite_structural_schema(document)
        self.assertEqual(document, original)


class TestIdempotence(unittest.TestCase):

    def test_rewriting_twice_changes_nothing(self):
        documents = [
            load_json('crd_spec.json'),
            {"oneOf": [{"type": "string", "enum": ["C", "D"]}, {"type": "string", "enum": ["A"], "description": "first"}]},
            {"anyOf": [{"type": "string", "enum": ["A", None]}, NULLABLE_MARKER]},
            {"anyOf": [
                {"type": "object", "required": ["one"], "properties": {"one": {"type": "string"}}},
                {"description": "none", "type": "object"}
            ]},
            {"oneOf": [
                {"description": "Text", "type": "object", "required": ["text"], "properties": {"text": {"type": "string"}}},
                {"description": "Data", "type": "object", "required": ["data"], "properties": {"data": {"type": "string"}}}
            ]},
        ]
        for document in documents:
            with self.subTest(document=document):
                once = rewrite_structural_schema(document)
                twice = rewrite_structural_schema(once)
                self.assertEqual(once, twice)


class TestOptions(unittest.TestCase):

    def test_keep_unique_items(self):
        value = {"type": "array", "uniqueItems": True}
        self.assertEqual(rewrite_structural_schema(value, strip_unique_items=False), value)

    def test_keep_enum_null(self):
        value = {"enum": ["A", None], "nullable": True}
        self.assertEqual(rewrite_structural_schema(value, remove_optional_enum_null=False), value)

    def test_preserve_unknown_fields_key(self):
        rewriter = StructuralSchemaRewriter(preserve_unknown_fields_key='x-open')
        result = rewriter.rewrite({"properties": {"a": True}, "additionalProperties": True})
        self.assertEqual(result, {"properties": {"a": True}, "x-open": True})

    def test_rewriter_is_reusable(self):
        rewriter = StructuralSchemaRewriter()
        value = {"type": "array", "uniqueItems": True}
        self.assertEqual(rewriter.rewrite(value), {"type": "array"})
        self.assertEqual(rewriter.rewrite(value), {"type": "array"})


class TestConversion(unittest.TestCase):
    """Text and file entry points."""

    def test_package_exports(self):
        import structuralize
        self.assertIs(structuralize.rewrite_structural_schema, rewrite_structural_schema)
        self.assertIs(structuralize.StructuralSchemaError, StructuralSchemaError)
        with self.assertRaises(AttributeError):
            structuralize.no_such_name  # pylint: disable=pointless-statement

    def test_convert_text(self):
        result = convert_json_schema_to_structural_schema(json.dumps({"type": "array", "uniqueItems": True}))
        self.assertEqual(json.loads(result), {"type": "array"})

    def test_convert_files(self):
        input_path = os.path.join(os.path.dirname(__file__), 'jsons', 'crd_spec.json')
        expected = load_json('crd_spec.structural.json')
        with tempfile.TemporaryDirectory() as temp_dir:
            output_path = os.path.join(temp_dir, 'out', 'crd_spec.structural.json')
            text = convert_json_schema_to_structural_schema_files(input_path, output_path)
            self.assertTrue(os.path.exists(output_path))
            with open(output_path, 'r', encoding='utf-8') as f:
                written = json.load(f)
        self.assertEqual(json.loads(text), written)
        self.assertEqual(written, expected)
        self.assertEqual(Compare().check(expected, written), NO_DIFF)

    def test_convert_files_options(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            input_path = os.path.join(temp_dir, 'in.json')
            with open(input_path, 'w', encoding='utf-8') as f:
                json.dump({"type": "array", "uniqueItems": True, "items": {"enum": ["A", None], "nullable": True}}, f)
            text = convert_json_schema_to_structural_schema_files(input_path, keep_unique_items=True, keep_enum_null=True)
        self.assertEqual(json.loads(text), {"type": "array", "uniqueItems": True, "items": {"enum": ["A", None], "nullable": True}})


if __name__ == '__main__':
    unittest.main()
