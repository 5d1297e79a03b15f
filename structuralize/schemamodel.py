"""Typed model of a single JSON Schema node.

The rewrite passes pattern-match on this model instead of on raw dictionaries.
Only the keywords the passes reason about are modeled; everything else is kept
verbatim in `SchemaObject.extensions` (vendor keywords) or `SchemaObject.other`.

Decoding is strict: a node that uses a modeled keyword with a shape the model
cannot represent raises `SchemaDecodeError`, and the caller is expected to
leave that node alone.
"""

# pylint: disable=too-many-instance-attributes, too-many-branches, too-many-statements, line-too-long

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Set, TypeVar, Union

from structuralize.common import NULLABLE_KEY, canonical_json

T = TypeVar('T')

U32_MAX = 2**32 - 1


class SchemaDecodeError(ValueError):
    """Raised when a JSON value does not fit the schema model."""


class SchemaEncodeError(ValueError):
    """Raised when a schema model cannot be encoded back to JSON."""


class _Absent:
    """Marker for a keyword that is not present, as opposed to one set to JSON null."""

    def __repr__(self) -> str:
        return 'ABSENT'

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return 'ABSENT'


ABSENT = _Absent()


class InstanceType(str, Enum):
    """The primitive types of the JSON Schema instance data model."""
    NULL = 'null'
    BOOLEAN = 'boolean'
    OBJECT = 'object'
    ARRAY = 'array'
    NUMBER = 'number'
    STRING = 'string'
    INTEGER = 'integer'


@dataclass
class Single(Generic[T]):
    """A keyword value given as a single item, e.g. `"type": "string"`."""
    item: T


@dataclass
class Many(Generic[T]):
    """A keyword value given as a list, e.g. `"type": ["string"]`.

    A one-element `Many` is not the same value as a `Single`; both shapes
    round-trip as they were read.
    """
    items: List[T] = field(default_factory=list)


SingleOrMany = Union[Single[T], Many[T]]

# A schema is either the trivial `true`/`false` schema or a schema object.
Schema = Union[bool, 'SchemaObject']


@dataclass
class Metadata:
    """Annotations that have no effect on validation."""
    description: Optional[str] = None
    default: Any = ABSENT

    def is_empty(self) -> bool:
        return self.description is None and self.default is ABSENT


@dataclass
class SubschemaValidation:
    """The composition keywords the rewriter understands."""
    any_of: Optional[List[Schema]] = None
    one_of: Optional[List[Schema]] = None


@dataclass
class ArrayValidation:
    """Keywords that constrain arrays."""
    items: Optional[SingleOrMany[Schema]] = None
    additional_items: Optional[Schema] = None
    max_items: Optional[int] = None
    min_items: Optional[int] = None
    unique_items: Optional[bool] = None
    contains: Optional[Schema] = None


@dataclass
class ObjectValidation:
    """Keywords that constrain objects."""
    max_properties: Optional[int] = None
    min_properties: Optional[int] = None
    required: Set[str] = field(default_factory=set)
    properties: Dict[str, Schema] = field(default_factory=dict)
    pattern_properties: Dict[str, Schema] = field(default_factory=dict)
    additional_properties: Optional[Schema] = None
    property_names: Optional[Schema] = None

    def is_empty(self) -> bool:
        """True if no object keyword is set."""
        return (self.max_properties is None and self.min_properties is None
                and not self.required and not self.properties and not self.pattern_properties
                and self.additional_properties is None and self.property_names is None)


@dataclass
class SchemaObject:
    """
    A JSON Schema object node.

    Attributes:
        metadata: `description` and `default`
        instance_type: The `type` keyword, `None` for no type constraint
        format: The `format` keyword
        enum_values: The `enum` keyword
        subschemas: `anyOf` and `oneOf`
        array: Array validation keywords
        object: Object validation keywords
        extensions: Vendor keywords (`nullable`, `x-*`)
        other: Every other keyword, kept verbatim
    """
    metadata: Metadata = field(default_factory=Metadata)
    instance_type: Optional[SingleOrMany[InstanceType]] = None
    format: Optional[str] = None
    enum_values: Optional[List[Any]] = None
    subschemas: SubschemaValidation = field(default_factory=SubschemaValidation)
    array: ArrayValidation = field(default_factory=ArrayValidation)
    object: ObjectValidation = field(default_factory=ObjectValidation)
    extensions: Dict[str, Any] = field(default_factory=dict)
    other: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_object_validation(self) -> bool:
        return not self.object.is_empty()

    def has_single_type(self, instance_type: InstanceType) -> bool:
        """True if `type` is exactly the single (non-list) type given."""
        return isinstance(self.instance_type, Single) and self.instance_type.item == instance_type

    def copy(self) -> 'SchemaObject':
        return copy.deepcopy(self)

    @classmethod
    def from_json(cls, value: Any) -> 'SchemaObject':
        """
        Decode a JSON value into a schema object.

        Args:
            value (Any): A decoded JSON value.

        Returns:
            SchemaObject: A new model that shares no mutable state with `value`.

        Raises:
            SchemaDecodeError: If the value is not an object or a modeled keyword has an unsupported shape.
        """
        if not isinstance(value, dict):
            raise SchemaDecodeError(f"Expected a schema object, got {type(value).__name__}")
        data = dict(value)
        schema = cls()

        schema.metadata.description = _decode_str(data.pop('description', None), 'description')
        if 'default' in data:
            schema.metadata.default = copy.deepcopy(data.pop('default'))

        schema.instance_type = _decode_instance_type(data.pop('type', None))
        schema.format = _decode_str(data.pop('format', None), 'format')
        enum_values = data.pop('enum', None)
        if enum_values is not None:
            if not isinstance(enum_values, list):
                raise SchemaDecodeError(f"'enum' must be an array, got {type(enum_values).__name__}")
            schema.enum_values = copy.deepcopy(enum_values)

        schema.subschemas.any_of = _decode_schema_list(data.pop('anyOf', None), 'anyOf')
        schema.subschemas.one_of = _decode_schema_list(data.pop('oneOf', None), 'oneOf')

        array = schema.array
        array.items = _decode_items(data.pop('items', None))
        array.additional_items = _decode_optional_schema(data.pop('additionalItems', None), 'additionalItems')
        array.max_items = _decode_count(data.pop('maxItems', None), 'maxItems')
        array.min_items = _decode_count(data.pop('minItems', None), 'minItems')
        array.unique_items = _decode_bool(data.pop('uniqueItems', None), 'uniqueItems')
        array.contains = _decode_optional_schema(data.pop('contains', None), 'contains')

        obj = schema.object
        obj.max_properties = _decode_count(data.pop('maxProperties', None), 'maxProperties')
        obj.min_properties = _decode_count(data.pop('minProperties', None), 'minProperties')
        obj.required = _decode_required(data.pop('required', None))
        obj.properties = _decode_schema_map(data.pop('properties', None), 'properties')
        obj.pattern_properties = _decode_schema_map(data.pop('patternProperties', None), 'patternProperties')
        obj.additional_properties = _decode_optional_schema(data.pop('additionalProperties', None), 'additionalProperties')
        obj.property_names = _decode_optional_schema(data.pop('propertyNames', None), 'propertyNames')

        for key, val in data.items():
            if is_extension_keyword(key):
                schema.extensions[key] = copy.deepcopy(val)
            else:
                schema.other[key] = copy.deepcopy(val)
        return schema

    def to_json(self) -> Dict[str, Any]:
        """
        Encode the schema object as a JSON object.

        Raises:
            SchemaEncodeError: If a field holds a value of the wrong type, or a
                vendor or catch-all keyword collides with a modeled keyword.
        """
        result: Dict[str, Any] = {}
        if self.metadata.description is not None:
            result['description'] = _check_str(self.metadata.description, 'description')
        if self.metadata.default is not ABSENT:
            result['default'] = self.metadata.default
        if self.instance_type is not None:
            result['type'] = _encode_instance_type(self.instance_type)
        if self.format is not None:
            result['format'] = _check_str(self.format, 'format')
        if self.enum_values is not None:
            if not isinstance(self.enum_values, list):
                raise SchemaEncodeError(f"'enum' must be a list, got {type(self.enum_values).__name__}")
            result['enum'] = list(self.enum_values)

        if self.subschemas.any_of is not None:
            result['anyOf'] = [encode_schema(s) for s in self.subschemas.any_of]
        if self.subschemas.one_of is not None:
            result['oneOf'] = [encode_schema(s) for s in self.subschemas.one_of]

        array = self.array
        if array.items is not None:
            if isinstance(array.items, Single):
                result['items'] = encode_schema(array.items.item)
            elif isinstance(array.items, Many):
                result['items'] = [encode_schema(s) for s in array.items.items]
            else:
                raise SchemaEncodeError(f"'items' must be Single or Many, got {type(array.items).__name__}")
        if array.additional_items is not None:
            result['additionalItems'] = encode_schema(array.additional_items)
        if array.max_items is not None:
            result['maxItems'] = _check_count(array.max_items, 'maxItems')
        if array.min_items is not None:
            result['minItems'] = _check_count(array.min_items, 'minItems')
        if array.unique_items is not None:
            if not isinstance(array.unique_items, bool):
                raise SchemaEncodeError("'uniqueItems' must be a boolean")
            result['uniqueItems'] = array.unique_items
        if array.contains is not None:
            result['contains'] = encode_schema(array.contains)

        obj = self.object
        if obj.max_properties is not None:
            result['maxProperties'] = _check_count(obj.max_properties, 'maxProperties')
        if obj.min_properties is not None:
            result['minProperties'] = _check_count(obj.min_properties, 'minProperties')
        if obj.required:
            if not all(isinstance(name, str) for name in obj.required):
                raise SchemaEncodeError("'required' entries must be strings")
            result['required'] = sorted(obj.required)
        if obj.properties:
            result['properties'] = {name: encode_schema(s) for name, s in obj.properties.items()}
        if obj.pattern_properties:
            result['patternProperties'] = {name: encode_schema(s) for name, s in obj.pattern_properties.items()}
        if obj.additional_properties is not None:
            result['additionalProperties'] = encode_schema(obj.additional_properties)
        if obj.property_names is not None:
            result['propertyNames'] = encode_schema(obj.property_names)

        for source in (self.extensions, self.other):
            for key, val in source.items():
                if key in result:
                    raise SchemaEncodeError(f"Keyword {key!r} is defined more than once")
                result[key] = val
        return result


MODELED_KEYWORDS = frozenset([
    'description', 'default', 'type', 'format', 'enum', 'anyOf', 'oneOf',
    'items', 'additionalItems', 'maxItems', 'minItems', 'uniqueItems', 'contains',
    'maxProperties', 'minProperties', 'required', 'properties', 'patternProperties',
    'additionalProperties', 'propertyNames'])


def is_extension_keyword(key: str) -> bool:
    """Vendor keywords: `nullable` and anything prefixed with `x-`."""
    return key == NULLABLE_KEY or key.startswith('x-')


def decode_schema(value: Any) -> Schema:
    """Decode a JSON value into a boolean schema or a `SchemaObject`."""
    if isinstance(value, bool):
        return value
    if isinstance(value, dict):
        return SchemaObject.from_json(value)
    raise SchemaDecodeError(f"Expected a boolean or a schema object, got {type(value).__name__}")


def encode_schema(schema: Schema) -> Union[bool, Dict[str, Any]]:
    """Encode a boolean schema or a `SchemaObject` to JSON."""
    if isinstance(schema, bool):
        return schema
    if isinstance(schema, SchemaObject):
        return schema.to_json()
    raise SchemaEncodeError(f"Expected a boolean or a SchemaObject, got {type(schema).__name__}")


def schemas_equal(left: Schema, right: Schema) -> bool:
    """Structural equality on the encoded form, so that `1` and `true` never compare equal."""
    return canonical_json(encode_schema(left)) == canonical_json(encode_schema(right))


def _decode_str(value: Any, keyword: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise SchemaDecodeError(f"'{keyword}' must be a string, got {type(value).__name__}")
    return value


def _decode_bool(value: Any, keyword: str) -> Optional[bool]:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise SchemaDecodeError(f"'{keyword}' must be a boolean, got {type(value).__name__}")
    return value


def _decode_count(value: Any, keyword: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= U32_MAX:
        raise SchemaDecodeError(f"'{keyword}' must be a non-negative integer, got {value!r}")
    return value


def _decode_instance_type(value: Any) -> Optional[SingleOrMany[InstanceType]]:
    if value is None:
        return None
    if isinstance(value, str):
        return Single(_parse_instance_type(value))
    if isinstance(value, list):
        return Many([_parse_instance_type(v) for v in value])
    raise SchemaDecodeError(f"'type' must be a string or an array, got {type(value).__name__}")


def _parse_instance_type(value: Any) -> InstanceType:
    if not isinstance(value, str):
        raise SchemaDecodeError(f"Unknown instance type {value!r}")
    try:
        return InstanceType(value)
    except ValueError as e:
        raise SchemaDecodeError(f"Unknown instance type {value!r}") from e


def _decode_optional_schema(value: Any, keyword: str) -> Optional[Schema]:
    if value is None:
        return None
    try:
        return decode_schema(value)
    except SchemaDecodeError as e:
        raise SchemaDecodeError(f"'{keyword}': {e}") from e


def _decode_schema_list(value: Any, keyword: str) -> Optional[List[Schema]]:
    if value is None:
        return None
    if not isinstance(value, list):
        raise SchemaDecodeError(f"'{keyword}' must be an array, got {type(value).__name__}")
    schemas = []
    for index, item in enumerate(value):
        try:
            schemas.append(decode_schema(item))
        except SchemaDecodeError as e:
            raise SchemaDecodeError(f"'{keyword}/{index}': {e}") from e
    return schemas


def _decode_schema_map(value: Any, keyword: str) -> Dict[str, Schema]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SchemaDecodeError(f"'{keyword}' must be an object, got {type(value).__name__}")
    schemas = {}
    for name, item in value.items():
        try:
            schemas[name] = decode_schema(item)
        except SchemaDecodeError as e:
            raise SchemaDecodeError(f"'{keyword}/{name}': {e}") from e
    return schemas


def _decode_items(value: Any) -> Optional[SingleOrMany[Schema]]:
    if value is None:
        return None
    if isinstance(value, list):
        return Many(_decode_schema_list(value, 'items'))
    return Single(_decode_optional_schema(value, 'items'))


def _decode_required(value: Any) -> Set[str]:
    if value is None:
        return set()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise SchemaDecodeError(f"'required' must be an array of strings, got {value!r}")
    return set(value)


def _check_str(value: Any, keyword: str) -> str:
    if not isinstance(value, str):
        raise SchemaEncodeError(f"'{keyword}' must be a string, got {type(value).__name__}")
    return value


def _check_count(value: Any, keyword: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise SchemaEncodeError(f"'{keyword}' must be a non-negative integer, got {value!r}")
    return value


def _encode_instance_type(value: Any) -> Union[str, List[str]]:
    if isinstance(value, Single):
        return _check_instance_type(value.item)
    if isinstance(value, Many):
        return [_check_instance_type(t) for t in value.items]
    raise SchemaEncodeError(f"'type' must be Single or Many, got {type(value).__name__}")


def _check_instance_type(value: Any) -> str:
    if not isinstance(value, InstanceType):
        raise SchemaEncodeError(f"Unknown instance type {value!r}")
    return value.value
