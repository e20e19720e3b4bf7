"""Translate OpenAPI schemas into service-config message types.

The translator maps every schema node to a :class:`TypeInfo` and registers
the message types it has to synthesize on the way. Schemas are classified in
this order:

1. ``allOf`` / ``anyOf`` / ``oneOf`` -> ``google.protobuf.Value``. Unions are
   not expanded.
2. Arrays -> the item type, repeated. An array of arrays cannot be
   represented and becomes a repeated ``google.protobuf.ListValue``.
3. ``$ref`` -> the referenced named schema, translated once and memoized.
4. A named schema of a primitive type -> the matching wrapper type
   (``google.protobuf.StringValue``, ...).
5. Objects with both ``properties`` and ``additionalProperties`` ->
   ``google.protobuf.Struct``.
6. Objects with only ``additionalProperties`` -> a map: a repeated
   ``MapEntry`` message with ``key`` and ``value`` fields.
7. Objects with only ``properties`` -> a message with one field per
   property, numbered from 1 in declaration order.

Anything else degrades to ``google.protobuf.Value``; translation never fails.

Named schemas get a placeholder entry before their properties are
translated, so self- and mutually-referential schemas terminate and produce
exactly one type each. Inline objects stay structural until
:meth:`TypeBuilder.ensure_named` gives them a name; clashing names get a
numeric suffix (``FooValue``, ``FooValue1``, ...).

Example::

    builder = TypeBuilder(document, "petstore.v1")
    builder.add_all_definitions()
    for type_config in builder.types:
        print(type_config.name)
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from svcconfig.importer import names
from svcconfig.importer.type_info import TypeInfo
from svcconfig.importer.well_known import WellKnownType, is_primitive_type, primitive_kind
from svcconfig.models import (
    TYPE_URL_PREFIX,
    Cardinality,
    FieldKind,
    Option,
    SourceContext,
    Syntax,
    Type,
    TypeField,
)

logger = logging.getLogger(__name__)

SWAGGER_REF_PREFIX = "#/definitions/"
OPENAPI_REF_PREFIX = "#/components/schemas/"

_COMPOSED_KEYS = ("allOf", "anyOf", "oneOf")


def schema_type(schema: Mapping[str, Any]) -> Optional[str]:
    """Return the declared type of *schema*.

    OpenAPI 3.1 allows a list of types (``["string", "null"]``); the first
    non-null entry is used.
    """
    type_value = schema.get("type")
    if isinstance(type_value, list):
        non_null = [t for t in type_value if t != "null"]
        return str(non_null[0]) if non_null else None
    return str(type_value) if type_value is not None else None


def definitions_of(document: Mapping[str, Any]) -> tuple[dict[str, Any], str]:
    """Return the named schemas of *document* and the ``$ref`` prefix addressing them."""
    if "swagger" in document:
        return dict(document.get("definitions") or {}), SWAGGER_REF_PREFIX
    components = document.get("components") or {}
    return dict(components.get("schemas") or {}), OPENAPI_REF_PREFIX


def _has_additional_properties(schema: Mapping[str, Any]) -> bool:
    additional = schema.get("additionalProperties")
    return additional is not None and additional is not False


class TypeBuilder:
    """Translates the schemas of one document into types of one namespace.

    Args:
        document: The loaded OpenAPI or Swagger document.
        namespace: Proto package of the synthesized types. Also used as the
            source file name of every synthesized type.
    """

    def __init__(self, document: Mapping[str, Any], namespace: str) -> None:
        self._definitions, self._ref_prefix = definitions_of(document)
        self._namespace = namespace
        self._prefix = namespace if not namespace or namespace.endswith(".") else namespace + "."
        self._processed: dict[str, TypeInfo] = {}
        self._created: set[str] = set()
        self._types: dict[str, Type] = {}

    @property
    def types(self) -> list[Type]:
        """The synthesized types, sorted by name."""
        return sorted(self._types.values(), key=lambda t: t.name)

    @property
    def namespace(self) -> str:
        return self._namespace

    def add_all_definitions(self) -> None:
        """Translate every named schema of the document, in name order."""
        for name in sorted(self._definitions):
            self.add_type_from_schema(name, self._definitions[name])

    # ------------------------------------------------------------------ #
    # Named schemas
    # ------------------------------------------------------------------ #

    def add_type_from_schema(self, type_name: str, schema: Any) -> TypeInfo:
        """Translate the named schema *type_name*, once.

        Later calls for the same name return the memoized result, including
        while the schema itself is still being translated. A message schema
        that refers to itself sees its own placeholder; any other shape that
        refers to itself, such as an array of itself, sees
        ``google.protobuf.Value``.
        """
        ref_id = self._ref_prefix + type_name
        if ref_id in self._processed:
            return self._processed[ref_id]
        self._processed[ref_id] = WellKnownType.VALUE.to_type_info()
        if not isinstance(schema, Mapping):
            result = WellKnownType.VALUE.to_type_info()
        elif any(key in schema for key in _COMPOSED_KEYS):
            result = WellKnownType.VALUE.to_type_info()
        elif schema_type(schema) == "array":
            result = self._array_type_info(schema.get("items"))
        elif "$ref" in schema:
            result = self._ref_type_info(schema["$ref"])
        elif self._is_primitive_wrapper(schema):
            result = WellKnownType.from_string(schema_type(schema)).to_type_info()
        elif _has_additional_properties(schema) and schema.get("properties"):
            result = WellKnownType.STRUCT.to_type_info()
        elif _has_additional_properties(schema):
            result = self._map_type_info(schema["additionalProperties"])
        else:
            result = self._message_type_info(ref_id, type_name, schema)
        self._processed[ref_id] = result
        return result

    def _message_type_info(
        self, ref_id: str, type_name: str, schema: Mapping[str, Any]
    ) -> TypeInfo:
        full_name = self._prefix + self.unique_type_name(
            names.schema_name_to_message_name(type_name)
        )
        self._created.add(full_name)
        placeholder = TypeInfo.message(TYPE_URL_PREFIX + full_name)
        self._processed[ref_id] = placeholder
        fields = self._property_fields(schema.get("properties") or {})
        self._register_type(full_name, fields)
        logger.debug("Translated schema '%s' to type '%s'", type_name, full_name)
        return placeholder

    def _is_primitive_wrapper(self, schema: Mapping[str, Any]) -> bool:
        return (
            not schema.get("properties")
            and not _has_additional_properties(schema)
            and is_primitive_type(schema_type(schema))
        )

    def _ref_type_info(self, ref: str) -> TypeInfo:
        if not ref.startswith(self._ref_prefix):
            logger.warning("Unsupported schema reference '%s', using google.protobuf.Value", ref)
            return WellKnownType.VALUE.to_type_info()
        name = ref[len(self._ref_prefix):].replace("~1", "/").replace("~0", "~")
        if name not in self._definitions:
            logger.warning("Unknown schema reference '%s', using google.protobuf.Value", ref)
            return WellKnownType.VALUE.to_type_info()
        return self.add_type_from_schema(name, self._definitions[name])

    # ------------------------------------------------------------------ #
    # Schema nodes
    # ------------------------------------------------------------------ #

    def type_info(self, schema: Any) -> TypeInfo:
        """Translate an inline schema node.

        Inline objects with properties are returned structural (without a
        type url); primitives map to scalar kinds rather than wrappers.
        """
        if not isinstance(schema, Mapping):
            return WellKnownType.VALUE.to_type_info()
        if any(key in schema for key in _COMPOSED_KEYS):
            return WellKnownType.VALUE.to_type_info()
        if "$ref" in schema:
            return self._ref_type_info(schema["$ref"])
        declared = schema_type(schema)
        if declared == "array":
            return self._array_type_info(schema.get("items"))
        if is_primitive_type(declared):
            return TypeInfo.primitive(
                primitive_kind(WellKnownType.from_string(declared), schema.get("format"))
            )
        properties = schema.get("properties")
        if _has_additional_properties(schema) and properties:
            return WellKnownType.STRUCT.to_type_info()
        if _has_additional_properties(schema):
            return self._map_type_info(schema["additionalProperties"])
        if properties:
            fields = self._property_fields(properties)
            return TypeInfo(None, FieldKind.TYPE_MESSAGE, fields=fields)
        if declared == "object":
            return WellKnownType.STRUCT.to_type_info()
        return WellKnownType.VALUE.to_type_info()

    def _array_type_info(self, items: Any) -> TypeInfo:
        item = self.ensure_named(self.type_info(items), "ArrayEntry")
        if item.is_repeated:
            return WellKnownType.LIST.to_type_info().with_cardinality(
                Cardinality.CARDINALITY_REPEATED
            )
        return item.with_cardinality(Cardinality.CARDINALITY_REPEATED)

    def _map_type_info(self, additional: Any) -> TypeInfo:
        if additional is True:
            additional = {}
        value = self.ensure_named(self.type_info(additional), "MapValue")
        entry = TypeInfo(
            None,
            FieldKind.TYPE_MESSAGE,
            fields=(
                self.create_field("key", 1, TypeInfo.primitive(FieldKind.TYPE_STRING)),
                self.create_field("value", 2, value),
            ),
            is_map_entry=True,
        )
        entry = self.ensure_named(entry, "MapEntry")
        return entry.with_cardinality(Cardinality.CARDINALITY_REPEATED)

    def _property_fields(self, properties: Mapping[str, Any]) -> tuple[TypeField, ...]:
        fields = []
        for number, (property_name, property_schema) in enumerate(properties.items(), start=1):
            info = self.ensure_named(
                self.type_info(property_schema),
                names.property_name_to_message_name(property_name),
            )
            fields.append(self.create_field(property_name, number, info))
        return tuple(fields)

    # ------------------------------------------------------------------ #
    # Request messages
    # ------------------------------------------------------------------ #

    def create_type_from_parameters(
        self, type_name: str, parameters: Sequence[Mapping[str, Any]]
    ) -> TypeInfo:
        """Synthesize a request message with one field per parameter.

        Body parameters (``in: body``) carry their schema under ``schema``;
        other parameters carry either a ``schema`` (OpenAPI 3) or inline
        ``type`` / ``format`` / ``items`` (Swagger 2).
        """
        full_name = self._prefix + self.unique_type_name(type_name)
        self._created.add(full_name)
        fields = []
        for number, parameter in enumerate(parameters, start=1):
            name = str(parameter.get("name", ""))
            if parameter.get("in") == "body":
                info = self.ensure_named(
                    self.type_info(parameter.get("schema")), type_name + "Body"
                )
            else:
                info = self.ensure_named(
                    self.type_info(parameter.get("schema", parameter)),
                    names.property_name_to_message_name(name),
                )
            fields.append(self.create_field(name, number, info))
        self._register_type(full_name, tuple(fields))
        return TypeInfo.message(TYPE_URL_PREFIX + full_name)

    # ------------------------------------------------------------------ #
    # Naming and registration
    # ------------------------------------------------------------------ #

    def ensure_named(self, info: TypeInfo, name_suggestion: str) -> TypeInfo:
        """Register a structural message type under a unique name.

        Named and non-message infos are returned unchanged.
        """
        if not info.is_message or info.is_named:
            return info
        full_name = self._prefix + self.unique_type_name(name_suggestion)
        self._register_type(full_name, info.fields or (), map_entry=info.is_map_entry)
        return info.with_type_url(TYPE_URL_PREFIX + full_name)

    def unique_type_name(self, name: str) -> str:
        """Return *name*, or *name* with the smallest numeric suffix not yet taken."""
        candidate = name
        suffix = 1
        while self._prefix + candidate in self._created:
            candidate = f"{name}{suffix}"
            suffix += 1
        return candidate

    def create_field(self, json_name: str, number: int, info: TypeInfo) -> TypeField:
        cardinality = info.cardinality
        if cardinality == Cardinality.CARDINALITY_UNKNOWN:
            cardinality = Cardinality.CARDINALITY_OPTIONAL
        return TypeField(
            kind=info.kind,
            cardinality=cardinality,
            number=number,
            name=names.get_field_name(json_name),
            json_name=json_name,
            type_url=(info.type_url or "") if info.is_message else "",
        )

    def _register_type(
        self, full_name: str, fields: tuple[TypeField, ...], map_entry: bool = False
    ) -> None:
        self._created.add(full_name)
        if full_name in self._types:
            return
        self._types[full_name] = Type(
            name=full_name,
            fields=list(fields),
            options=[Option(name="map_entry", value="true")] if map_entry else [],
            source_context=SourceContext(file_name=self._namespace),
            syntax=Syntax.SYNTAX_PROTO3,
        )
        logger.debug("Registered type '%s'", full_name)
