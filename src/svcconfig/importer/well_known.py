"""Well-known protobuf types used by the schema translator.

Schemas that have no faithful message representation translate to one of
the ``google.protobuf`` types below. The translator only references them by
url; :func:`well_known_definitions` supplies their definitions so a model
can resolve the references.
"""

from __future__ import annotations

import enum
from typing import Iterable, Optional

from svcconfig.importer.type_info import TypeInfo
from svcconfig.models import (
    TYPE_URL_PREFIX,
    Cardinality,
    Enum,
    EnumValue,
    FieldKind,
    Option,
    SourceContext,
    Syntax,
    Type,
    TypeField,
)


class WellKnownType(enum.Enum):
    """Fallback types, keyed by the OpenAPI type name they stand in for.

    The value is ``(type_url, is_primitive)``.
    """

    STRING = (TYPE_URL_PREFIX + "google.protobuf.StringValue", True)
    INTEGER = (TYPE_URL_PREFIX + "google.protobuf.Int32Value", True)
    BOOLEAN = (TYPE_URL_PREFIX + "google.protobuf.BoolValue", True)
    NUMBER = (TYPE_URL_PREFIX + "google.protobuf.DoubleValue", True)
    LIST = (TYPE_URL_PREFIX + "google.protobuf.ListValue", False)
    VALUE = (TYPE_URL_PREFIX + "google.protobuf.Value", False)
    STRUCT = (TYPE_URL_PREFIX + "google.protobuf.Struct", False)
    EMPTY = (TYPE_URL_PREFIX + "google.protobuf.Empty", False)

    @property
    def type_url(self) -> str:
        return self.value[0]

    @property
    def is_primitive(self) -> bool:
        return self.value[1]

    def to_type_info(self) -> TypeInfo:
        return TypeInfo.message(self.type_url)

    @classmethod
    def from_string(cls, type_name: Optional[str]) -> Optional[WellKnownType]:
        for known in cls:
            if known.name.lower() == type_name:
                return known
        return None


def is_primitive_type(type_name: Optional[str]) -> bool:
    known = WellKnownType.from_string(type_name)
    return known is not None and known.is_primitive


_INTEGER_FORMATS = {
    "int32": FieldKind.TYPE_INT32,
    "uint32": FieldKind.TYPE_UINT32,
    "int64": FieldKind.TYPE_INT64,
}
_NUMBER_FORMATS = {"float": FieldKind.TYPE_FLOAT, "double": FieldKind.TYPE_DOUBLE}
_STRING_FORMATS = {
    "int64": FieldKind.TYPE_INT64,
    "uint64": FieldKind.TYPE_UINT64,
    "byte": FieldKind.TYPE_BYTES,
}


def primitive_kind(known: WellKnownType, format_hint: Optional[str]) -> FieldKind:
    """Map a primitive OpenAPI type and optional format to a field kind.

    Unknown formats fall back to the widest common kind of the type.
    """
    if known is WellKnownType.INTEGER:
        return _INTEGER_FORMATS.get(format_hint or "", FieldKind.TYPE_INT32)
    if known is WellKnownType.NUMBER:
        return _NUMBER_FORMATS.get(format_hint or "", FieldKind.TYPE_DOUBLE)
    if known is WellKnownType.STRING:
        return _STRING_FORMATS.get(format_hint or "", FieldKind.TYPE_STRING)
    if known is WellKnownType.BOOLEAN:
        return FieldKind.TYPE_BOOL
    return FieldKind.TYPE_UNKNOWN


# --- Definitions ---

_WRAPPERS_FILE = "google/protobuf/wrappers.proto"
_STRUCT_FILE = "google/protobuf/struct.proto"
_EMPTY_FILE = "google/protobuf/empty.proto"


def _field(
    name: str,
    number: int,
    kind: FieldKind,
    json_name: str,
    type_name: str = "",
    repeated: bool = False,
) -> TypeField:
    return TypeField(
        kind=kind,
        cardinality=(
            Cardinality.CARDINALITY_REPEATED if repeated else Cardinality.CARDINALITY_OPTIONAL
        ),
        number=number,
        name=name,
        json_name=json_name,
        type_url=TYPE_URL_PREFIX + type_name if type_name else "",
    )


def _type(name: str, file_name: str, fields: list[TypeField], map_entry: bool = False) -> Type:
    return Type(
        name=name,
        fields=fields,
        options=[Option(name="map_entry", value="true")] if map_entry else [],
        source_context=SourceContext(file_name=file_name),
        syntax=Syntax.SYNTAX_PROTO3,
    )


def _wrapper(name: str, kind: FieldKind) -> Type:
    return _type(name, _WRAPPERS_FILE, [_field("value", 1, kind, "value")])


STRUCT = "google.protobuf.Struct"
LIST_VALUE = "google.protobuf.ListValue"
NULL_VALUE = "google.protobuf.NullValue"


def _struct_types() -> list[Type]:
    value = "google.protobuf.Value"
    return [
        _type(
            STRUCT,
            _STRUCT_FILE,
            [
                _field(
                    "fields",
                    1,
                    FieldKind.TYPE_MESSAGE,
                    "fields",
                    "google.protobuf.Struct.FieldsEntry",
                    repeated=True,
                )
            ],
        ),
        _type(
            "google.protobuf.Struct.FieldsEntry",
            _STRUCT_FILE,
            [
                _field("key", 1, FieldKind.TYPE_STRING, "key"),
                _field("value", 2, FieldKind.TYPE_MESSAGE, "value", value),
            ],
            map_entry=True,
        ),
        _type(
            value,
            _STRUCT_FILE,
            [
                _field("null_value", 1, FieldKind.TYPE_ENUM, "nullValue", NULL_VALUE),
                _field("number_value", 2, FieldKind.TYPE_DOUBLE, "numberValue"),
                _field("string_value", 3, FieldKind.TYPE_STRING, "stringValue"),
                _field("bool_value", 4, FieldKind.TYPE_BOOL, "boolValue"),
                _field("struct_value", 5, FieldKind.TYPE_MESSAGE, "structValue", STRUCT),
                _field("list_value", 6, FieldKind.TYPE_MESSAGE, "listValue", LIST_VALUE),
            ],
        ),
        _type(
            LIST_VALUE,
            _STRUCT_FILE,
            [_field("values", 1, FieldKind.TYPE_MESSAGE, "values", value, repeated=True)],
        ),
    ]


def well_known_definitions(type_urls: Iterable[str]) -> tuple[list[Type], list[Enum]]:
    """Return the definitions needed to resolve the given well-known type urls.

    Urls of other types are ignored. Any of ``Value``, ``Struct`` and
    ``ListValue`` pulls in all of ``struct.proto``, since they refer to each
    other.
    """
    wanted = set(type_urls)
    types: list[Type] = []
    enums: list[Enum] = []
    wrappers = (
        (WellKnownType.STRING, FieldKind.TYPE_STRING),
        (WellKnownType.INTEGER, FieldKind.TYPE_INT32),
        (WellKnownType.BOOLEAN, FieldKind.TYPE_BOOL),
        (WellKnownType.NUMBER, FieldKind.TYPE_DOUBLE),
    )
    for known, kind in wrappers:
        if known.type_url in wanted:
            types.append(_wrapper(known.type_url[len(TYPE_URL_PREFIX):], kind))
    struct_urls = {
        WellKnownType.VALUE.type_url,
        WellKnownType.STRUCT.type_url,
        WellKnownType.LIST.type_url,
    }
    if wanted & struct_urls:
        types.extend(_struct_types())
        enums.append(
            Enum(
                name=NULL_VALUE,
                enumvalue=[EnumValue(name="NULL_VALUE", number=0)],
                source_context=SourceContext(file_name=_STRUCT_FILE),
                syntax=Syntax.SYNTAX_PROTO3,
            )
        )
    if WellKnownType.EMPTY.type_url in wanted:
        types.append(_type("google.protobuf.Empty", _EMPTY_FILE, []))
    return types, enums

