"""The element tree of a model.

Elements form a strict ownership tree rooted at the
:class:`~svcconfig.model.model.Model`::

    Model
    +-- ProtoFile
        +-- Interface
        |   +-- Method
        +-- MessageType
        |   +-- Field
        |   +-- MessageType (nested)
        |   +-- EnumType (nested)
        +-- EnumType
            +-- EnumValue

``parent`` is a plain back-reference. The full name of an element is derived
from its parents: a file contributes its package, every other element its
simple name, joined with ``"."``.

Each element carries an :class:`~svcconfig.model.attributes.AttributeStore`;
the slots processors fill are declared at the bottom of this module and next
to the aspects that own them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Optional

from svcconfig.descriptor import (
    EnumDescriptor,
    FieldDescriptor,
    FileDescriptor,
    Label,
    MessageDescriptor,
    MethodDescriptor,
    ServiceDescriptor,
)
from svcconfig.diag import ConfigLocation, Location, SimpleLocation
from svcconfig.model.attributes import AttributeKey, AttributeStore, declare_slot
from svcconfig.model.stages import RESOLVED
from svcconfig.models import Cardinality, FieldKind

PRIMITIVE_TYPE_NAMES: dict[str, FieldKind] = {
    "double": FieldKind.TYPE_DOUBLE,
    "float": FieldKind.TYPE_FLOAT,
    "int64": FieldKind.TYPE_INT64,
    "uint64": FieldKind.TYPE_UINT64,
    "int32": FieldKind.TYPE_INT32,
    "fixed64": FieldKind.TYPE_FIXED64,
    "fixed32": FieldKind.TYPE_FIXED32,
    "bool": FieldKind.TYPE_BOOL,
    "string": FieldKind.TYPE_STRING,
    "bytes": FieldKind.TYPE_BYTES,
    "uint32": FieldKind.TYPE_UINT32,
    "sfixed32": FieldKind.TYPE_SFIXED32,
    "sfixed64": FieldKind.TYPE_SFIXED64,
    "sint32": FieldKind.TYPE_SINT32,
    "sint64": FieldKind.TYPE_SINT64,
}
"""Scalar type names accepted wherever a type name is expected."""

_PRIMITIVE_NAME_BY_KIND = {kind: name for name, kind in PRIMITIVE_TYPE_NAMES.items()}


# --- Base ---


class Element:
    """Base class of all model elements."""

    kind_name = "element"

    def __init__(
        self,
        parent: Optional[Element],
        simple_name: str,
        location: Optional[Location] = None,
    ) -> None:
        self.parent = parent
        self._simple_name = simple_name
        self._location = location
        self._attributes = AttributeStore()

    @property
    def simple_name(self) -> str:
        return self._simple_name

    @property
    def full_name(self) -> str:
        prefix = self.parent.full_name if self.parent is not None else ""
        return f"{prefix}.{self._simple_name}" if prefix else self._simple_name

    @property
    def location(self) -> Location:
        if self._location is not None:
            return self._location
        if self.parent is not None:
            return self.parent.location
        return SimpleLocation.TOPLEVEL

    @property
    def model(self) -> Any:
        element: Element = self
        while element.parent is not None:
            element = element.parent
        return element

    @property
    def file(self) -> Optional[ProtoFile]:
        element: Optional[Element] = self
        while element is not None and not isinstance(element, ProtoFile):
            element = element.parent
        return element

    def children(self) -> Iterator[Element]:
        return iter(())

    def walk(self) -> Iterator[Element]:
        """Yield this element and all of its descendants, parents first."""
        yield self
        for child in self.children():
            yield from child.walk()

    # --- attributes ---

    def has_attribute(self, key: AttributeKey[Any]) -> bool:
        return self._attributes.has(key)

    def get_attribute(self, key: AttributeKey[Any], default: Any = None) -> Any:
        return self._attributes.get(key, default)

    def put_attribute(self, key: AttributeKey[Any], value: Any) -> None:
        self._attributes.put(self, key, value)

    def __str__(self) -> str:
        return self.full_name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.full_name!r})"


# --- Files ---


class ProtoFile(Element):
    """A descriptor file: the package scope of its top-level declarations."""

    kind_name = "file"

    def __init__(self, model: Element, descriptor: FileDescriptor, is_source: bool = True) -> None:
        super().__init__(model, descriptor.name, ConfigLocation(file_name=descriptor.name))
        self.descriptor = descriptor
        self.is_source = is_source
        self.interfaces = [Interface(self, s) for s in descriptor.services]
        self.messages = [MessageType(self, m) for m in descriptor.message_types]
        self.enums = [EnumType(self, e) for e in descriptor.enum_types]

    @property
    def package(self) -> str:
        return self.descriptor.package

    @property
    def full_name(self) -> str:
        return self.descriptor.package

    def children(self) -> Iterator[Element]:
        yield from self.interfaces
        yield from self.messages
        yield from self.enums

    def comment_for(self, element: Element) -> str:
        return self.descriptor.comments.get(element.full_name, "")


def documentation_comment(element: Element) -> str:
    """Return the source comment attached to *element*, or ``""``."""
    file = element.file
    return file.comment_for(element) if file is not None else ""


# --- Interfaces ---


class Interface(Element):
    kind_name = "interface"

    def __init__(self, parent: ProtoFile, descriptor: ServiceDescriptor) -> None:
        super().__init__(parent, descriptor.name)
        self.descriptor = descriptor
        self.methods = [Method(self, m) for m in descriptor.methods]

    def children(self) -> Iterator[Element]:
        return iter(self.methods)

    def lookup_method(self, name: str) -> Optional[Method]:
        for method in self.methods:
            if method.simple_name == name:
                return method
        return None


class Method(Element):
    """An RPC method. Input and output types are bound by the resolver."""

    kind_name = "method"

    def __init__(self, parent: Interface, descriptor: MethodDescriptor) -> None:
        super().__init__(parent, descriptor.name)
        self.descriptor = descriptor

    @property
    def interface(self) -> Interface:
        return self.parent

    @property
    def request_streaming(self) -> bool:
        return self.descriptor.client_streaming

    @property
    def response_streaming(self) -> bool:
        return self.descriptor.server_streaming

    @property
    def input_type(self) -> Optional[TypeRef]:
        return self.get_attribute(INPUT_TYPE)

    @property
    def output_type(self) -> Optional[TypeRef]:
        return self.get_attribute(OUTPUT_TYPE)

    @property
    def input_message(self) -> Optional[MessageType]:
        ref = self.input_type
        return ref.message_type if ref is not None else None


# --- Messages ---


class MessageType(Element):
    kind_name = "message"

    def __init__(self, parent: Element, descriptor: MessageDescriptor) -> None:
        super().__init__(parent, descriptor.name)
        self.descriptor = descriptor
        self.fields = [Field(self, f) for f in descriptor.fields]
        self.messages = [MessageType(self, m) for m in descriptor.nested_types]
        self.enums = [EnumType(self, e) for e in descriptor.enum_types]

    @property
    def is_map_entry(self) -> bool:
        return self.descriptor.is_map_entry

    def children(self) -> Iterator[Element]:
        yield from self.fields
        yield from self.messages
        yield from self.enums

    def lookup_field(self, name: str) -> Optional[Field]:
        for field in self.fields:
            if field.simple_name == name:
                return field
        return None


class Field(Element):
    """A message field. The field type is bound by the resolver."""

    kind_name = "field"

    def __init__(self, parent: MessageType, descriptor: FieldDescriptor) -> None:
        super().__init__(parent, descriptor.name)
        self.descriptor = descriptor

    @property
    def number(self) -> int:
        return self.descriptor.number

    @property
    def json_name(self) -> str:
        return self.descriptor.json_name

    @property
    def type(self) -> Optional[TypeRef]:
        return self.get_attribute(FIELD_TYPE)

    @property
    def is_repeated(self) -> bool:
        return self.descriptor.label == Label.LABEL_REPEATED


# --- Enums ---


class EnumType(Element):
    kind_name = "enum"

    def __init__(self, parent: Element, descriptor: EnumDescriptor) -> None:
        super().__init__(parent, descriptor.name)
        self.descriptor = descriptor
        self.values = [EnumValue(self, v.name, v.number) for v in descriptor.values]

    def children(self) -> Iterator[Element]:
        return iter(self.values)

    def lookup_value(self, name: str) -> Optional[EnumValue]:
        for value in self.values:
            if value.simple_name == name:
                return value
        return None


class EnumValue(Element):
    kind_name = "enum value"

    def __init__(self, parent: EnumType, name: str, number: int) -> None:
        super().__init__(parent, name)
        self.number = number

    @property
    def full_name(self) -> str:
        # Enum values are scoped like siblings of their enum type.
        enum_scope = self.parent.parent.full_name if self.parent.parent is not None else ""
        return f"{enum_scope}.{self.simple_name}" if enum_scope else self.simple_name


# --- Type references ---


_CARDINALITY_BY_LABEL = {
    Label.LABEL_OPTIONAL: Cardinality.CARDINALITY_OPTIONAL,
    Label.LABEL_REQUIRED: Cardinality.CARDINALITY_REQUIRED,
    Label.LABEL_REPEATED: Cardinality.CARDINALITY_REPEATED,
}


@dataclass(frozen=True)
class TypeRef:
    """The resolved type of a field, or of a method input/output.

    Exactly one of ``message_type`` / ``enum_type`` is set for message and
    enum kinds; both are ``None`` for primitives.
    """

    kind: FieldKind
    cardinality: Cardinality = Cardinality.CARDINALITY_OPTIONAL
    message_type: Optional[MessageType] = None
    enum_type: Optional[EnumType] = None

    @classmethod
    def of_primitive(cls, kind: FieldKind) -> TypeRef:
        return cls(kind)

    @classmethod
    def of_message(cls, message: MessageType) -> TypeRef:
        return cls(FieldKind.TYPE_MESSAGE, message_type=message)

    @classmethod
    def of_enum(cls, enum_type: EnumType) -> TypeRef:
        return cls(FieldKind.TYPE_ENUM, enum_type=enum_type)

    def with_label(self, label: Label) -> TypeRef:
        return TypeRef(self.kind, _CARDINALITY_BY_LABEL[label], self.message_type, self.enum_type)

    @property
    def is_message(self) -> bool:
        return self.message_type is not None

    @property
    def is_enum(self) -> bool:
        return self.enum_type is not None

    @property
    def is_primitive(self) -> bool:
        return not self.is_message and not self.is_enum

    @property
    def is_repeated(self) -> bool:
        return self.cardinality == Cardinality.CARDINALITY_REPEATED

    @property
    def is_map(self) -> bool:
        message = self.message_type
        return self.is_repeated and message is not None and message.is_map_entry

    @property
    def type_name(self) -> str:
        if self.message_type is not None:
            return self.message_type.full_name
        if self.enum_type is not None:
            return self.enum_type.full_name
        return _PRIMITIVE_NAME_BY_KIND.get(self.kind, self.kind.value)

    def __str__(self) -> str:
        prefix = "repeated " if self.is_repeated else ""
        return prefix + self.type_name


# --- Slots bound by name resolution ---

FIELD_TYPE = declare_slot(Field, AttributeKey("field_type", TypeRef), RESOLVED, required=True)
INPUT_TYPE = declare_slot(Method, AttributeKey("input_type", TypeRef), RESOLVED, required=True)
OUTPUT_TYPE = declare_slot(Method, AttributeKey("output_type", TypeRef), RESOLVED, required=True)
