"""Pydantic models of a compiled interface descriptor set.

A descriptor set is the element-tree input of a :class:`~svcconfig.model.model.Model`:
a list of files, each declaring a package plus messages, enums, and services.
Type references inside a descriptor (``FieldDescriptor.type_name``,
``MethodDescriptor.input_type``, ...) are names relative to the declaring
scope, or absolute when prefixed with ``"."``.

Descriptor sets are produced by the OpenAPI importer and by
:class:`~svcconfig.processors.descriptor_generator.DescriptorGenerator`, which
reconstructs one from a normalized service configuration.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, Field

from svcconfig.models import FieldKind


class Label(str, enum.Enum):
    """Field cardinality as declared in a descriptor."""

    LABEL_OPTIONAL = "LABEL_OPTIONAL"
    LABEL_REQUIRED = "LABEL_REQUIRED"
    LABEL_REPEATED = "LABEL_REPEATED"


class FieldDescriptor(BaseModel):
    """A field of a message.

    ``type_name`` is only meaningful for message and enum kinds.
    """

    name: str
    number: int
    label: Label = Label.LABEL_OPTIONAL
    kind: FieldKind = FieldKind.TYPE_STRING
    type_name: str = ""
    json_name: str = ""
    options: dict[str, str] = Field(default_factory=dict)


class EnumValueDescriptor(BaseModel):
    name: str
    number: int


class EnumDescriptor(BaseModel):
    name: str
    values: list[EnumValueDescriptor] = Field(default_factory=list)
    options: dict[str, str] = Field(default_factory=dict)


class MessageDescriptor(BaseModel):
    """A message type, possibly nesting further messages and enums."""

    name: str
    fields: list[FieldDescriptor] = Field(default_factory=list)
    nested_types: list[MessageDescriptor] = Field(default_factory=list)
    enum_types: list[EnumDescriptor] = Field(default_factory=list)
    options: dict[str, str] = Field(default_factory=dict)

    @property
    def is_map_entry(self) -> bool:
        return self.options.get("map_entry") == "true"


class MethodDescriptor(BaseModel):
    name: str
    input_type: str
    output_type: str
    client_streaming: bool = False
    server_streaming: bool = False
    options: dict[str, str] = Field(default_factory=dict)


class ServiceDescriptor(BaseModel):
    """An interface declaring RPC methods."""

    name: str
    methods: list[MethodDescriptor] = Field(default_factory=list)
    options: dict[str, str] = Field(default_factory=dict)


class FileDescriptor(BaseModel):
    """One source file of the descriptor set.

    ``comments`` maps a full element name to its leading documentation
    comment, the way source info is attached to compiled descriptors.
    """

    name: str
    package: str = ""
    dependencies: list[str] = Field(default_factory=list)
    message_types: list[MessageDescriptor] = Field(default_factory=list)
    enum_types: list[EnumDescriptor] = Field(default_factory=list)
    services: list[ServiceDescriptor] = Field(default_factory=list)
    syntax: str = "proto3"
    comments: dict[str, str] = Field(default_factory=dict)


class FileDescriptorSet(BaseModel):
    files: list[FileDescriptor] = Field(default_factory=list)
