"""Reconstructs a descriptor set from a normalized service configuration.

Tools that only have the normalized configuration can rebuild the files,
messages, enums, and interfaces it describes without the original sources.
Elements are grouped into files by ``source_context.file_name``. The package
of each file is inferred from the names declared in it; types whose parent
name is another type of the same file become nested types.

Example::

    descriptor_set = DescriptorGenerator(service).generate()
    model = Model.create(descriptor_set)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from svcconfig.descriptor import (
    EnumDescriptor,
    EnumValueDescriptor,
    FieldDescriptor,
    FileDescriptor,
    FileDescriptorSet,
    Label,
    MessageDescriptor,
    MethodDescriptor,
    ServiceDescriptor,
)
from svcconfig.exceptions import ConfigError
from svcconfig.models import (
    TYPE_URL_PREFIX,
    Api,
    ApiMethod,
    Cardinality,
    Enum,
    FieldKind,
    Option,
    Service,
    SourceContext,
    Syntax,
    Type,
    TypeField,
)

DEFAULT_FILE_NAME = "service_config_generated.proto"
"""File name used for elements without a source context."""

_LABELS = {
    Cardinality.CARDINALITY_UNKNOWN: Label.LABEL_OPTIONAL,
    Cardinality.CARDINALITY_OPTIONAL: Label.LABEL_OPTIONAL,
    Cardinality.CARDINALITY_REQUIRED: Label.LABEL_REQUIRED,
    Cardinality.CARDINALITY_REPEATED: Label.LABEL_REPEATED,
}


def _simple_name(name: str) -> str:
    return name.rpartition(".")[2]


def _type_name(url: str) -> str:
    if not url.startswith(TYPE_URL_PREFIX):
        raise ConfigError(
            f"Type url '{url}' does not start with expected prefix {TYPE_URL_PREFIX}"
        )
    return "." + url[len(TYPE_URL_PREFIX):]


def _file_name(context: Optional[SourceContext]) -> str:
    if context is None or not context.file_name:
        return DEFAULT_FILE_NAME
    return context.file_name


def _options(options: list[Option]) -> dict[str, str]:
    return {option.name: option.value for option in options}


@dataclass
class _FileContents:
    package: Optional[str] = None
    syntax: Syntax = Syntax.SYNTAX_PROTO3
    apis: list[Api] = field(default_factory=list)
    types: dict[str, Type] = field(default_factory=dict)
    enums: list[Enum] = field(default_factory=list)
    nested_types: dict[str, list[Type]] = field(default_factory=dict)
    nested_enums: dict[str, list[Enum]] = field(default_factory=dict)

    def update_package(self, file_name: str, element_name: str) -> None:
        candidate = element_name.rpartition(".")[0]
        if self.package is None or self.package.startswith(candidate):
            # A longer provisional package was really a type with nested types.
            self.package = candidate
        elif not candidate.startswith(self.package):
            raise ConfigError(
                f"Package names of elements in '{file_name}' don't agree: "
                f"{self.package}, {candidate}"
            )

    def parent_name(self, name: str) -> Optional[str]:
        parent = name.rpartition(".")[0]
        return None if parent == (self.package or "") else parent

    def resolve_nested(self) -> None:
        for type_config in list(self.types.values()):
            parent = self.parent_name(type_config.name)
            if parent is not None and parent in self.types:
                self.nested_types.setdefault(parent, []).append(type_config)
        for enum_config in self.enums:
            parent = self.parent_name(enum_config.name)
            if parent is not None and parent in self.types:
                self.nested_enums.setdefault(parent, []).append(enum_config)
        for children in self.nested_types.values():
            for child in children:
                self.types.pop(child.name, None)
        nested = {id(e) for children in self.nested_enums.values() for e in children}
        self.enums = [e for e in self.enums if id(e) not in nested]


class DescriptorGenerator:
    """Builds a :class:`FileDescriptorSet` from one normalized :class:`Service`."""

    def __init__(self, service: Service) -> None:
        self._service = service
        self._files: dict[str, _FileContents] = {}
        self._type_files: dict[str, str] = {}
        self._imports: dict[str, list[str]] = {}

    def generate(self) -> FileDescriptorSet:
        """Analyze the configuration and return the reconstructed files.

        Raises:
            ConfigError: If a type url is malformed, or the elements of one
                file disagree on their package.
        """
        self._analyze()
        files = [
            self._file(name, contents)
            for name, contents in self._files.items()
            if contents.apis or contents.types or contents.enums
        ]
        return FileDescriptorSet(files=files)

    # ------------------------------------------------------------------ #
    # Analysis
    # ------------------------------------------------------------------ #

    def _contents(self, context: Optional[SourceContext]) -> _FileContents:
        return self._files.setdefault(_file_name(context), _FileContents())

    def _analyze(self) -> None:
        service = self._service
        for type_config in service.types:
            contents = self._contents(type_config.source_context)
            contents.types[type_config.name] = type_config
            contents.syntax = type_config.syntax
            self._type_files[TYPE_URL_PREFIX + type_config.name] = _file_name(
                type_config.source_context
            )
        for api in service.apis:
            self._contents(api.source_context).apis.append(api)
        for enum_config in service.enums:
            self._contents(enum_config.source_context).enums.append(enum_config)
            self._type_files[TYPE_URL_PREFIX + enum_config.name] = _file_name(
                enum_config.source_context
            )

        for type_config in service.types:
            for type_field in type_config.fields:
                if type_field.kind in (FieldKind.TYPE_MESSAGE, FieldKind.TYPE_ENUM):
                    self._add_reference(type_config.source_context, type_field.type_url)
        for api in service.apis:
            for method in api.methods:
                self._add_reference(api.source_context, method.request_type_url)
                self._add_reference(api.source_context, method.response_type_url)

        for name, contents in self._files.items():
            for api in contents.apis:
                contents.update_package(name, api.name)
            for type_config in contents.types.values():
                contents.update_package(name, type_config.name)
            for enum_config in contents.enums:
                contents.update_package(name, enum_config.name)
            contents.resolve_nested()

    def _add_reference(self, context: Optional[SourceContext], url: str) -> None:
        from_file = _file_name(context)
        imports = self._imports.setdefault(from_file, [])
        to_file = self._type_files.get(url)
        if to_file is not None and to_file != from_file and to_file not in imports:
            imports.append(to_file)

    # ------------------------------------------------------------------ #
    # Generation
    # ------------------------------------------------------------------ #

    def _file(self, name: str, contents: _FileContents) -> FileDescriptor:
        return FileDescriptor(
            name=name,
            package=contents.package or "",
            dependencies=self._imports.get(name, []),
            services=[self._service_descriptor(api) for api in contents.apis],
            message_types=[self._message(t, contents) for t in contents.types.values()],
            enum_types=[self._enum(e) for e in contents.enums],
            syntax="proto3" if contents.syntax == Syntax.SYNTAX_PROTO3 else "proto2",
        )

    def _service_descriptor(self, api: Api) -> ServiceDescriptor:
        return ServiceDescriptor(
            name=_simple_name(api.name),
            methods=[self._method(m) for m in api.methods],
            options=_options(api.options),
        )

    def _method(self, method: ApiMethod) -> MethodDescriptor:
        return MethodDescriptor(
            name=method.name,
            input_type=_type_name(method.request_type_url),
            output_type=_type_name(method.response_type_url),
            client_streaming=method.request_streaming,
            server_streaming=method.response_streaming,
            options=_options(method.options),
        )

    def _message(self, type_config: Type, contents: _FileContents) -> MessageDescriptor:
        return MessageDescriptor(
            name=_simple_name(type_config.name),
            fields=[self._field(f) for f in type_config.fields],
            nested_types=[
                self._message(child, contents)
                for child in contents.nested_types.get(type_config.name, [])
            ],
            enum_types=[self._enum(e) for e in contents.nested_enums.get(type_config.name, [])],
            options=_options(type_config.options),
        )

    def _field(self, type_field: TypeField) -> FieldDescriptor:
        type_name = ""
        if type_field.kind in (FieldKind.TYPE_MESSAGE, FieldKind.TYPE_ENUM, FieldKind.TYPE_GROUP):
            type_name = _type_name(type_field.type_url)
        return FieldDescriptor(
            name=type_field.name,
            number=type_field.number,
            label=_LABELS[type_field.cardinality],
            kind=type_field.kind,
            type_name=type_name,
            json_name=type_field.json_name,
            options=_options(type_field.options),
        )

    def _enum(self, enum_config: Enum) -> EnumDescriptor:
        return EnumDescriptor(
            name=_simple_name(enum_config.name),
            values=[
                EnumValueDescriptor(name=v.name, number=v.number) for v in enum_config.enumvalue
            ],
            options=_options(enum_config.options),
        )


def without_declarations(service: Service) -> Service:
    """Return *service* with what a descriptor set declares removed.

    Apis keep only their name and version; types and enums are dropped. The
    result is suitable as a configuration source next to the descriptor set
    generated from *service*.
    """
    data = service.model_dump()
    data.update(
        apis=[{"name": api.name, "version": api.version} for api in service.apis],
        types=[],
        enums=[],
    )
    return Service.model_validate(data)
