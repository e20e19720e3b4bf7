"""Produces the normalized service configuration.

Normalization starts from the merged configuration and

1. rebuilds ``apis``, ``types``, and ``enums`` from the elements reachable
   from the model's roots (:class:`DescriptorNormalizer`), then
2. lets every aspect write its section back (:meth:`ConfigAspect.normalize`),

so the result describes exactly what the model contains. Normalizing
requires a linted model.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from svcconfig.config_source import ConfigSourceBuilder
from svcconfig.model.elements import (
    EnumType,
    Field,
    Interface,
    Method,
    MessageType,
    ProtoFile,
)
from svcconfig.model.model import Model
from svcconfig.model.stages import LINTED, NORMALIZED, StageKey
from svcconfig.models import (
    TYPE_URL_PREFIX,
    Api,
    ApiMethod,
    Enum,
    EnumValue,
    FieldKind,
    Option,
    SourceContext,
    Syntax,
    Type,
    TypeField,
)
from svcconfig.processors.base import Processor

logger = logging.getLogger(__name__)


def type_url(full_name: str) -> str:
    return TYPE_URL_PREFIX + full_name


def _syntax(file: Optional[ProtoFile]) -> Syntax:
    if file is not None and file.descriptor.syntax == "proto3":
        return Syntax.SYNTAX_PROTO3
    return Syntax.SYNTAX_PROTO2


def _source_context(file: Optional[ProtoFile]) -> Optional[SourceContext]:
    if file is None:
        return None
    return SourceContext(file_name=file.simple_name)


def _options(options: dict[str, str]) -> list[Option]:
    return [Option(name=name, value=value) for name, value in options.items()]


class DescriptorNormalizer:
    """Re-serializes the reachable element tree into ``apis``, ``types``, and ``enums``."""

    def __init__(self, model: Model) -> None:
        self._model = model

    def run(self, builder: ConfigSourceBuilder) -> None:
        reachable = self._model.reachable_elements()
        versions = {api.name: api.version for api in self._model.service_config.apis}

        apis = [
            self._api(element, versions.get(element.full_name, ""))
            for element in reachable
            if isinstance(element, Interface)
        ]
        types = sorted(
            (self._type(e) for e in reachable if isinstance(e, MessageType)),
            key=lambda t: t.name,
        )
        enums = sorted(
            (self._enum(e) for e in reachable if isinstance(e, EnumType)),
            key=lambda e: e.name,
        )
        builder.set_value("apis", None, apis)
        builder.set_value("types", None, types)
        builder.set_value("enums", None, enums)
        logger.debug(
            "Normalized %d apis, %d types and %d enums", len(apis), len(types), len(enums)
        )

    def _api(self, interface: Interface, version: str) -> Api:
        file = interface.file
        return Api(
            name=interface.full_name,
            methods=[self._method(m, _syntax(file)) for m in interface.methods],
            options=_options(interface.descriptor.options),
            version=version,
            source_context=_source_context(file),
            syntax=_syntax(file),
        )

    def _method(self, method: Method, syntax: Syntax) -> ApiMethod:
        return ApiMethod(
            name=method.simple_name,
            request_type_url=type_url(method.input_type.type_name),
            request_streaming=method.request_streaming,
            response_type_url=type_url(method.output_type.type_name),
            response_streaming=method.response_streaming,
            options=_options(method.descriptor.options),
            syntax=syntax,
        )

    def _type(self, message: MessageType) -> Type:
        file = message.file
        return Type(
            name=message.full_name,
            fields=[self._field(f) for f in message.fields],
            options=_options(message.descriptor.options),
            source_context=_source_context(file),
            syntax=_syntax(file),
        )

    def _field(self, field: Field) -> TypeField:
        ref = field.type
        url = ""
        if ref.kind in (FieldKind.TYPE_MESSAGE, FieldKind.TYPE_ENUM):
            url = type_url(ref.type_name)
        return TypeField(
            kind=ref.kind,
            cardinality=ref.cardinality,
            number=field.number,
            name=field.simple_name,
            type_url=url,
            json_name=field.json_name,
            options=_options(field.descriptor.options),
        )

    def _enum(self, enum_type: EnumType) -> Enum:
        file = enum_type.file
        return Enum(
            name=enum_type.full_name,
            enumvalue=[EnumValue(name=v.simple_name, number=v.number) for v in enum_type.values],
            options=_options(enum_type.descriptor.options),
            source_context=_source_context(file),
            syntax=_syntax(file),
        )


class Normalizer(Processor):
    """Establishes :data:`~svcconfig.model.stages.NORMALIZED`."""

    def requires(self) -> Sequence[StageKey]:
        return [LINTED]

    def establishes(self) -> StageKey:
        return NORMALIZED

    def run(self, model: Model) -> bool:
        builder = model.config_source.to_builder()
        DescriptorNormalizer(model).run(builder)
        self.normalize_aspects(model, builder)
        model.set_normalized_config(builder.build().config)
        model.mark_established(NORMALIZED)
        return True

    def normalize_aspects(self, model: Model, builder: ConfigSourceBuilder) -> None:
        aspects = model.aspects
        for aspect in aspects:
            aspect.start_normalization(builder)
        for element in model.scoped_elements():
            for aspect in aspects:
                aspect.normalize(element, builder)
        for aspect in aspects:
            aspect.end_normalization(builder)
