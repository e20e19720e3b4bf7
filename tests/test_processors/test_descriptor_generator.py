"""Tests for svcconfig.processors.descriptor_generator."""

from __future__ import annotations

from typing import Callable

import pytest

from svcconfig.descriptor import Label
from svcconfig.exceptions import ConfigError
from svcconfig.model.model import Model, StageResult
from svcconfig.model.stages import NORMALIZED
from svcconfig.models import (
    Api,
    ApiMethod,
    Cardinality,
    Documentation,
    Enum,
    EnumValue,
    FieldKind,
    Service,
    SourceContext,
    Type,
    TypeField,
)
from svcconfig.processors.descriptor_generator import (
    DEFAULT_FILE_NAME,
    DescriptorGenerator,
    without_declarations,
)
from svcconfig.setup import register_standard_aspects, register_standard_processors


def _type(name: str, file_name: str = "", fields=()) -> Type:
    context = SourceContext(file_name=file_name) if file_name else None
    return Type(name=name, source_context=context, fields=list(fields))


def _message_field(name: str, number: int, type_name: str) -> TypeField:
    return TypeField(
        name=name,
        number=number,
        kind=FieldKind.TYPE_MESSAGE,
        cardinality=Cardinality.CARDINALITY_REPEATED,
        type_url=f"type.googleapis.com/{type_name}",
    )


class TestGenerate:
    """Grouping, package inference, and nesting."""

    def test_default_file_and_package(self) -> None:
        descriptors = DescriptorGenerator(Service(types=[_type("a.b.Shelf")])).generate()
        (file,) = descriptors.files
        assert file.name == DEFAULT_FILE_NAME
        assert file.package == "a.b"
        assert [m.name for m in file.message_types] == ["Shelf"]

    def test_nested_types_and_enums(self) -> None:
        service = Service(
            types=[_type("a.b.Outer.Inner", "x.proto"), _type("a.b.Outer", "x.proto")],
            enums=[
                Enum(
                    name="a.b.Outer.Kind",
                    source_context=SourceContext(file_name="x.proto"),
                    enumvalue=[EnumValue(name="KIND_UNSPECIFIED", number=0)],
                )
            ],
        )
        (file,) = DescriptorGenerator(service).generate().files
        assert file.package == "a.b"
        (outer,) = file.message_types
        assert outer.name == "Outer"
        assert [n.name for n in outer.nested_types] == ["Inner"]
        assert [e.name for e in outer.enum_types] == ["Kind"]
        assert file.enum_types == []

    def test_fields_and_imports(self) -> None:
        service = Service(
            types=[
                _type("p.Shelf", "shelf.proto", [_message_field("books", 1, "p.Book")]),
                _type("p.Book", "book.proto"),
            ]
        )
        files = {f.name: f for f in DescriptorGenerator(service).generate().files}
        assert files["shelf.proto"].dependencies == ["book.proto"]
        assert files["book.proto"].dependencies == []
        (books,) = files["shelf.proto"].message_types[0].fields
        assert (books.label, books.type_name) == (Label.LABEL_REPEATED, ".p.Book")

    def test_services(self) -> None:
        service = Service(
            apis=[
                Api(
                    name="p.Library",
                    source_context=SourceContext(file_name="lib.proto"),
                    methods=[
                        ApiMethod(
                            name="GetShelf",
                            request_type_url="type.googleapis.com/p.GetShelfRequest",
                            response_type_url="type.googleapis.com/p.Shelf",
                            response_streaming=True,
                        )
                    ],
                )
            ]
        )
        (file,) = DescriptorGenerator(service).generate().files
        assert file.package == "p"
        (method,) = file.services[0].methods
        assert (method.input_type, method.output_type) == (".p.GetShelfRequest", ".p.Shelf")
        assert method.server_streaming

    def test_bad_type_url(self) -> None:
        service = Service(
            types=[
                _type(
                    "p.Shelf",
                    fields=[
                        TypeField(
                            name="x", number=1, kind=FieldKind.TYPE_MESSAGE, type_url="p.Book"
                        )
                    ],
                )
            ]
        )
        with pytest.raises(ConfigError, match="does not start with expected prefix"):
            DescriptorGenerator(service).generate()

    def test_packages_must_agree(self) -> None:
        service = Service(types=[_type("a.X", "x.proto"), _type("b.Y", "x.proto")])
        with pytest.raises(ConfigError) as exc_info:
            DescriptorGenerator(service).generate()
        assert str(exc_info.value) == "Package names of elements in 'x.proto' don't agree: a, b"


class TestWithoutDeclarations:
    def test_strips_declarations(self) -> None:
        service = Service(
            name="x.example.com",
            apis=[Api(name="p.Library", version="v1", methods=[ApiMethod(name="Get")])],
            types=[_type("p.Shelf")],
            documentation=Documentation(summary="Hi"),
        )
        stripped = without_declarations(service)
        assert [(a.name, a.version, a.methods) for a in stripped.apis] == [
            ("p.Library", "v1", [])
        ]
        assert stripped.types == []
        assert stripped.documentation.summary == "Hi"
        assert service.types != []


class TestRoundTrip:
    """A normalized config regenerates a model that normalizes to the same config."""

    def test_from_normalized_config(self, make_model: Callable[..., Model]) -> None:
        first = make_model(
            Service(name="library.example.com", apis=[Api(name="example.library.v1.Library")])
        )
        assert first.establish_stage(NORMALIZED) == StageResult.ESTABLISHED
        normalized = first.normalized_config

        second = Model.from_normalized_config(normalized)
        register_standard_processors(second)
        register_standard_aspects(second)
        assert second.establish_stage(NORMALIZED) == StageResult.ESTABLISHED
        assert second.normalized_config.model_dump() == normalized.model_dump()
