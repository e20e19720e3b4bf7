"""Tests for svcconfig.importer.service_builder -- document to service config."""

from __future__ import annotations

from typing import Any

import pytest

from svcconfig.diag import SimpleDiagCollector
from svcconfig.exceptions import SpecParseError
from svcconfig.importer.service_builder import ImportResult, OpenApiImporter
from svcconfig.model.model import Model, StageResult
from svcconfig.model.stages import NORMALIZED
from svcconfig.models import Cardinality, FieldKind
from svcconfig.setup import register_standard_aspects, register_standard_processors

PREFIX = "type.googleapis.com/"
API = "swagger_petstore.SwaggerPetstore"


def _import(document: dict[str, Any], namespace: str | None = None) -> ImportResult:
    return OpenApiImporter(document, namespace).build()


def _minimal(paths: dict[str, Any]) -> dict[str, Any]:
    return {"openapi": "3.0.0", "info": {"title": "Things", "version": "2"}, "paths": paths}


class TestOpenApi3:
    """The OpenAPI 3.0 petstore."""

    def test_service_identity(self, petstore_raw: dict[str, Any]) -> None:
        service = _import(petstore_raw).service
        assert service.name == "petstore.example.com"
        assert service.title == "Swagger Petstore"
        assert service.config_version == 3
        assert service.documentation.summary == "A sample pet store."

    def test_api_methods(self, petstore_raw: dict[str, Any]) -> None:
        (api,) = _import(petstore_raw).service.apis
        assert api.name == API
        assert api.version == "1.0.0"
        assert [(m.name, m.request_type_url, m.response_type_url) for m in api.methods] == [
            (
                "ListPets",
                PREFIX + "swagger_petstore.ListPetsRequest",
                PREFIX + "google.protobuf.ListValue",
            ),
            (
                "CreatePet",
                PREFIX + "swagger_petstore.CreatePetRequest",
                PREFIX + "swagger_petstore.Pet",
            ),
            (
                "ShowPetById",
                PREFIX + "swagger_petstore.ShowPetByIdRequest",
                PREFIX + "swagger_petstore.Pet",
            ),
        ]

    def test_types(self, petstore_raw: dict[str, Any]) -> None:
        service = _import(petstore_raw).service
        names = [t.name for t in service.types]
        assert names == [
            "google.protobuf.ListValue",
            "google.protobuf.Struct",
            "google.protobuf.Struct.FieldsEntry",
            "google.protobuf.Value",
            "swagger_petstore.CreatePetRequest",
            "swagger_petstore.ListPetsRequest",
            "swagger_petstore.MapEntry",
            "swagger_petstore.OwnerType",
            "swagger_petstore.Pet",
            "swagger_petstore.ShowPetByIdRequest",
        ]
        assert [e.name for e in service.enums] == ["google.protobuf.NullValue"]

    def test_pet_fields(self, petstore_raw: dict[str, Any]) -> None:
        service = _import(petstore_raw).service
        pet = next(t for t in service.types if t.name == "swagger_petstore.Pet")
        assert [(f.name, f.kind) for f in pet.fields] == [
            ("id", FieldKind.TYPE_INT64),
            ("name", FieldKind.TYPE_STRING),
            ("tag", FieldKind.TYPE_STRING),
            ("owner", FieldKind.TYPE_MESSAGE),
            ("labels", FieldKind.TYPE_MESSAGE),
        ]
        labels = pet.fields[4]
        assert labels.cardinality == Cardinality.CARDINALITY_REPEATED
        assert labels.type_url == PREFIX + "swagger_petstore.MapEntry"

    def test_http_rules(self, petstore_raw: dict[str, Any]) -> None:
        rules = _import(petstore_raw).service.http.rules
        assert [(r.selector, r.get, r.post, r.body) for r in rules] == [
            (f"{API}.ListPets", "/pets", "", ""),
            (f"{API}.CreatePet", "", "/pets", "body"),
            (f"{API}.ShowPetById", "/pets/{pet_id}", "", ""),
        ]

    def test_documentation_rules(self, petstore_raw: dict[str, Any]) -> None:
        rules = _import(petstore_raw).service.documentation.rules
        assert [(r.selector, r.description) for r in rules] == [
            (f"{API}.ListPets", "List all pets"),
            (f"{API}.CreatePet", "Create a pet"),
            (f"{API}.ShowPetById", "Info for a specific pet"),
        ]

    def test_explicit_namespace(self, petstore_raw: dict[str, Any]) -> None:
        service = _import(petstore_raw, "pets.v1").service
        assert service.apis[0].name == "pets.v1.SwaggerPetstore"
        assert service.apis[0].source_context.file_name == "pets.v1"

    def test_normalizes_without_diags(self, petstore_raw: dict[str, Any]) -> None:
        result = _import(petstore_raw)
        model = Model.create(result.descriptor_set())
        register_standard_processors(model)
        register_standard_aspects(model)
        model.set_config_sources([result.config_source()])
        assert model.establish_stage(NORMALIZED) == StageResult.ESTABLISHED
        assert model.diag_collector.diags == []
        assert result.diag_collector.diags == []


class TestSwagger2:
    def test_petstore(self, swagger_raw: dict[str, Any]) -> None:
        service = _import(swagger_raw).service
        assert service.name == "petstore.swagger.io"
        (api,) = service.apis
        assert [m.name for m in api.methods] == ["ListPets", "CreatePets", "ShowPetById"]
        create = api.methods[1]
        assert create.response_type_url == PREFIX + "google.protobuf.Empty"
        rules = {r.selector: r for r in service.http.rules}
        assert rules[f"{API}.CreatePets"].body == "pet"
        assert rules[f"{API}.ShowPetById"].get == "/pets/{pet_id}"

    def test_path_level_parameters(self, swagger_raw: dict[str, Any]) -> None:
        service = _import(swagger_raw).service
        request = next(t for t in service.types if t.name.endswith("ShowPetByIdRequest"))
        assert [(f.name, f.json_name) for f in request.fields] == [("pet_id", "petId")]


class TestOperations:
    def test_no_parameters_use_empty(self) -> None:
        operation = {"operationId": "ping", "responses": {"204": {"description": "ok"}}}
        service = _import(_minimal({"/ping": {"get": operation}})).service
        (method,) = service.apis[0].methods
        assert method.request_type_url == PREFIX + "google.protobuf.Empty"
        assert method.response_type_url == PREFIX + "google.protobuf.Empty"
        assert "google.protobuf.Empty" in [t.name for t in service.types]

    def test_method_name_from_path(self) -> None:
        service = _import(_minimal({"/things/{id}": {"delete": {"responses": {}}}})).service
        assert service.apis[0].methods[0].name == "DeleteThingsId"

    def test_inline_response_message(self) -> None:
        schema = {"properties": {"count": {"type": "integer"}}}
        operation = {
            "operationId": "countThings",
            "responses": {"200": {"content": {"application/json": {"schema": schema}}}},
        }
        service = _import(_minimal({"/count": {"get": operation}})).service
        method = service.apis[0].methods[0]
        assert method.response_type_url == PREFIX + "things.CountThingsResponse"

    def test_primitive_and_mixed_responses_are_values(self) -> None:
        def response(schema: dict[str, Any]) -> dict[str, Any]:
            return {"content": {"application/json": {"schema": schema}}}

        paths = {
            "/a": {
                "get": {"operationId": "a", "responses": {"200": response({"type": "string"})}}
            },
            "/b": {
                "get": {
                    "operationId": "b",
                    "responses": {
                        "200": response({"type": "string"}),
                        "201": response({"type": "integer"}),
                    },
                }
            },
        }
        methods = _import(_minimal(paths)).service.apis[0].methods
        assert [m.response_type_url for m in methods] == [PREFIX + "google.protobuf.Value"] * 2

    def test_duplicate_operation_id(self) -> None:
        operation = {"operationId": "listThings", "responses": {}}
        collector = SimpleDiagCollector()
        document = _minimal({"/a": {"get": operation}, "/b": {"get": operation}})
        result = OpenApiImporter(document, diag_collector=collector).build()
        assert [m.name for m in result.service.apis[0].methods] == ["ListThings"]
        (error,) = collector.errors
        assert str(error) == "ERROR: GET /b: Duplicate operationId 'listThings'."

    def test_unsupported_document(self) -> None:
        with pytest.raises(SpecParseError):
            OpenApiImporter({"info": {"title": "x"}})

    def test_service_name_fallback(self) -> None:
        service = _import(_minimal({})).service
        assert service.name == "things.endpoints.local"
        assert service.http is None
