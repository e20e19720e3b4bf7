"""Tests for svcconfig.importer.names."""

from __future__ import annotations

import pytest

from svcconfig.importer import names
from svcconfig.importer.service_builder import default_namespace


class TestMessageNames:
    def test_operation_ids(self) -> None:
        assert names.operation_id_to_method_name("listPets") == "ListPets"
        assert names.operation_id_to_request_message_name("listPets") == "ListPetsRequest"
        assert names.operation_id_to_response_message_name("list-pets") == "ListpetsResponse"

    def test_property_and_schema_names(self) -> None:
        assert names.property_name_to_message_name("owner") == "OwnerType"
        assert names.schema_name_to_message_name("pet.v2") == "Petv2"

    def test_path_without_operation_id(self) -> None:
        assert names.path_to_method_name("get", "/pets/{petId}/toys") == "GetPetsPetIdToys"


@pytest.mark.parametrize(
    "json_name, field_name",
    [
        ("petId", "pet_id"),
        ("name", "name"),
        ("already_snake", "already_snake"),
        ("x-rate-limit", "xratelimit"),
    ],
)
def test_field_names(json_name: str, field_name: str) -> None:
    assert names.get_field_name(json_name) == field_name


class TestTitles:
    def test_api_name(self) -> None:
        assert names.title_to_api_name("Swagger petstore api") == "SwaggerPetstoreApi"
        assert names.title_to_api_name("3d printing") == "Api3dPrinting"
        assert names.title_to_api_name("") == "Api"

    def test_slug(self) -> None:
        assert names.title_to_slug("Swagger Petstore!") == "swagger-petstore"
        assert names.title_to_slug("!!!") == "api"

    def test_default_namespace(self) -> None:
        assert default_namespace("Swagger Petstore") == "swagger_petstore"
        assert default_namespace("3D Store") == "api_3d_store"
        assert default_namespace("") == "api"
