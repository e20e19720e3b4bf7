"""Conversions from OpenAPI identifiers to proto names.

Characters outside ``[A-Za-z0-9_]`` are dropped before conversion. Input is
treated as lowerCamelCase, the convention OpenAPI documents mostly follow.
"""

from __future__ import annotations

import re

_INVALID = re.compile(r"[^A-Za-z0-9_]")
_UPPER = re.compile(r"(?<!^)(?<!_)([A-Z])")


def sanitize(name: str) -> str:
    return _INVALID.sub("", name)


def _upper_camel(name: str) -> str:
    name = sanitize(name)
    return name[:1].upper() + name[1:]


def operation_id_to_method_name(operation_id: str) -> str:
    """``listPets`` -> ``ListPets``."""
    return _upper_camel(operation_id)


def operation_id_to_request_message_name(operation_id: str) -> str:
    return operation_id_to_method_name(operation_id) + "Request"


def operation_id_to_response_message_name(operation_id: str) -> str:
    return operation_id_to_method_name(operation_id) + "Response"


def property_name_to_message_name(property_name: str) -> str:
    """``owner`` -> ``OwnerType``."""
    return _upper_camel(property_name) + "Type"


def schema_name_to_message_name(schema_name: str) -> str:
    return _upper_camel(schema_name)


def get_field_name(json_name: str) -> str:
    """``petId`` -> ``pet_id``."""
    return _UPPER.sub(r"_\1", sanitize(json_name)).lower()


def path_to_method_name(verb: str, path: str) -> str:
    """Derive a method name for an operation without ``operationId``.

    ``get /pets/{petId}/toys`` -> ``GetPetsPetIdToys``.
    """
    segments = [_upper_camel(segment) for segment in path.split("/")]
    return verb.capitalize() + "".join(segments)


def title_to_api_name(title: str) -> str:
    """``Swagger petstore api`` -> ``SwaggerPetstoreApi``."""
    words = re.split(r"[^A-Za-z0-9]+", title)
    name = "".join(word[:1].upper() + word[1:] for word in words if word)
    if not name or name[0].isdigit():
        name = "Api" + name
    return name


def title_to_slug(title: str) -> str:
    """``Swagger Petstore`` -> ``swagger-petstore``."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug or "api"
