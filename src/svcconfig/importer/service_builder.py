"""Build a service configuration from an OpenAPI document.

The importer produces one :class:`~svcconfig.models.Service` holding

* the service name, title and summary,
* one api with a method per operation,
* the request, response and schema types, translated by
  :class:`~svcconfig.importer.type_builder.TypeBuilder`,
* one ``http`` rule per method binding it to its verb and path,
* one ``documentation`` rule per documented operation.

Operations are visited in path order, and per path in the order ``get``,
``delete``, ``patch``, ``post``, ``put``, so the result does not depend on
the key order of the document.

Example::

    document = load_document("petstore.yaml")
    result = OpenApiImporter(document, namespace="petstore.v1").build()
    model = Model.create(result.descriptor_set())
    model.set_config_sources([result.config_source()])
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

from svcconfig.config_source import ConfigSource
from svcconfig.descriptor import FileDescriptorSet
from svcconfig.diag import Diag, DiagCollector, SimpleDiagCollector, SimpleLocation
from svcconfig.importer import names
from svcconfig.importer.loader import OPENAPI_3, deref, detect_format
from svcconfig.importer.type_builder import TypeBuilder
from svcconfig.importer.type_info import TypeInfo
from svcconfig.importer.well_known import WellKnownType, well_known_definitions
from svcconfig.models import (
    Api,
    ApiMethod,
    Documentation,
    DocumentationRule,
    FieldKind,
    Http,
    HttpRule,
    Service,
    SourceContext,
    Syntax,
)
from svcconfig.processors.descriptor_generator import DescriptorGenerator, without_declarations

logger = logging.getLogger(__name__)

VERBS = ("get", "delete", "patch", "post", "put")

_PATH_PARAMETER = re.compile(r"\{([^}]+)\}")


@dataclass
class ImportResult:
    """The outcome of one import.

    Attributes:
        service: The complete service configuration, declarations included.
        diag_collector: The collector the import reported into.
    """

    service: Service
    diag_collector: DiagCollector

    def descriptor_set(self) -> FileDescriptorSet:
        """Descriptors of the apis, types and enums of :attr:`service`."""
        return DescriptorGenerator(self.service).generate()

    def config_source(self) -> ConfigSource:
        """:attr:`service` without declarations, to merge next to :meth:`descriptor_set`."""
        return ConfigSource.of(without_declarations(self.service))


def default_namespace(title: str) -> str:
    """Derive a proto package from an API title: ``Swagger Petstore`` -> ``swagger_petstore``."""
    package = re.sub(r"[^a-z0-9]+", "_", title.lower()).strip("_")
    if not package:
        return "api"
    if package[0].isdigit():
        return "api_" + package
    return package


def _merge_parameters(
    path_params: list[dict[str, Any]],
    op_params: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Merge path-level and operation-level parameters.

    Operation-level parameters override path-level parameters with the same
    name and location (``in`` field). Order follows first appearance.
    """
    merged: dict[tuple[str, str], dict[str, Any]] = {}
    for param in [*path_params, *op_params]:
        key = (str(param.get("name", "")), str(param.get("in", "")))
        merged[key] = param
    return list(merged.values())


class OpenApiImporter:
    """Converts one loaded OpenAPI or Swagger document.

    Args:
        document: The loaded document.
        namespace: Proto package of the api and the synthesized types;
            derived from the title when omitted.
        diag_collector: Collector for problems found in the document.
    """

    def __init__(
        self,
        document: dict[str, Any],
        namespace: Optional[str] = None,
        diag_collector: Optional[DiagCollector] = None,
    ) -> None:
        self._document = document
        self._format = detect_format(document)
        info = document.get("info") or {}
        self._title = str(info.get("title") or "")
        self._version = str(info.get("version") or "")
        self._description = str(info.get("description") or "")
        self._namespace = namespace if namespace is not None else default_namespace(self._title)
        self._collector = diag_collector if diag_collector is not None else SimpleDiagCollector()
        self._types = TypeBuilder(document, self._namespace)

    @property
    def namespace(self) -> str:
        return self._namespace

    def build(self) -> ImportResult:
        """Translate the document.

        Problems with individual operations are reported to the diag
        collector; the operation is skipped and the import continues.
        """
        self._types.add_all_definitions()
        api_name = self._qualify(names.title_to_api_name(self._title))
        methods: list[ApiMethod] = []
        http_rules: list[HttpRule] = []
        doc_rules: list[DocumentationRule] = []
        seen: set[str] = set()

        paths = self._document.get("paths") or {}
        for path in sorted(paths):
            path_item = deref(paths[path], self._document)
            if not isinstance(path_item, dict):
                continue
            path_params = self._parameters(path_item.get("parameters"))
            for verb in VERBS:
                operation = path_item.get(verb)
                if not isinstance(operation, dict):
                    continue
                operation_id = operation.get("operationId")
                if operation_id:
                    method_name = names.operation_id_to_method_name(str(operation_id))
                else:
                    method_name = names.path_to_method_name(verb, path)
                if method_name in seen:
                    self._collector.add_diag(
                        Diag.error(
                            SimpleLocation(display=f"{verb.upper()} {path}"),
                            "Duplicate operationId '%s'.",
                            operation_id or method_name,
                        )
                    )
                    continue
                seen.add(method_name)

                parameters = _merge_parameters(
                    path_params, self._parameters(operation.get("parameters"))
                )
                body_name = self._add_request_body(operation, parameters)
                request = self._request_type(method_name, parameters)
                response = self._response_type(method_name, operation)
                methods.append(
                    ApiMethod(
                        name=method_name,
                        request_type_url=request.type_url or "",
                        response_type_url=response.type_url or "",
                        syntax=Syntax.SYNTAX_PROTO3,
                    )
                )
                full_name = f"{api_name}.{method_name}"
                http_rules.append(self._http_rule(full_name, verb, path, body_name))
                description = operation.get("description") or operation.get("summary")
                if description:
                    doc_rules.append(
                        DocumentationRule(selector=full_name, description=str(description))
                    )
                logger.debug("Imported %s %s as method '%s'", verb.upper(), path, full_name)

        api = Api(
            name=api_name,
            methods=methods,
            version=self._version,
            source_context=SourceContext(file_name=self._namespace),
            syntax=Syntax.SYNTAX_PROTO3,
        )
        types = self._types.types
        urls = {m.request_type_url for m in methods} | {m.response_type_url for m in methods}
        urls.update(f.type_url for t in types for f in t.fields if f.type_url)
        known_types, known_enums = well_known_definitions(urls)

        documentation = None
        if self._description or doc_rules:
            documentation = Documentation(summary=self._description, rules=doc_rules)
        service = Service(
            name=self._service_name(),
            title=self._title,
            config_version=3,
            apis=[api],
            types=sorted([*types, *known_types], key=lambda t: t.name),
            enums=known_enums,
            documentation=documentation,
            http=Http(rules=http_rules) if http_rules else None,
        )
        return ImportResult(service=service, diag_collector=self._collector)

    # ------------------------------------------------------------------ #
    # Service
    # ------------------------------------------------------------------ #

    def _qualify(self, name: str) -> str:
        return f"{self._namespace}.{name}" if self._namespace else name

    def _service_name(self) -> str:
        host = self._document.get("host")
        if host:
            return str(host)
        for server in self._document.get("servers") or []:
            hostname = urlparse(str(server.get("url", ""))).hostname
            if hostname:
                return hostname
        explicit = self._document.get("x-google-service-name")
        if explicit:
            return str(explicit)
        return names.title_to_slug(self._title) + ".endpoints.local"

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def _parameters(self, parameters: Any) -> list[dict[str, Any]]:
        resolved = [deref(p, self._document) for p in parameters or []]
        return [p for p in resolved if isinstance(p, dict)]

    def _add_request_body(
        self, operation: dict[str, Any], parameters: list[dict[str, Any]]
    ) -> str:
        """Append an OpenAPI 3 request body as a body parameter.

        Returns:
            The json name of the body parameter, or ``""`` without a body.
        """
        if self._format == OPENAPI_3 and operation.get("requestBody"):
            request_body = deref(operation["requestBody"], self._document)
            schema = _first_content_schema(request_body)
            if schema is not None:
                name = str(operation.get("x-codegen-request-body-name") or "body")
                parameters.append({"name": name, "in": "body", "schema": schema})
        for parameter in parameters:
            if parameter.get("in") == "body":
                return str(parameter.get("name", ""))
        return ""

    def _request_type(self, method_name: str, parameters: list[dict[str, Any]]) -> TypeInfo:
        if not parameters:
            return WellKnownType.EMPTY.to_type_info()
        return self._types.create_type_from_parameters(
            names.operation_id_to_request_message_name(method_name), parameters
        )

    # ------------------------------------------------------------------ #
    # Responses
    # ------------------------------------------------------------------ #

    def _response_type(self, method_name: str, operation: dict[str, Any]) -> TypeInfo:
        responses = operation.get("responses") or {}
        schemas: list[Any] = []
        for code, response in sorted(responses.items(), key=lambda item: str(item[0])):
            if str(code).startswith("2"):
                self._collect_schema(response, schemas)
        if not schemas and "default" in responses:
            self._collect_schema(responses["default"], schemas)

        if not schemas:
            return WellKnownType.EMPTY.to_type_info()
        if len(schemas) > 1:
            return WellKnownType.VALUE.to_type_info()
        info = self._types.ensure_named(
            self._types.type_info(schemas[0]),
            names.operation_id_to_response_message_name(method_name),
        )
        if info.is_repeated:
            return WellKnownType.LIST.to_type_info()
        if info.kind != FieldKind.TYPE_MESSAGE:
            return WellKnownType.VALUE.to_type_info()
        return info

    def _collect_schema(self, response: Any, schemas: list[Any]) -> None:
        response = deref(response, self._document)
        if not isinstance(response, dict):
            return
        if self._format == OPENAPI_3:
            schema = _first_content_schema(response)
        else:
            schema = response.get("schema")
        if schema is not None and schema not in schemas:
            schemas.append(schema)

    # ------------------------------------------------------------------ #
    # HTTP
    # ------------------------------------------------------------------ #

    def _http_rule(self, selector: str, verb: str, path: str, body_name: str) -> HttpRule:
        template = _PATH_PARAMETER.sub(
            lambda m: "{" + names.get_field_name(m.group(1)) + "}", path
        )
        values: dict[str, Any] = {"selector": selector, verb: template}
        if body_name:
            values["body"] = names.get_field_name(body_name)
        return HttpRule.model_validate(values)


def _first_content_schema(holder: Any) -> Any:
    """Return the schema of the first media type of an OpenAPI 3 ``content`` map."""
    if not isinstance(holder, dict):
        return None
    content = holder.get("content") or {}
    for media in content.values():
        if isinstance(media, dict) and "schema" in media:
            return media["schema"]
    return None
