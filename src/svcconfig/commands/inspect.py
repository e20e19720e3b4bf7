"""Inspect commands -- examine what an import would produce.

Provides the ``svcconfig inspect`` sub-command group with read-only
commands that import an OpenAPI document and list the synthesized
declarations, without merging or normalizing anything.
"""

from __future__ import annotations

from typing import Optional

import typer

from svcconfig.output import debug, error, print_diags, print_table


inspect_app = typer.Typer(no_args_is_help=True)


def _type_name(type_url: str) -> str:
    from svcconfig.models import TYPE_URL_PREFIX

    return type_url[len(TYPE_URL_PREFIX):] if type_url.startswith(TYPE_URL_PREFIX) else type_url


def _import(spec: str, namespace: Optional[str]):  # noqa: ANN202
    """Load and import *spec*, exiting on load failures.

    Returns:
        The :class:`~svcconfig.importer.ImportResult` of the import.

    Raises:
        typer.Exit: With the loader's exit code when the document cannot
            be read, or code 8 when the import reported errors.
    """
    from svcconfig.diag import BoundedDiagCollector
    from svcconfig.exceptions import SvcConfigError
    from svcconfig.exit_codes import EXIT_CONVERSION_FAILED
    from svcconfig.importer import OpenApiImporter, detect_format, load_document

    try:
        document = load_document(spec)
        detect_format(document)
    except SvcConfigError as exc:
        error(f"Failed to load spec: {exc}")
        raise typer.Exit(code=exc.exit_code) from None

    collector = BoundedDiagCollector()
    result = OpenApiImporter(document, namespace, collector).build()
    print_diags(collector.diags)
    if collector.has_errors:
        raise typer.Exit(code=EXIT_CONVERSION_FAILED)
    debug(f"Imported service '{result.service.name}'")
    return result


@inspect_app.command("types")
def inspect_types(
    spec: str = typer.Argument(help="OpenAPI or Swagger document (use '-' for stdin)."),
    namespace: Optional[str] = typer.Option(
        None, "--namespace", help="Proto package of the imported types."
    ),
) -> None:
    """List the message types synthesized from the document's schemas.

    Example::

        svcconfig inspect types petstore.yaml
        svcconfig --json inspect types petstore.yaml
    """
    from svcconfig.models import has_field

    result = _import(spec, namespace)
    rows = []
    for type_ in result.service.types:
        map_entry = any(o.name == "map_entry" for o in type_.options)
        source = type_.source_context.file_name if has_field(type_, "source_context") else ""
        rows.append(
            [type_.name, str(len(type_.fields)), "yes" if map_entry else "", source]
        )
    print_table(["Name", "Fields", "Map Entry", "Source"], rows, title="Types")


@inspect_app.command("methods")
def inspect_methods(
    spec: str = typer.Argument(help="OpenAPI or Swagger document (use '-' for stdin)."),
    namespace: Optional[str] = typer.Option(
        None, "--namespace", help="Proto package of the imported types."
    ),
) -> None:
    """List the api methods and their HTTP bindings.

    Example::

        svcconfig inspect methods petstore.yaml
    """
    result = _import(spec, namespace)
    bindings = {}
    if result.service.http is not None:
        for rule in result.service.http.rules:
            for verb in ("get", "put", "post", "delete", "patch"):
                path = getattr(rule, verb)
                if path:
                    bindings[rule.selector] = f"{verb.upper()} {path}"
                    break

    rows = []
    for api in result.service.apis:
        for method in api.methods:
            full_name = f"{api.name}.{method.name}"
            rows.append(
                [
                    full_name,
                    _type_name(method.request_type_url),
                    _type_name(method.response_type_url),
                    bindings.get(full_name, ""),
                ]
            )
    print_table(["Method", "Request", "Response", "HTTP"], rows, title="Methods")
