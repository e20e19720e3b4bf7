"""Convert command -- turn an OpenAPI document into a service configuration.

Implements the ``svcconfig convert`` top-level command: the document is
imported, the given configuration documents are merged over the imported
configuration, and the normalized result is written to stdout (or ``-o``).
Diagnostics always go to stderr.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

import typer

from svcconfig.config import DocumentFormat, ToolSettings
from svcconfig.exceptions import ConversionFailedError, SvcConfigError
from svcconfig.output import debug, emit_document, error, print_diags
from svcconfig.yaml_reader import SERVICE_TYPE_NAME

if TYPE_CHECKING:
    from svcconfig.tool import ConversionResult


def load_settings(**cli_overrides: Any) -> ToolSettings:
    """Resolve the effective settings, exiting on invalid settings files."""
    from svcconfig.config import resolve_settings

    try:
        return resolve_settings(cli_overrides)
    except SvcConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def finish_run(result: ConversionResult, document_format: DocumentFormat) -> None:
    """Print the diags of a run, then its configuration or a failure exit."""
    print_diags(result.diags)
    try:
        service = result.raise_for_errors()
    except ConversionFailedError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    document = {"type": SERVICE_TYPE_NAME}
    document.update(service.model_dump(mode="json", exclude_defaults=True))
    emit_document(document, document_format)


def convert_command(
    spec: str = typer.Argument(help="OpenAPI or Swagger document (use '-' for stdin)."),
    config: Optional[list[str]] = typer.Option(
        None, "--config", "-c", help="Service config YAML merged over the import. Repeatable."
    ),
    experiment: Optional[list[str]] = typer.Option(
        None, "--experiment", "-x", help="Enable an experiment. Repeatable."
    ),
    namespace: Optional[str] = typer.Option(
        None, "--namespace", help="Proto package of the imported types."
    ),
    document_format: Optional[DocumentFormat] = typer.Option(
        None, "--format", help="Serialization of the output."
    ),
) -> None:
    """Import an OpenAPI document and print the normalized service configuration.

    Exits with code 8 when the run reported errors; the diags are printed
    to stderr either way.

    Example::

        svcconfig convert petstore.yaml
        svcconfig convert petstore.yaml -c overrides.yaml --format yaml
    """
    from svcconfig.importer.loader import detect_format, load_document
    from svcconfig.tool import convert

    settings = load_settings(
        experiments=experiment or None,
        namespace=namespace,
        output_format=document_format,
    )
    try:
        document = load_document(spec)
        detect_format(document)
    except SvcConfigError as exc:
        error(f"Failed to load spec: {exc}")
        raise typer.Exit(code=exc.exit_code) from None

    debug(f"Converting {spec} with {len(config or [])} config file(s)")
    result = convert(document, config or [], settings)
    finish_run(result, settings.output_format)
