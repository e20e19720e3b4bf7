"""Normalize and descriptor commands -- work on service configuration documents.

* ``svcconfig normalize`` merges configuration documents and prints their
  normalized form.
* ``svcconfig descriptor`` prints the descriptor set a normalized
  configuration describes.
"""

from __future__ import annotations

from typing import Optional

import typer

from svcconfig.commands.convert import finish_run, load_settings
from svcconfig.config import DocumentFormat
from svcconfig.exit_codes import EXIT_CONVERSION_FAILED
from svcconfig.output import emit_document, error, print_diags


def normalize_command(
    configs: list[str] = typer.Argument(help="Service config YAML documents, merged in order."),
    experiment: Optional[list[str]] = typer.Option(
        None, "--experiment", "-x", help="Enable an experiment. Repeatable."
    ),
    document_format: Optional[DocumentFormat] = typer.Option(
        None, "--format", help="Serialization of the output."
    ),
) -> None:
    """Normalize one or more service configuration documents.

    Example::

        svcconfig normalize service.yaml overrides.yaml
    """
    from svcconfig.tool import normalize

    settings = load_settings(experiments=experiment or None, output_format=document_format)
    result = normalize(configs, settings)
    finish_run(result, settings.output_format)


def descriptor_command(
    config: str = typer.Argument(help="A normalized service config YAML document."),
) -> None:
    """Print the descriptor set reconstructed from a normalized configuration (JSON).

    Example::

        svcconfig descriptor normalized.yaml
    """
    from svcconfig.tool import generate_descriptors

    settings = load_settings()
    result, descriptor_set = generate_descriptors(config, settings)
    print_diags(result.diags)
    if descriptor_set is None or result.diag_collector.has_errors:
        error("Could not generate descriptors.")
        raise typer.Exit(code=EXIT_CONVERSION_FAILED)
    emit_document(descriptor_set.model_dump(mode="json"), DocumentFormat.JSON)
