"""svcconfig -- Turn API descriptions into normalized service configurations.

This package reads an externally authored API description (an OpenAPI 3.x or
Swagger 2.0 document, or a pre-compiled descriptor set), builds an in-memory
model of its interfaces and types, merges supplementary configuration
documents on top, and emits a single normalized service configuration along
with the diagnostics collected on the way.

Typical workflow::

    svcconfig convert openapi.yaml --config overrides.yaml > service.json
    svcconfig descriptor service.json

Processing is organised as a set of stages (``Resolved``, ``Merged``,
``Linted``, ``Normalized``), each established by a processor that declares the
stages it depends on. See :mod:`svcconfig.model.model` for the scheduler.

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models of the service configuration.
    descriptor: Pydantic models of descriptor sets.
    config_source: Location-tracking configuration merge engine.
    diag: Diagnostics, locations, collectors, and suppression.
    config: Tool settings with precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    tool: Conversion driver wrapping the pipeline for callers.
"""

__version__ = "0.3.0"
