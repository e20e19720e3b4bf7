"""Conversion driver: the outer boundary of the processing pipeline.

Each flow builds a :class:`~svcconfig.model.model.Model`, registers the
standard processors and aspects, and establishes the
:data:`~svcconfig.model.stages.NORMALIZED` stage:

* :func:`convert` -- import an OpenAPI document and merge configuration
  documents on top of it.
* :func:`normalize` -- normalize configuration documents against the
  declarations they carry themselves.
* :func:`generate_descriptors` -- rebuild a descriptor set from a
  normalized configuration.

The flows run inside :func:`run_conversion`, the only place where arbitrary
exceptions are caught. An exception becomes a single ERROR diag, so callers
only ever look at the diags.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, TypeVar

from svcconfig.config import ToolSettings
from svcconfig.config_source import ConfigSource
from svcconfig.descriptor import FileDescriptorSet
from svcconfig.diag import BoundedDiagCollector, Diag, DiagCollector, SimpleLocation
from svcconfig.exceptions import ConversionFailedError
from svcconfig.importer.service_builder import OpenApiImporter
from svcconfig.model.model import Model, StageResult
from svcconfig.model.stages import NORMALIZED
from svcconfig.models import Service
from svcconfig.processors.descriptor_generator import DescriptorGenerator
from svcconfig.setup import register_standard_aspects, register_standard_processors
from svcconfig.yaml_reader import read_config_file

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ConversionResult:
    """Outcome of one flow.

    Attributes:
        diag_collector: Every diag the run reported.
        service: The normalized configuration; ``None`` if the run failed.
        stage_result: How establishing the final stage ended, if it was
            attempted.
    """

    diag_collector: DiagCollector
    service: Optional[Service] = None
    stage_result: Optional[StageResult] = None

    @property
    def diags(self) -> list[Diag]:
        return self.diag_collector.diags

    @property
    def success(self) -> bool:
        return self.service is not None and not self.diag_collector.has_errors

    def raise_for_errors(self) -> Service:
        """Return the service of a successful run.

        Raises:
            ConversionFailedError: If the run reported errors or produced no
                service.
        """
        if not self.success or self.service is None:
            raise ConversionFailedError(
                f"Conversion failed with {self.diag_collector.error_count} error(s)."
            )
        return self.service


def new_collector(settings: ToolSettings) -> BoundedDiagCollector:
    return BoundedDiagCollector(settings.max_errors, settings.max_warnings)


def run_conversion(collector: DiagCollector, action: Callable[[], T]) -> Optional[T]:
    """Run *action*, turning any exception into one ERROR diag.

    Returns:
        The result of *action*, or ``None`` if it raised.
    """
    try:
        return action()
    except Exception as exc:  # noqa: BLE001 - reported as a diag
        logger.debug("Conversion failed", exc_info=True)
        summary = "".join(traceback.format_tb(exc.__traceback__, limit=-5)).rstrip()
        collector.add_diag(
            Diag.error(
                SimpleLocation.TOPLEVEL,
                "Unexpected exception: %s: %s\n%s",
                type(exc).__name__,
                exc,
                summary,
            )
        )
        return None


def _prepare(model: Model, settings: ToolSettings) -> None:
    register_standard_processors(model)
    register_standard_aspects(model)
    if settings.suppress_warnings:
        model.suppress_all_warnings()
    if settings.warning_filter:
        model.set_warning_filter(settings.warning_filter)


def _normalize(model: Model, result: ConversionResult) -> None:
    result.stage_result = model.establish_stage(NORMALIZED)
    logger.debug("Stage '%s' ended %s", NORMALIZED, result.stage_result.value)
    if result.stage_result == StageResult.ESTABLISHED:
        result.service = model.normalized_config


def _read_sources(collector: DiagCollector, config_files: Sequence[str]) -> list[ConfigSource]:
    sources = []
    for path in config_files:
        source = read_config_file(collector, path)
        if source is not None:
            sources.append(source)
    return sources


# --- Flows ---


def convert(
    document: dict[str, Any],
    config_files: Sequence[str] = (),
    settings: Optional[ToolSettings] = None,
) -> ConversionResult:
    """Import *document*, merge *config_files* over it and normalize.

    Args:
        document: A loaded OpenAPI or Swagger document.
        config_files: YAML configuration documents, merged in order after
            the imported configuration.
        settings: Effective tool settings; defaults when omitted.
    """
    settings = settings or ToolSettings()
    collector = new_collector(settings)
    result = ConversionResult(collector)

    def action() -> None:
        imported = OpenApiImporter(document, settings.namespace, collector).build()
        sources = [imported.config_source(), *_read_sources(collector, config_files)]
        if collector.has_errors:
            return
        model = Model.create(
            imported.descriptor_set(),
            experiments=settings.experiments,
            diag_collector=collector,
        )
        _prepare(model, settings)
        model.set_config_sources(sources)
        _normalize(model, result)

    run_conversion(collector, action)
    return result


def normalize(
    config_files: Sequence[str], settings: Optional[ToolSettings] = None
) -> ConversionResult:
    """Normalize configuration documents.

    The documents are merged in order. Apis, types and enums they declare
    form the model; without declarations the model is empty.
    """
    settings = settings or ToolSettings()
    collector = new_collector(settings)
    result = ConversionResult(collector)

    def action() -> None:
        sources = _read_sources(collector, config_files)
        if collector.has_errors or not sources:
            return
        merged = Model(experiments=settings.experiments)
        merged.set_config_sources(sources)
        descriptor_set = DescriptorGenerator(merged.service_config).generate()
        model = Model.create(
            descriptor_set, experiments=settings.experiments, diag_collector=collector
        )
        _prepare(model, settings)
        model.set_config_sources(sources)
        _normalize(model, result)

    run_conversion(collector, action)
    return result


def generate_descriptors(
    config_file: str, settings: Optional[ToolSettings] = None
) -> tuple[ConversionResult, Optional[FileDescriptorSet]]:
    """Rebuild the descriptor set a normalized configuration describes."""
    settings = settings or ToolSettings()
    collector = new_collector(settings)
    result = ConversionResult(collector)

    def action() -> Optional[FileDescriptorSet]:
        sources = _read_sources(collector, [config_file])
        if not sources:
            return None
        service = sources[0].config
        result.service = service
        return DescriptorGenerator(service).generate()

    descriptor_set = run_conversion(collector, action)
    return result, descriptor_set
