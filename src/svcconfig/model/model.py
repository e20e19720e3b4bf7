"""The model: root of the element tree and driver of the stage pipeline.

One :class:`Model` exists per conversion run. It owns:

* the element tree (one :class:`~svcconfig.model.elements.ProtoFile` per
  descriptor file),
* the processor registry -- an ordered map from stage key to the processor
  establishing it,
* the ordered list of configuration aspects and the validators,
* the diag collector and the warning suppressor,
* the merged service configuration and, once normalized, its result.

Registries are per instance. Two models never share processors, aspects, or
diagnostics, so independent conversions may run side by side.

Example::

    model = Model.create(descriptor_set)
    register_standard_processors(model)
    register_standard_aspects(model)
    model.set_config_sources([source])
    if model.establish_stage(NORMALIZED) == StageResult.ESTABLISHED:
        service = model.normalized_config
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Optional, Sequence

from svcconfig.config_source import ConfigSource
from svcconfig.descriptor import FileDescriptorSet
from svcconfig.diag import (
    Diag,
    DiagCollector,
    DiagSuppressor,
    Location,
    SimpleDiagCollector,
    SimpleLocation,
)
from svcconfig.exceptions import (
    AttributeSlotError,
    CyclicStageDependencyError,
    ProcessorNotRegisteredError,
    StageNotEstablishedError,
)
from svcconfig.model.attributes import declare_slot, required_slots
from svcconfig.model.elements import Element, EnumType, Interface, MessageType, ProtoFile
from svcconfig.model.stages import StageKey
from svcconfig.models import ConfigMessage, Service

if TYPE_CHECKING:
    from svcconfig.aspects.base import ConfigAspect
    from svcconfig.model.symbol_table import SymbolTable
    from svcconfig.processors.base import Processor, Validator

logger = logging.getLogger(__name__)

PROTO3_CONFIG_MERGING = "proto3_config_merging"
"""Experiment selecting proto3 merge semantics for configuration sources."""


class StageResult(str, enum.Enum):
    """Outcome of :meth:`Model.establish_stage`."""

    ESTABLISHED = "established"
    FAILED = "failed"
    ABORTED = "aborted"
    """The diag collector hit its cap; no further work was attempted."""


class Model(Element):
    """Root element and pipeline state of one conversion run."""

    kind_name = "model"

    DEFAULT_CONFIG_VERSION = 3
    DEV_CONFIG_VERSION = 4

    def __init__(
        self,
        diag_collector: Optional[DiagCollector] = None,
        experiments: Iterable[str] = (),
    ) -> None:
        super().__init__(None, "", SimpleLocation.TOPLEVEL)
        self.files: list[ProtoFile] = []
        self._processors: dict[StageKey, Processor] = {}
        self._aspects: list[ConfigAspect] = []
        self._validators: list[Validator] = []
        self._collector = diag_collector if diag_collector is not None else SimpleDiagCollector()
        self._suppressor = DiagSuppressor(self._collector, root=self)
        self._experiments: set[str] = set(experiments)
        self._roots: list[Element] = []
        self._symbol_table: Optional[SymbolTable] = None
        self._config_source: Optional[ConfigSource] = None
        self._normalized_config: Optional[Service] = None

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def create(
        cls,
        descriptor_set: FileDescriptorSet,
        sources: Optional[Iterable[str]] = None,
        experiments: Iterable[str] = (),
        diag_collector: Optional[DiagCollector] = None,
    ) -> Model:
        """Build a model from a descriptor set.

        Args:
            descriptor_set: The files to model. Later duplicates of a file
                name are ignored.
            sources: Names of the files that are sources of this run; all
                files are sources when omitted.
            experiments: Names of enabled experiments.
            diag_collector: Collector to report into; a fresh unbounded one
                is used when omitted.
        """
        model = cls(diag_collector, experiments)
        source_names = set(sources) if sources is not None else None
        seen: set[str] = set()
        for file in descriptor_set.files:
            if file.name in seen:
                continue
            seen.add(file.name)
            is_source = source_names is None or file.name in source_names
            model.files.append(ProtoFile(model, file, is_source))
        return model

    @classmethod
    def from_normalized_config(
        cls,
        service: Service,
        experiments: Iterable[str] = (),
        diag_collector: Optional[DiagCollector] = None,
    ) -> Model:
        """Rebuild a model from a normalized service configuration alone.

        The descriptor set is regenerated from the configuration's types,
        enums, and apis. The configuration is then installed as the only
        source, stripped of what the descriptors now declare.
        """
        from svcconfig.processors.descriptor_generator import (
            DescriptorGenerator,
            without_declarations,
        )

        descriptor_set = DescriptorGenerator(service).generate()
        model = cls.create(descriptor_set, experiments=experiments, diag_collector=diag_collector)
        model.set_config_sources([ConfigSource.of(without_declarations(service))])
        return model

    @property
    def full_name(self) -> str:
        return ""

    def children(self) -> Iterator[Element]:
        return iter(self.files)

    # ------------------------------------------------------------------ #
    # Registries
    # ------------------------------------------------------------------ #

    def register_processor(self, processor: Processor) -> None:
        """Register *processor* for the stage it establishes, replacing any other."""
        self._processors[processor.establishes()] = processor

    @property
    def processors(self) -> list[Processor]:
        return list(self._processors.values())

    def register_aspect(self, aspect: ConfigAspect) -> None:
        self._aspects.append(aspect)

    @property
    def aspects(self) -> list[ConfigAspect]:
        return list(self._aspects)

    def register_validator(self, validator: Validator) -> None:
        self._validators.append(validator)

    @property
    def validators(self) -> list[Validator]:
        return list(self._validators)

    # ------------------------------------------------------------------ #
    # Experiments
    # ------------------------------------------------------------------ #

    def is_experiment_enabled(self, name: str) -> bool:
        return name in self._experiments

    @property
    def experiments(self) -> frozenset[str]:
        return frozenset(self._experiments)

    # ------------------------------------------------------------------ #
    # Stage scheduling
    # ------------------------------------------------------------------ #

    def has_stage(self, stage: StageKey) -> bool:
        return self.has_attribute(stage)

    def mark_established(self, stage: StageKey) -> None:
        """Record that *stage* is reached. Called by the establishing processor."""
        declare_slot(Model, stage, stage)
        self.put_attribute(stage, True)

    def establish_stage(self, stage: StageKey) -> StageResult:
        """Establish *stage*, running its processor and prerequisites as needed.

        Each processor runs at most once per model. Establishing a stage that
        is already established is a no-op.

        Returns:
            ``ESTABLISHED`` on success, ``FAILED`` when a processor reported
            errors, ``ABORTED`` when the diag collector hit its cap.

        Raises:
            CyclicStageDependencyError: If the stage requires itself.
            ProcessorNotRegisteredError: If some stage has no processor.
            StageNotEstablishedError: If a processor succeeded without
                marking its stage.
        """
        return self._establish(stage, [])

    def _establish(self, stage: StageKey, computing: list[StageKey]) -> StageResult:
        if self.has_stage(stage):
            return StageResult.ESTABLISHED
        if stage in computing:
            chain = " => ".join(str(s) for s in [*computing, stage])
            raise CyclicStageDependencyError(f"Cyclic dependency of stages: {chain}")
        if self._collector.aborted:
            return StageResult.ABORTED

        processor = self._processors.get(stage)
        if processor is None:
            raise ProcessorNotRegisteredError(
                f"No processor registered to establish stage '{stage}'"
            )

        computing.append(stage)
        try:
            for required in processor.requires():
                result = self._establish(required, computing)
                if result != StageResult.ESTABLISHED:
                    return result
        finally:
            computing.pop()

        logger.debug("Establishing stage '%s' with processor '%s'", stage, processor.name)
        success = processor.run(self)
        if self._collector.aborted:
            logger.debug("Diag cap reached while establishing stage '%s'", stage)
            return StageResult.ABORTED
        if not success:
            logger.debug("Processor '%s' failed", processor.name)
            return StageResult.FAILED
        if not self.has_stage(stage):
            raise StageNotEstablishedError(
                f"Processor '{processor.name}' failed to establish stage '{stage}'"
            )
        self._verify_slots(stage)
        return StageResult.ESTABLISHED

    def _verify_slots(self, stage: StageKey) -> None:
        declarations = list(required_slots(stage))
        if not declarations:
            return
        for element in self.walk():
            for declaration in declarations:
                if isinstance(element, declaration.element_type) and not element.has_attribute(
                    declaration.key
                ):
                    raise AttributeSlotError(
                        f"Attribute '{declaration.key.name}' of {element.kind_name} "
                        f"'{element.full_name}' not set after stage '{stage}'"
                    )

    # ------------------------------------------------------------------ #
    # Diagnostics
    # ------------------------------------------------------------------ #

    @property
    def diag_collector(self) -> DiagCollector:
        return self._collector

    def add_diag(self, diag: Diag, target: Any = None) -> None:
        """Report *diag* unless a suppression pattern on *target* matches it.

        *target* is the element the diag is about; without one, only the
        model-wide patterns apply.
        """
        if self._suppressor.is_suppressed(diag, target):
            return
        self._collector.add_diag(diag)

    def error(self, target: Any, message: str, *args: Any) -> None:
        self.add_diag(Diag.error(_location_of(target), message, *args), target)

    def warning(self, target: Any, message: str, *args: Any) -> None:
        self.add_diag(Diag.warning(_location_of(target), message, *args), target)

    @property
    def error_count(self) -> int:
        return self._collector.error_count

    @property
    def has_errors(self) -> bool:
        return self._collector.has_errors

    def suppress_all_warnings(self) -> None:
        self._suppressor.add_pattern(self, ".*")

    def set_warning_filter(self, pattern: str) -> None:
        """Suppress model-wide every warning whose identifier matches *pattern*."""
        self._suppressor.add_pattern(self, pattern)

    def add_suppression_directive(self, element: Element, directive: str) -> None:
        self._suppressor.add_suppression_directive(
            element, directive, [aspect.name for aspect in self._aspects]
        )

    # ------------------------------------------------------------------ #
    # Symbol table
    # ------------------------------------------------------------------ #

    @property
    def symbol_table(self) -> SymbolTable:
        if self._symbol_table is None:
            raise AttributeSlotError("Symbol table is not available before stage 'Resolved'")
        return self._symbol_table

    def set_symbol_table(self, table: SymbolTable) -> None:
        if self._symbol_table is not None:
            raise AttributeSlotError("Symbol table is already set")
        self._symbol_table = table

    # ------------------------------------------------------------------ #
    # Service configuration
    # ------------------------------------------------------------------ #

    def set_config_sources(self, sources: Sequence[ConfigSource]) -> None:
        """Merge *sources* in order and install the result as the service config."""
        if not sources:
            builder = ConfigSource.new_builder(Service())
            builder.set_value("config_version", None, self.DEFAULT_CONFIG_VERSION)
            self._config_source = builder.build()
            return
        builder = sources[0].to_builder()
        proto3 = self.is_experiment_enabled(PROTO3_CONFIG_MERGING)
        for source in sources[1:]:
            if proto3:
                builder.merge_from_with_proto3_semantics(source)
            else:
                builder.merge_from(source)
        self._config_source = builder.build()

    @property
    def config_source(self) -> ConfigSource:
        if self._config_source is None:
            self.set_config_sources([])
        return self._config_source

    @property
    def service_config(self) -> Service:
        return self.config_source.config

    @property
    def config_version(self) -> int:
        version = self.service_config.config_version
        return version if version is not None else self.DEFAULT_CONFIG_VERSION

    def location_in_config(
        self, message: ConfigMessage, field_name: str, element_key: Any = None
    ) -> Location:
        """Return the source location of a config value, ``TOPLEVEL`` if unknown."""
        location = self.config_source.get_location(message, field_name, element_key)
        if location == SimpleLocation.UNKNOWN:
            return SimpleLocation.TOPLEVEL
        return location

    @property
    def normalized_config(self) -> Optional[Service]:
        return self._normalized_config

    def set_normalized_config(self, service: Service) -> None:
        self._normalized_config = service

    # ------------------------------------------------------------------ #
    # Roots and reachability
    # ------------------------------------------------------------------ #

    def add_root(self, element: Element) -> None:
        if element not in self._roots:
            self._roots.append(element)

    @property
    def roots(self) -> list[Element]:
        return list(self._roots)

    def reachable_elements(self) -> list[Element]:
        """Return the roots and every interface, message, and enum reachable from them.

        Messages are reached through method input and output types and
        through field types. The order is discovery order.
        """
        seen: dict[int, Element] = {}
        pending = list(self._roots)
        while pending:
            element = pending.pop(0)
            if id(element) in seen:
                continue
            seen[id(element)] = element
            if isinstance(element, Interface):
                for method in element.methods:
                    for ref in (method.input_type, method.output_type):
                        if ref is not None and ref.message_type is not None:
                            pending.append(ref.message_type)
            elif isinstance(element, MessageType):
                for field in element.fields:
                    ref = field.type
                    if ref is None:
                        continue
                    if ref.message_type is not None:
                        pending.append(ref.message_type)
                    elif ref.enum_type is not None:
                        pending.append(ref.enum_type)
        return list(seen.values())

    def scoped_elements(self) -> list[Element]:
        """Return the elements in scope of the roots, in tree order.

        Files are always in scope. Interfaces, messages, and enums are in scope
        when reachable; their methods, fields, and values follow them.
        """
        reachable = {id(e) for e in self.reachable_elements()}
        scoped: list[Element] = []
        for element in self.walk():
            if element is self:
                continue
            if isinstance(element, ProtoFile):
                scoped.append(element)
                continue
            owner = (
                element
                if isinstance(element, (Interface, MessageType, EnumType))
                else element.parent
            )
            if id(owner) in reachable:
                scoped.append(element)
        return scoped


def _location_of(target: Any) -> Location:
    if isinstance(target, Location):
        return target
    if isinstance(target, Element):
        return target.location
    return SimpleLocation.TOPLEVEL

