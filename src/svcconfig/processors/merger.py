"""Merges the service configuration into the model.

The merger establishes :data:`~svcconfig.model.stages.MERGED`:

1. Every api of the configuration is resolved to an interface, which becomes
   a root of the model.
2. Aspects run their merge hooks over the element tree, layered by their
   merge dependencies.
3. Registered validators run over every element of their class.
4. Extra types and enums listed in the configuration become roots, which
   keeps types that are only referenced indirectly in the output.
"""

from __future__ import annotations

import logging
import re
from typing import Sequence

from svcconfig.aspects.base import ConfigAspect
from svcconfig.diag import Diag, Location
from svcconfig.exceptions import CyclicAspectDependencyError, PipelineError
from svcconfig.model.model import Model
from svcconfig.model.stages import MERGED, RESOLVED, StageKey
from svcconfig.models import FieldKind
from svcconfig.processors.base import Processor

logger = logging.getLogger(__name__)

SELECTOR_PATTERN = re.compile(r"^(\w+(\.\w+)*(\.\*)?)$")


def sort_for_merge(aspects: Sequence[ConfigAspect]) -> list[list[ConfigAspect]]:
    """Group *aspects* into levels by longest dependency path.

    Aspects without dependencies are on the first level; every other aspect
    sits one level above the deepest aspect it depends on. Aspects within a
    level keep registration order.

    Raises:
        CyclicAspectDependencyError: If the dependencies form a cycle.
        PipelineError: If an aspect depends on an unregistered aspect class.
    """
    by_type = {type(aspect): aspect for aspect in aspects}
    levels: dict[int, int] = {}

    def assign(aspect: ConfigAspect, visiting: list[type]) -> int:
        if id(aspect) in levels:
            return levels[id(aspect)]
        aspect_type = type(aspect)
        if aspect_type in visiting:
            cycle = " <- ".join(t.__name__ for t in [aspect_type, *reversed(visiting)])
            raise CyclicAspectDependencyError(
                f"Cyclic dependency between config aspect attributes. Cycle is: {cycle}"
            )
        visiting.append(aspect_type)
        height = 0
        for dependency in aspect.merge_dependencies():
            target = by_type.get(dependency)
            if target is None:
                raise PipelineError(
                    f"Config aspect {aspect_type.__name__} depends on an unregistered "
                    f"aspect {dependency.__name__}."
                )
            height = max(height, assign(target, visiting))
        visiting.pop()
        levels[id(aspect)] = height + 1
        return height + 1

    for aspect in aspects:
        assign(aspect, [])

    grouped: dict[int, list[ConfigAspect]] = {}
    for aspect in aspects:
        grouped.setdefault(levels[id(aspect)], []).append(aspect)
    return [grouped[level] for level in sorted(grouped)]


class Merger(Processor):
    """Establishes :data:`~svcconfig.model.stages.MERGED`."""

    def requires(self) -> Sequence[StageKey]:
        return [RESOLVED]

    def establishes(self) -> StageKey:
        return MERGED

    def run(self, model: Model) -> bool:
        old_error_count = model.error_count
        config = model.service_config
        table = model.symbol_table

        for api in config.apis:
            interface = table.lookup_interface(api.name)
            if interface is not None:
                model.add_root(interface)
            else:
                model.add_diag(
                    Diag.error(
                        model.location_in_config(api, "name"), "Cannot resolve api '%s'.", api.name
                    )
                )

        levels = sort_for_merge(model.aspects)
        logger.debug(
            "Merging aspects in %d levels: %s",
            len(levels),
            [[aspect.name for aspect in level] for level in levels],
        )
        for level in levels:
            for aspect in level:
                aspect.start_merging()
        elements = [element for element in model.walk() if element is not model]
        for level in levels:
            for element in elements:
                for aspect in level:
                    aspect.merge(element)
        for level in levels:
            for aspect in level:
                aspect.end_merging()

        self._run_validators(model)

        for type_config in config.types:
            location = model.location_in_config(type_config, "name")
            self._add_extra_type(model, location, type_config.name, FieldKind.TYPE_MESSAGE)
        for enum_config in config.enums:
            location = model.location_in_config(enum_config, "name")
            self._add_extra_type(model, location, enum_config.name, FieldKind.TYPE_ENUM)

        if model.error_count == old_error_count:
            model.mark_established(MERGED)
            return True
        return False

    def _run_validators(self, model: Model) -> None:
        validators = model.validators
        if not validators:
            return
        for element in model.walk():
            for validator in validators:
                if isinstance(element, validator.element_type):
                    validator.validate(model, element)

    def _add_extra_type(
        self, model: Model, location: Location, type_name: str, kind: FieldKind
    ) -> None:
        if not SELECTOR_PATTERN.match(type_name):
            model.add_diag(
                Diag.error(
                    location,
                    "Type selector '%s' specified in the config has bad syntax. "
                    "Valid format is \"<segment>('.' <segment>)*('.' '*')?\"",
                    type_name,
                )
            )
            return
        refs = model.symbol_table.lookup_matching_types(type_name, kind)
        if not refs:
            model.add_diag(
                Diag.error(
                    location,
                    "Cannot resolve additional %s type '%s' specified in the config. Make sure "
                    "the name is right and its associated build target was included in your "
                    "protobuf build rule.",
                    kind.value,
                    type_name,
                )
            )
            return
        for ref in refs:
            model.add_root(ref.message_type or ref.enum_type)
