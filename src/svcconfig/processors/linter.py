"""Runs the lint hooks of all aspects over the elements in scope."""

from __future__ import annotations

import logging
from typing import Sequence

from svcconfig.model.model import Model
from svcconfig.model.stages import LINTED, MERGED, StageKey
from svcconfig.processors.base import Processor

logger = logging.getLogger(__name__)


class Linter(Processor):
    """Establishes :data:`~svcconfig.model.stages.LINTED`.

    Lint rules report warnings, which never fail the stage; an aspect may
    still report errors from its lint hooks.
    """

    def requires(self) -> Sequence[StageKey]:
        return [MERGED]

    def establishes(self) -> StageKey:
        return LINTED

    def run(self, model: Model) -> bool:
        old_error_count = model.error_count
        aspects = model.aspects
        for aspect in aspects:
            aspect.start_linting()
        elements = model.scoped_elements()
        logger.debug("Linting %d elements with %d aspects", len(elements), len(aspects))
        for element in elements:
            for aspect in aspects:
                aspect.lint(element)
        for aspect in aspects:
            aspect.end_linting()

        if model.error_count == old_error_count:
            model.mark_established(LINTED)
            return True
        return False
