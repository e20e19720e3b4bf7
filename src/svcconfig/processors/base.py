"""Abstract bases of pipeline processors and element validators.

A :class:`Processor` establishes exactly one stage of a
:class:`~svcconfig.model.model.Model`, after the stages it :meth:`~Processor.requires`
are established. The model's scheduler guarantees each processor runs at
most once.

Example:
    A processor that only marks its stage::

        class Checked(Processor):
            def requires(self):
                return [RESOLVED]

            def establishes(self):
                return CHECKED

            def run(self, model):
                model.mark_established(CHECKED)
                return True
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

from svcconfig.model.stages import StageKey

if TYPE_CHECKING:
    from svcconfig.model.elements import Element
    from svcconfig.model.model import Model


class Processor(ABC):
    """Base class for all stage processors."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def requires(self) -> Sequence[StageKey]:
        """Return the stages that must be established before :meth:`run`."""
        ...

    @abstractmethod
    def establishes(self) -> StageKey:
        """Return the stage this processor establishes."""
        ...

    @abstractmethod
    def run(self, model: Model) -> bool:
        """Do the work of the stage.

        Implementations call :meth:`Model.mark_established` on success.

        Returns:
            ``False`` if the stage could not be established; the diags
            explaining why are already in the model's collector.
        """
        ...


class Validator(ABC):
    """A check run against every element of one class after merging.

    Attributes:
        element_type: The element class this validator applies to.
    """

    element_type: type = object

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def validate(self, model: Model, element: Element) -> None:
        """Report problems with *element* through ``model.error`` / ``model.warning``."""
        ...
