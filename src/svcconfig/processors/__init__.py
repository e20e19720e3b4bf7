"""Processors establishing the stages of the standard pipeline.

* :class:`~svcconfig.processors.resolver.Resolver` -- ``Resolved``: builds
  the symbol table and binds type references.
* :class:`~svcconfig.processors.merger.Merger` -- ``Merged``: merges the
  service configuration into the model through the aspects.
* :class:`~svcconfig.processors.linter.Linter` -- ``Linted``: style checks.
* :class:`~svcconfig.processors.normalizer.Normalizer` -- ``Normalized``:
  writes the normalized service configuration.
"""

from svcconfig.processors.linter import Linter
from svcconfig.processors.merger import Merger
from svcconfig.processors.normalizer import Normalizer
from svcconfig.processors.resolver import Resolver

__all__ = ["Resolver", "Merger", "Linter", "Normalizer"]
