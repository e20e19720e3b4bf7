"""The in-memory model of an API and the stage scheduler driving it.

Sub-modules:

* :mod:`~svcconfig.model.elements` -- the element tree (files, interfaces,
  methods, messages, fields, enums) and resolved type references.
* :mod:`~svcconfig.model.attributes` -- typed, write-once attribute slots.
* :mod:`~svcconfig.model.stages` -- the stage keys of the standard pipeline.
* :mod:`~svcconfig.model.symbol_table` -- name lookup and scoped resolution.
* :mod:`~svcconfig.model.model` -- the :class:`Model` root and scheduler.
"""

from svcconfig.model.model import Model, StageResult
from svcconfig.model.stages import LINTED, MERGED, NORMALIZED, RESOLVED, StageKey
from svcconfig.model.symbol_table import SymbolTable

__all__ = [
    "Model",
    "StageResult",
    "StageKey",
    "RESOLVED",
    "MERGED",
    "LINTED",
    "NORMALIZED",
    "SymbolTable",
]
