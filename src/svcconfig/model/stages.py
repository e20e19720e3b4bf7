"""Stage keys of the processing pipeline.

A stage is a named milestone; the stage key doubles as the attribute key the
establishing processor sets on the :class:`~svcconfig.model.model.Model` once
the stage is reached. Dependencies between stages are declared by the
processors (see :class:`~svcconfig.processors.base.Processor.requires`)::

    Resolved <- Merged <- Linted <- Normalized
"""

from __future__ import annotations

from svcconfig.model.attributes import AttributeKey


class StageKey(AttributeKey[bool]):
    """Attribute key marking that a stage has been established."""

    def __init__(self, name: str) -> None:
        super().__init__(name, bool)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"StageKey({self.name!r})"


RESOLVED = StageKey("Resolved")
"""Names are resolved and the symbol table is built."""

MERGED = StageKey("Merged")
"""Configuration aspects have merged the service config onto the elements."""

LINTED = StageKey("Linted")
"""Style rules have run."""

NORMALIZED = StageKey("Normalized")
"""The normalized service config is available."""
