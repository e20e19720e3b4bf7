"""Intermediate type descriptions produced while translating schemas."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Optional

from svcconfig.models import Cardinality, FieldKind, TypeField


@dataclass(frozen=True)
class TypeInfo:
    """What a schema translates to.

    A message-kind ``TypeInfo`` without ``type_url`` is *structural*: it
    carries its ``fields`` but has no name yet. It becomes a named type only
    when :meth:`TypeBuilder.ensure_named` is called on it.

    Attributes:
        type_url: Type url of a named message type.
        kind: Field kind of values of this type.
        cardinality: ``CARDINALITY_REPEATED`` for arrays and maps.
        fields: Fields of a structural message type.
        is_map_entry: Whether this is the entry type of a map.
    """

    type_url: Optional[str]
    kind: FieldKind
    cardinality: Cardinality = Cardinality.CARDINALITY_OPTIONAL
    fields: Optional[tuple[TypeField, ...]] = None
    is_map_entry: bool = False

    @property
    def is_message(self) -> bool:
        return self.kind == FieldKind.TYPE_MESSAGE

    @property
    def is_repeated(self) -> bool:
        return self.cardinality == Cardinality.CARDINALITY_REPEATED

    @property
    def is_named(self) -> bool:
        return bool(self.type_url)

    def with_cardinality(self, cardinality: Cardinality) -> TypeInfo:
        return dataclasses.replace(self, cardinality=cardinality)

    def with_type_url(self, type_url: Optional[str]) -> TypeInfo:
        return dataclasses.replace(self, type_url=type_url)

    @classmethod
    def primitive(cls, kind: FieldKind) -> TypeInfo:
        return cls(None, kind)

    @classmethod
    def message(cls, type_url: str) -> TypeInfo:
        return cls(type_url, FieldKind.TYPE_MESSAGE)
