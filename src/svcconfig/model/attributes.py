"""Typed, write-once attribute slots attached to model elements.

Processors and aspects attach results to elements through typed keys rather
than ad-hoc attributes. Every key must be declared in the slot registry for
the element class it is written to, together with the stage whose processor
populates it::

    HTTP = AttributeKey("http", HttpAttribute)
    declare_slot(Method, HTTP, MERGED)

    method.put_attribute(HTTP, attr)   # ok once
    method.put_attribute(HTTP, attr)   # AttributeSlotError

Slots marked ``required`` must be populated on every element of the declared
class once their stage is established; the stage scheduler verifies that
after each processor run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Iterator, TypeVar

from svcconfig.exceptions import AttributeSlotError

T = TypeVar("T")


@dataclass(frozen=True, eq=False)
class AttributeKey(Generic[T]):
    """Identity-compared key of one attribute slot.

    Attributes:
        name: Display name used in error messages.
        value_type: The type of values stored under this key.
    """

    name: str
    value_type: type

    def __repr__(self) -> str:
        return f"AttributeKey({self.name!r})"


@dataclass(frozen=True)
class SlotDeclaration:
    element_type: type
    key: AttributeKey[Any]
    stage: Any
    required: bool = False


_SLOTS: dict[tuple[type, AttributeKey[Any]], SlotDeclaration] = {}


def declare_slot(
    element_type: type, key: AttributeKey[Any], stage: Any, required: bool = False
) -> AttributeKey[Any]:
    """Declare that *key* may be written to instances of *element_type*.

    Declaring the same slot twice with the same stage is a no-op, so modules
    may be re-imported freely.

    Returns:
        The key, for use as ``KEY = declare_slot(Cls, AttributeKey(...), STAGE)``.

    Raises:
        AttributeSlotError: If the slot was already declared for another stage.
    """
    declaration = SlotDeclaration(element_type, key, stage, required)
    existing = _SLOTS.get((element_type, key))
    if existing is not None and existing.stage is not stage:
        raise AttributeSlotError(
            f"Attribute '{key.name}' of {element_type.__name__} is already declared "
            f"for stage '{existing.stage}'"
        )
    _SLOTS[(element_type, key)] = declaration
    return key


def lookup_slot(element_type: type, key: AttributeKey[Any]) -> SlotDeclaration | None:
    """Find the declaration of *key* for *element_type* or one of its bases."""
    for cls in element_type.__mro__:
        declaration = _SLOTS.get((cls, key))
        if declaration is not None:
            return declaration
    return None


def required_slots(stage: Any) -> Iterator[SlotDeclaration]:
    """Yield the required slot declarations populated by *stage*."""
    for declaration in _SLOTS.values():
        if declaration.required and declaration.stage is stage:
            yield declaration


class AttributeStore:
    """The slot map of one element."""

    def __init__(self) -> None:
        self._values: dict[AttributeKey[Any], Any] = {}

    def has(self, key: AttributeKey[Any]) -> bool:
        return key in self._values

    def get(self, key: AttributeKey[T], default: Any = None) -> T:
        return self._values.get(key, default)

    def put(self, owner: Any, key: AttributeKey[T], value: T) -> None:
        """Write *value* into the slot for *key*.

        Raises:
            AttributeSlotError: If the slot is undeclared for *owner*'s class or
                already written.
        """
        if lookup_slot(type(owner), key) is None:
            raise AttributeSlotError(
                f"Attribute '{key.name}' is not declared for {type(owner).__name__}"
            )
        if key in self._values:
            raise AttributeSlotError(
                f"Attribute '{key.name}' of {type(owner).__name__} '{owner}' is already set"
            )
        self._values[key] = value
