"""Location-preserving configuration trees and their builder.

A :class:`ConfigSource` pairs an immutable :class:`~svcconfig.models.ConfigMessage`
tree with a side-table recording where each value came from::

    {node_id: {(field_name, element_key): Location}}

``node_id`` is the creation-time identity of a message instance (see
:class:`~svcconfig.models.ConfigMessage`), ``element_key`` is ``None`` for
singular fields, the index for repeated fields, and the map key for map
fields.

Trees are changed only through a :class:`ConfigSourceBuilder`, obtained from
:meth:`ConfigSource.to_builder` or :meth:`ConfigSource.new_builder`. Nested
values are edited by opening a scoped sub-builder (:meth:`~ConfigSourceBuilder.with_builder`
and friends) so every leaf keeps its provenance.

Two merge policies are offered:

* :meth:`ConfigSourceBuilder.merge_from` -- standard merge plus the legacy
  rule that a scalar which the incoming document *located* but left at its
  default resets the target to the default. This is how a document can
  explicitly turn a value back off.
* :meth:`ConfigSourceBuilder.merge_from_with_proto3_semantics` -- the same
  traversal without that reset, since proto3 values cannot tell "explicitly
  default" from "never set".

Example::

    builder = ConfigSource.new_builder(Service())
    builder.set_value("name", None, "library.example.com", loc)
    builder.with_builder("http", lambda http: http.with_added_builder(
        "rules", lambda rule: rule.set_value("selector", None, "a.B.C", rule_loc)))
    source = builder.build()
    source.get_location(source.config, "name")  # loc
"""

from __future__ import annotations

import enum
import functools
import inspect
import logging
import types
import typing
from typing import Any, Callable, Mapping, NamedTuple, Optional

from svcconfig.diag import Location, SimpleLocation
from svcconfig.exceptions import BuilderStateError
from svcconfig.models import ConfigMessage, has_field

logger = logging.getLogger(__name__)

LocationKey = tuple[str, Any]
"""``(field_name, element_key)`` -- the key of one entry in a location map."""

BuildAction = Callable[["ConfigSourceBuilder"], Any]
"""Callback receiving a scoped sub-builder."""


# --- Field introspection ---


class FieldShape(str, enum.Enum):
    """How a configuration message field holds its value."""

    SCALAR = "scalar"
    MESSAGE = "message"
    LIST = "list"
    MAP = "map"


class FieldInfo(NamedTuple):
    """Shape, element type, and default of one configuration field."""

    shape: FieldShape
    element_type: Any
    default: Any

    @property
    def message_type(self) -> Optional[type[ConfigMessage]]:
        """The message class of the (element) value, or ``None`` for scalars."""
        if _is_message_class(self.element_type):
            return self.element_type
        return None


def _is_message_class(value: Any) -> bool:
    return inspect.isclass(value) and issubclass(value, ConfigMessage)


def _strip_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


@functools.lru_cache(maxsize=None)
def field_info(message_type: type[ConfigMessage], name: str) -> FieldInfo:
    """Describe field *name* of *message_type*.

    Raises:
        KeyError: If the message has no such field.
    """
    model_field = message_type.model_fields[name]
    annotation = _strip_optional(model_field.annotation)
    default = model_field.get_default(call_default_factory=True)
    origin = typing.get_origin(annotation)
    if origin is list:
        (element,) = typing.get_args(annotation)
        return FieldInfo(FieldShape.LIST, element, default)
    if origin is dict:
        _, element = typing.get_args(annotation)
        return FieldInfo(FieldShape.MAP, element, default)
    if _is_message_class(annotation):
        return FieldInfo(FieldShape.MESSAGE, annotation, default)
    return FieldInfo(FieldShape.SCALAR, annotation, default)


def _fresh(value: Any) -> Any:
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return dict(value)
    return value


# --- ConfigSource ---


class ConfigSource:
    """An immutable configuration tree plus the locations of its values.

    Args:
        config: The root message.
        locations: Location side-table keyed by message ``node_id``.
    """

    def __init__(
        self,
        config: ConfigMessage,
        locations: Mapping[int, Mapping[LocationKey, Location]],
    ) -> None:
        self._config = config
        self._locations = locations

    @property
    def config(self) -> ConfigMessage:
        """The root configuration message."""
        return self._config

    def get_location(
        self, message: ConfigMessage, field_name: str, element_key: Any = None
    ) -> Location:
        """Return the recorded location of a value, or ``UNKNOWN``.

        Args:
            message: Any message inside this tree.
            field_name: The field of *message*.
            element_key: Index or map key for repeated and map fields.
        """
        by_key = self._locations.get(message.node_id)
        if by_key is None:
            return SimpleLocation.UNKNOWN
        return by_key.get((field_name, element_key), SimpleLocation.UNKNOWN)

    def to_builder(self) -> ConfigSourceBuilder:
        """Return a builder starting from this tree and its locations."""
        return ConfigSourceBuilder(self._config, dict(self._locations))

    @staticmethod
    def new_builder(default_instance: ConfigMessage) -> ConfigSourceBuilder:
        """Return a builder starting from *default_instance* with no locations."""
        return ConfigSourceBuilder(default_instance, {})

    @staticmethod
    def of(message: ConfigMessage) -> ConfigSource:
        """Wrap *message* into a source without any recorded locations."""
        return ConfigSource(message, {})


# --- Builder ---


class ConfigSourceBuilder:
    """Copy-on-write editor for a configuration tree.

    A builder holds mutable copies of the field values of the message it was
    opened on. Every setter records the acting ``(field, key)`` and location
    in a local diff, which :meth:`build` folds into the shared location map
    under the identity of the newly built message.

    Sub-builders share the location map with their parent. Building a
    sub-builder only produces a message; only the top-level :meth:`build`
    produces a :class:`ConfigSource`.
    """

    def __init__(
        self,
        message: ConfigMessage,
        locations: dict[int, Mapping[LocationKey, Location]],
    ) -> None:
        self._message = message
        self._type = type(message)
        self._values: dict[str, Any] = {
            name: _fresh(getattr(message, name)) for name in self._type.model_fields
        }
        self._locations = locations
        self._new_locations: dict[LocationKey, Location] = {}
        self._built = False

    @property
    def message_type(self) -> type[ConfigMessage]:
        return self._type

    def get(self, field_name: str) -> Any:
        """Return the current (possibly edited) value of a field."""
        return self._values[field_name]

    def _info(self, field_name: str) -> FieldInfo:
        return field_info(self._type, field_name)

    # ------------------------------------------------------------------ #
    # Building
    # ------------------------------------------------------------------ #

    def build(self) -> ConfigSource:
        """Finalise the tree.

        Locations recorded against the message this builder was opened on are
        carried forward for every key not touched in this pass, then the
        merged map is indexed under the new message's identity.

        Raises:
            BuilderStateError: If called a second time.
        """
        message = self._build_message()
        return ConfigSource(message, dict(self._locations))

    def _build_message(self) -> ConfigMessage:
        if self._built:
            raise BuilderStateError("Called build twice on config source")
        self._built = True

        message = self._type(**self._values)

        old_locations = self._locations.pop(self._message.node_id, None)
        merged = dict(self._new_locations)
        if old_locations:
            for key, location in old_locations.items():
                if key not in merged:
                    merged[key] = location
        if merged:
            self._locations[message.node_id] = merged
        return message

    # ------------------------------------------------------------------ #
    # Setters
    # ------------------------------------------------------------------ #

    def set_value(
        self,
        field_name: str,
        key: Any,
        value: Any,
        location: Optional[Location] = None,
    ) -> ConfigSourceBuilder:
        """Set a singular field, or put a map entry when *key* is given.

        Map entries keep at most one value per key; replacing a key moves it
        to the end of the iteration order.

        Raises:
            TypeError: If *key* is given for a field that is not a map.
        """
        if key is None:
            self._values[field_name] = value
        else:
            if self._info(field_name).shape != FieldShape.MAP:
                raise TypeError(f"Field '{field_name}' of {self._type.__name__} is not a map")
            entries = self._values[field_name]
            entries.pop(key, None)
            entries[key] = value
        self.add_location(field_name, key, location)
        return self

    def add_location(
        self, field_name: str, key: Any, location: Optional[Location]
    ) -> ConfigSourceBuilder:
        """Record *location* for ``(field_name, key)`` without changing a value."""
        self._new_locations[(field_name, key)] = location or SimpleLocation.UNKNOWN
        return self

    def add_value(
        self, field_name: str, value: Any, location: Optional[Location] = None
    ) -> ConfigSourceBuilder:
        """Append to a repeated field; the location is keyed by the new index."""
        values = self._values[field_name]
        index = len(values)
        values.append(value)
        self._new_locations[(field_name, index)] = location or SimpleLocation.UNKNOWN
        return self

    # ------------------------------------------------------------------ #
    # Scoped sub-builders
    # ------------------------------------------------------------------ #

    def with_builder(
        self, field_name: str, action: BuildAction, key: Any = None
    ) -> ConfigSourceBuilder:
        """Edit a sub-message field (or, with *key*, a map entry) in place.

        A missing sub-message or map entry starts from the default instance.
        """
        element_type = self._info(field_name).message_type
        if element_type is None:
            raise TypeError(f"Field '{field_name}' of {self._type.__name__} is not a message")
        if key is None:
            current = self._values[field_name] or element_type()
            self._values[field_name] = self._run_scoped(current, action)
        else:
            entries = self._values[field_name]
            current = entries.get(key) or element_type()
            entries[key] = self._run_scoped(current, action)
        return self

    def with_builder_at(
        self, field_name: str, index: int, action: BuildAction
    ) -> ConfigSourceBuilder:
        """Edit the element at *index* of a repeated message field."""
        values = self._values[field_name]
        values[index] = self._run_scoped(values[index], action)
        return self

    def with_added_builder(self, field_name: str, action: BuildAction) -> ConfigSourceBuilder:
        """Append a fresh element to a repeated message field and edit it."""
        element_type = self._info(field_name).message_type
        if element_type is None:
            raise TypeError(f"Field '{field_name}' of {self._type.__name__} is not a message")
        self._values[field_name].append(self._run_scoped(element_type(), action))
        return self

    def _run_scoped(self, current: ConfigMessage, action: BuildAction) -> ConfigMessage:
        sub_builder = ConfigSourceBuilder(current, self._locations)
        action(sub_builder)
        return sub_builder._build_message()

    # ------------------------------------------------------------------ #
    # Merging
    # ------------------------------------------------------------------ #

    def merge_from(self, source: ConfigSource) -> ConfigSourceBuilder:
        """Merge *source* into this builder with legacy default-reset semantics."""
        self._check_mergeable(source)
        self._merge(source.config, source, proto3=False)
        return self

    def merge_from_with_proto3_semantics(self, source: ConfigSource) -> ConfigSourceBuilder:
        """Merge *source* into this builder without resetting located defaults."""
        self._check_mergeable(source)
        self._merge(source.config, source, proto3=True)
        return self

    def _check_mergeable(self, source: ConfigSource) -> None:
        if type(source.config) is not self._type:
            raise TypeError(
                f"Cannot merge {type(source.config).__name__} into {self._type.__name__}"
            )

    def _merge(self, incoming: ConfigMessage, source: ConfigSource, proto3: bool) -> None:
        # Values: scalars overwrite, lists concatenate, maps replace by key,
        # messages merge recursively together with their locations.
        for name in self._type.model_fields:
            if not has_field(incoming, name):
                continue
            info = self._info(name)
            value = getattr(incoming, name)
            if info.shape == FieldShape.SCALAR:
                self._values[name] = value
            elif info.shape == FieldShape.MESSAGE:
                self.with_builder(name, _merger(value, source, proto3))
            elif info.shape == FieldShape.LIST:
                if info.message_type is None:
                    self._values[name].extend(value)
                else:
                    for element in value:
                        self.with_added_builder(name, _merger(element, source, proto3))
            else:
                entries = self._values[name]
                for key, entry in value.items():
                    if info.message_type is not None:
                        sub_builder = ConfigSourceBuilder(info.message_type(), self._locations)
                        sub_builder._merge(entry, source, proto3)
                        entry = sub_builder._build_message()
                    entries.pop(key, None)
                    entries[key] = entry

        # Locations of the incoming message itself.
        for (name, key), location in source._locations.get(incoming.node_id, {}).items():
            info = self._info(name)
            if info.shape == FieldShape.LIST and key is not None:
                size_before = len(self._values[name]) - len(getattr(incoming, name))
                key = size_before + key
            self._new_locations[(name, key)] = location
            if info.shape == FieldShape.SCALAR and not proto3 and not has_field(incoming, name):
                self._values[name] = info.default


def _merger(incoming: ConfigMessage, source: ConfigSource, proto3: bool) -> BuildAction:
    def action(builder: ConfigSourceBuilder) -> None:
        builder._merge(incoming, source, proto3)

    return action
