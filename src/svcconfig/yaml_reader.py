"""Read service configuration documents from YAML, keeping value locations.

The document is composed into a PyYAML node graph rather than loaded, so
every value keeps the line and column it was written at. Values are then
fed through a :class:`~svcconfig.config_source.ConfigSourceBuilder`, which
records a :class:`~svcconfig.diag.ConfigLocation` for each of them.

Scalars are parsed by the type of the field they are assigned to, without
YAML's implicit typing: ``version: 1.0`` sets the string ``"1.0"`` on a
string field.

The root object must declare its configuration type::

    type: google.api.Service
    name: library.example.com
    http:
      rules:
      - selector: example.library.v1.Library.GetShelf
        get: /v1/shelves/{shelf}
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Optional

import yaml
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from svcconfig.config_source import (
    ConfigSource,
    ConfigSourceBuilder,
    FieldShape,
    field_info,
)
from svcconfig.diag import ConfigLocation, Diag, DiagCollector, Location, SimpleLocation
from svcconfig.models import SERVICE_TYPE_NAME, ConfigMessage, Service

logger = logging.getLogger(__name__)

TYPE_KEY = "type"

SUPPORTED_CONFIG_TYPES: dict[str, type[ConfigMessage]] = {SERVICE_TYPE_NAME: Service}

_NODE_KINDS = {MappingNode: "map", SequenceNode: "list", ScalarNode: "scalar"}


def _node_kind(node: Node) -> str:
    return _NODE_KINDS.get(type(node), type(node).__name__)


def _is_empty(node: Optional[Node]) -> bool:
    return node is None or (isinstance(node, ScalarNode) and not str(node.value).strip())


def _message_name(message_type: type[ConfigMessage]) -> str:
    for name, candidate in SUPPORTED_CONFIG_TYPES.items():
        if candidate is message_type:
            return name
    return message_type.__name__


class _Reader:
    def __init__(self, collector: DiagCollector, file_name: str) -> None:
        self.collector = collector
        self.file_name = file_name
        self._paths: set[str] = set()

    # --- Reporting ---

    def location(self, node: Optional[Node]) -> Location:
        if node is None:
            return SimpleLocation.UNKNOWN
        mark = node.start_mark
        return ConfigLocation(file_name=self.file_name, line=mark.line + 1, column=mark.column + 1)

    def error(self, node: Optional[Node], message: str, *args: Any) -> None:
        self.collector.add_diag(Diag.error(self.location(node), message, *args))

    def string_value(self, node: Node) -> Optional[str]:
        if not isinstance(node, ScalarNode):
            self.error(node, "Expected a scalar value.")
            return None
        return str(node.value)

    def claim_path(self, path: str, node: Node) -> bool:
        if path in self._paths:
            self.error(
                node,
                "Node '%s' is already defined in this yaml file. Multiple definitions "
                "for the same node are not allowed.",
                path.lstrip("."),
            )
            return False
        self._paths.add(path)
        return True

    # --- Messages ---

    def read_message(self, builder: ConfigSourceBuilder, node: Optional[Node], path: str) -> None:
        if _is_empty(node):
            return
        if not isinstance(node, MappingNode):
            self.error(
                node,
                "Expected a map to merge with '%s', found %s.",
                _message_name(builder.message_type),
                _node_kind(node),
            )
            return
        for key_node, value_node in node.value:
            key = self.string_value(key_node)
            if key is None:
                continue
            if key not in builder.message_type.model_fields:
                self.error(
                    key_node,
                    "Found field '%s' which is unknown in '%s'.",
                    key,
                    _message_name(builder.message_type),
                )
                continue
            field_path = f"{path}.{key}"
            if self.claim_path(field_path, value_node):
                self.read_field(builder, key, value_node, field_path)

    def read_field(
        self, builder: ConfigSourceBuilder, name: str, node: Node, path: str
    ) -> None:
        info = field_info(builder.message_type, name)
        message_type = info.message_type
        if info.shape == FieldShape.MAP:
            entries = self.expect_map(name, node)
            for key_node, value_node in entries:
                key = self.string_value(key_node)
                if key is None:
                    continue
                if message_type is not None:
                    entry_path = f"{path}.{key}"
                    if self.claim_path(entry_path, value_node):
                        builder.with_builder(name, self._reading(value_node, entry_path), key=key)
                else:
                    value = self.convert(name, info.element_type, value_node)
                    if value is not None:
                        builder.set_value(name, key, value, self.location(value_node))
        elif info.shape == FieldShape.LIST:
            for index, element in enumerate(self.expect_list(name, node)):
                if message_type is not None:
                    builder.with_added_builder(
                        name, self._reading(element, f"{path}[{index}]")
                    )
                else:
                    value = self.convert(name, info.element_type, element)
                    if value is not None:
                        builder.add_value(name, value, self.location(element))
        elif message_type is not None:
            builder.with_builder(name, self._reading(node, path))
        else:
            value = self.convert(name, info.element_type, node)
            if value is not None:
                builder.set_value(name, None, value, self.location(node))

    def _reading(self, node: Node, path: str) -> Any:
        def action(sub_builder: ConfigSourceBuilder) -> None:
            self.read_message(sub_builder, node, path)

        return action

    def expect_list(self, name: str, node: Node) -> list[Node]:
        if _is_empty(node):
            return []
        if isinstance(node, ScalarNode):
            return [node]
        if isinstance(node, SequenceNode):
            return list(node.value)
        self.error(node, "Expected a %s for field '%s', found %s.", "list", name, _node_kind(node))
        return []

    def expect_map(self, name: str, node: Node) -> list[tuple[Node, Node]]:
        if _is_empty(node):
            return []
        if isinstance(node, MappingNode):
            return list(node.value)
        self.error(node, "Expected a %s for field '%s', found %s.", "map", name, _node_kind(node))
        return []

    # --- Scalars ---

    def convert(self, name: str, target: Any, node: Node) -> Any:
        if not isinstance(node, ScalarNode):
            self.error(
                node, "Expected a %s for field '%s', found %s.", "scalar", name, _node_kind(node)
            )
            return None
        text = str(node.value)
        try:
            if isinstance(target, type) and issubclass(target, enum.Enum):
                return target(text)
            if target is bool:
                lowered = text.strip().lower()
                if lowered not in ("true", "false"):
                    raise ValueError(f"'{text}' is not a boolean")
                return lowered == "true"
            if target is int:
                return int(text.strip())
            if target is float:
                return float(text.strip())
            return text
        except ValueError as exc:
            self.error(node, "Parsing of field '%s' failed: %s", name, exc)
            return None


def read_config(
    diag_collector: DiagCollector, file_name: str, text: str
) -> Optional[ConfigSource]:
    """Read one YAML configuration document.

    Args:
        diag_collector: Receives parse and shape errors, located in the document.
        file_name: Name used in locations.
        text: The document.

    Returns:
        The configuration with its locations, or ``None`` if the document
        had errors.
    """
    reader = _Reader(diag_collector, file_name)
    errors_before = diag_collector.error_count
    try:
        tree = yaml.compose(text, Loader=yaml.SafeLoader)
    except yaml.MarkedYAMLError as exc:
        mark = exc.problem_mark or exc.context_mark
        location: Location = SimpleLocation.UNKNOWN
        if mark is not None:
            location = ConfigLocation(
                file_name=file_name, line=mark.line + 1, column=mark.column + 1
            )
        diag_collector.add_diag(Diag.error(location, "Parsing error: %s", exc))
        return None
    except yaml.YAMLError as exc:
        diag_collector.add_diag(Diag.error(SimpleLocation.UNKNOWN, "Parsing error: %s", exc))
        return None

    if not isinstance(tree, MappingNode):
        reader.error(tree, "Expected a map as a root object.")
        return None

    type_name: Optional[str] = None
    entries = []
    for key_node, value_node in tree.value:
        key = reader.string_value(key_node)
        if key is None:
            return None
        if key == TYPE_KEY:
            type_name = reader.string_value(value_node)
            if type_name is None:
                return None
        else:
            entries.append((key_node, value_node))
    if type_name is None:
        reader.error(
            tree,
            "Expected a field '%s' specifying the configuration type name in root object.",
            TYPE_KEY,
        )
        return None
    message_type = SUPPORTED_CONFIG_TYPES.get(type_name)
    if message_type is None:
        reader.error(tree, "The specified configuration type '%s' is unknown.", type_name)
        return None

    tree.value = entries
    builder = ConfigSource.new_builder(message_type())
    reader.read_message(builder, tree, "")
    if diag_collector.error_count != errors_before:
        return None
    logger.debug("Read configuration '%s'", file_name)
    return builder.build()


def read_config_file(diag_collector: DiagCollector, path: str) -> Optional[ConfigSource]:
    """Read a YAML configuration file; unreadable files are reported as errors."""
    try:
        with open(path, encoding="utf-8") as handle:
            text = handle.read()
    except OSError as exc:
        diag_collector.add_diag(
            Diag.error(
                SimpleLocation.TOPLEVEL, "Cannot read configuration file '%s': %s", path, exc
            )
        )
        return None
    return read_config(diag_collector, path, text)
