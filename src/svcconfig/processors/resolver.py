"""Name resolution: builds the symbol table and binds type references.

The resolver does not assume a compiler has validated the descriptors
before; inconsistent input produces diags rather than crashes:

* :class:`SymbolTableBuilder` indexes interfaces, methods, types, fields,
  and enum values, reporting duplicate declarations.
* :class:`ReferenceResolver` binds every field type and every method input
  and output type, reporting names that do not resolve.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from svcconfig.diag import Diag, Location
from svcconfig.model.elements import (
    FIELD_TYPE,
    INPUT_TYPE,
    OUTPUT_TYPE,
    Element,
    EnumType,
    Field,
    Interface,
    MessageType,
    Method,
    ProtoFile,
    TypeRef,
)
from svcconfig.model.model import Model
from svcconfig.model.stages import RESOLVED, StageKey
from svcconfig.model.symbol_table import SymbolTable
from svcconfig.models import FieldKind
from svcconfig.processors.base import Processor

logger = logging.getLogger(__name__)

_NAMED_KINDS = {FieldKind.TYPE_MESSAGE, FieldKind.TYPE_ENUM, FieldKind.TYPE_GROUP}


class SymbolTableBuilder:
    """Walks the element tree once and produces the :class:`SymbolTable`."""

    def __init__(self, model: Model) -> None:
        self._model = model
        self._interfaces: dict[str, Interface] = {}
        self._types: dict[str, TypeRef] = {}
        self._methods: dict[str, list[Method]] = {}
        self._field_names: set[str] = set()
        self._packages: set[str] = set()

    def run(self) -> SymbolTable:
        for element in self._model.walk():
            if isinstance(element, ProtoFile):
                self._add_package(element.package)
            elif isinstance(element, Interface):
                self._visit_interface(element)
            elif isinstance(element, MessageType):
                self._visit_message(element)
            elif isinstance(element, EnumType):
                self._visit_enum(element)
        return SymbolTable(
            self._interfaces, self._types, self._field_names, self._methods, self._packages
        )

    def _duplicate(self, element: Element, what: str, name: str, previous: Element) -> None:
        self._model.add_diag(
            Diag.error(
                element.location,
                "Duplicate declaration of %s '%s'. Previous location: %s",
                what,
                name,
                previous.location.display_string,
            ),
            element,
        )

    def _visit_interface(self, interface: Interface) -> None:
        old = self._interfaces.get(interface.full_name)
        if old is not None:
            self._duplicate(interface, "interface", interface.full_name, old)
        self._interfaces[interface.full_name] = interface

        by_name: dict[str, Method] = {}
        for method in interface.methods:
            old_method = by_name.get(method.simple_name)
            if old_method is not None:
                self._duplicate(method, "method", method.simple_name, old_method)
            by_name[method.simple_name] = method
            self._methods.setdefault(method.simple_name, []).append(method)

    def _visit_message(self, message: MessageType) -> None:
        self._add_type(message, TypeRef.of_message(message))
        if message.file is not None:
            self._add_package(message.file.package)

        by_name: dict[str, Field] = {}
        for field in message.fields:
            self._field_names.add(field.simple_name)
            old = by_name.get(field.simple_name)
            if old is not None:
                self._duplicate(field, "field", field.simple_name, old)
            by_name[field.simple_name] = field

    def _visit_enum(self, enum_type: EnumType) -> None:
        self._add_type(enum_type, TypeRef.of_enum(enum_type))
        by_name: dict[str, Element] = {}
        for value in enum_type.values:
            old = by_name.get(value.simple_name)
            if old is not None:
                self._duplicate(value, "enum value", value.simple_name, old)
            by_name[value.simple_name] = value

    def _add_type(self, element: Element, ref: TypeRef) -> None:
        name = element.full_name.lstrip(".")
        old = self._types.get(name)
        if old is not None:
            previous = old.message_type or old.enum_type
            self._duplicate(element, "type", element.full_name, previous)
        self._types[name] = ref

    def _add_package(self, package: str) -> None:
        while package:
            self._packages.add(package)
            package = package.rpartition(".")[0]


class ReferenceResolver:
    """Binds the type slots of fields and methods through the symbol table.

    Names are resolved from the enclosing scope: the message for a field,
    the file's package for a method.
    """

    def __init__(self, model: Model, symbol_table: SymbolTable) -> None:
        self._model = model
        self._table = symbol_table

    def run(self) -> None:
        for element in self._model.walk():
            if isinstance(element, Field):
                self._visit_field(element)
            elif isinstance(element, Method):
                self._visit_method(element)

    def _visit_field(self, field: Field) -> None:
        descriptor = field.descriptor
        ref = self._resolve(field, field.parent.full_name, descriptor.kind, descriptor.type_name)
        if ref is not None:
            field.put_attribute(FIELD_TYPE, ref.with_label(descriptor.label))

    def _visit_method(self, method: Method) -> None:
        scope = method.file.package if method.file is not None else ""
        input_ref = self._resolve(
            method, scope, FieldKind.TYPE_MESSAGE, method.descriptor.input_type
        )
        if input_ref is not None:
            method.put_attribute(INPUT_TYPE, input_ref)
        output_ref = self._resolve(
            method, scope, FieldKind.TYPE_MESSAGE, method.descriptor.output_type
        )
        if output_ref is not None:
            method.put_attribute(OUTPUT_TYPE, output_ref)

    def _resolve(
        self, element: Element, scope: str, kind: FieldKind, name: str
    ) -> Optional[TypeRef]:
        if kind in _NAMED_KINDS:
            ref = self._table.resolve_type(scope, name)
        else:
            ref = TypeRef.of_primitive(kind)
        if ref is None:
            location: Location = element.location
            self._model.add_diag(Diag.error(location, "Unresolved type '%s'", name), element)
        return ref


class Resolver(Processor):
    """Establishes :data:`~svcconfig.model.stages.RESOLVED`."""

    def requires(self) -> Sequence[StageKey]:
        return []

    def establishes(self) -> StageKey:
        return RESOLVED

    def run(self, model: Model) -> bool:
        old_error_count = model.error_count
        table = SymbolTableBuilder(model).run()
        model.set_symbol_table(table)
        ReferenceResolver(model, table).run()
        logger.debug(
            "Resolved %d types and %d interfaces", len(table.declared_types), len(table.interfaces)
        )
        if model.error_count == old_error_count:
            model.mark_established(RESOLVED)
            return True
        return False
