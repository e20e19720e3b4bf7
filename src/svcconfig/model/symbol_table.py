"""Immutable index over the declared types and interfaces of a model.

The table is built exactly once by the resolver, after the element tree is
final, and then only queried. Lookups never raise: a name that cannot be
resolved yields ``None`` (or an empty list).

Scoped resolution follows protocol-buffer conventions: a partial name is
tried in the innermost enclosing scope first, then in each enclosing scope
outwards, so inner declarations shadow outer ones::

    >>> SymbolTable.name_candidates("a.b.c.M.N", "R.s")
    ['a.b.c.M.N.R.s', 'a.b.c.M.R.s', 'a.b.c.R.s', 'a.b.R.s', 'a.R.s', 'R.s']

Two strategies are offered. :meth:`SymbolTable.resolve_type` keeps trying
broader scopes even when a partial match fails. :meth:`SymbolTable.resolve_type2`
anchors on the first component of the name and gives up as soon as the scope
it anchored on does not contain the rest. They disagree on inputs such as
``resolve_type("a.b.a.b", "b.J")`` with types ``a.b.a.b.M.N`` and ``a.b.J``:
the lenient strategy finds ``a.b.J``, the strict one finds nothing.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

from svcconfig.model.elements import (
    PRIMITIVE_TYPE_NAMES,
    Element,
    EnumType,
    Interface,
    Method,
    MessageType,
    TypeRef,
)
from svcconfig.models import FieldKind


def _symbol_name(full_name: str) -> str:
    # Types declared without a package may be written with a leading dot.
    return full_name[1:] if full_name.startswith(".") else full_name


class SymbolTable:
    """Name index of one model.

    Args:
        interfaces: Interfaces by full name.
        types: Message and enum types by full name.
        field_names: Simple names of all declared fields.
        methods_by_simple_name: Methods grouped by simple name.
        package_names: Every package name and each of its prefixes.
    """

    def __init__(
        self,
        interfaces: Mapping[str, Interface],
        types: Mapping[str, TypeRef],
        field_names: Iterable[str],
        methods_by_simple_name: Mapping[str, list[Method]],
        package_names: Iterable[str],
    ) -> None:
        self._interfaces = dict(interfaces)
        self._types = dict(types)
        self._field_names = frozenset(field_names)
        self._methods = {name: tuple(methods) for name, methods in methods_by_simple_name.items()}
        self._packages = frozenset(package_names)

    # ------------------------------------------------------------------ #
    # Direct lookups
    # ------------------------------------------------------------------ #

    def lookup_interface(self, full_name: str) -> Optional[Interface]:
        return self._interfaces.get(full_name)

    def lookup_type(self, full_name: str) -> Optional[TypeRef]:
        return self._types.get(_symbol_name(full_name))

    def lookup_matching_types(self, pattern: str, kind: FieldKind) -> list[TypeRef]:
        """Return the types of *kind* matching *pattern*.

        The pattern is either a full name or a prefix followed by ``.*``,
        which matches every type whose full name starts with the prefix.
        """
        if not pattern:
            return []
        if pattern.endswith(".*"):
            prefix = pattern[:-1]
            return [
                ref
                for ref in self._types.values()
                if ref.kind == kind and ref.type_name.startswith(prefix)
            ]
        ref = self.lookup_type(pattern)
        if ref is None or ref.kind != kind:
            return []
        return [ref]

    def contains_field_name(self, name: str) -> bool:
        return name in self._field_names

    def lookup_method_simple_name(self, name: str) -> list[Method]:
        return list(self._methods.get(name, ()))

    def is_package(self, name: str) -> bool:
        return name in self._packages

    @property
    def interfaces(self) -> list[Interface]:
        return list(self._interfaces.values())

    @property
    def declared_types(self) -> list[TypeRef]:
        return list(self._types.values())

    # ------------------------------------------------------------------ #
    # Scoped resolution
    # ------------------------------------------------------------------ #

    @staticmethod
    def name_candidates(in_scope: str, name: str) -> list[str]:
        """Return the full names *name* may denote inside *in_scope*, innermost first.

        A leading ``"."`` makes *name* absolute.
        """
        if name.startswith("."):
            return [name[1:]]
        candidates = []
        scope = in_scope
        while scope:
            candidates.append(f"{scope}.{name}")
            scope = scope.rpartition(".")[0]
        candidates.append(name)
        return candidates

    def resolve_interface(self, in_scope: str, name: str) -> Optional[Interface]:
        for candidate in self.name_candidates(in_scope, name):
            interface = self.lookup_interface(candidate)
            if interface is not None:
                return interface
        return None

    def resolve_type(self, in_scope: str, name: str) -> Optional[TypeRef]:
        """Resolve a type name, trying every enclosing scope.

        Scalar type names (``string``, ``int32``, ...) resolve to primitive
        references regardless of scope.
        """
        kind = PRIMITIVE_TYPE_NAMES.get(name)
        if kind is not None:
            return TypeRef.of_primitive(kind)
        for candidate in self.name_candidates(in_scope, name):
            ref = self.lookup_type(candidate)
            if ref is not None:
                return ref
        return None

    def resolve_type2(self, in_scope: str, name: str) -> Optional[TypeRef]:
        """Resolve a type name the way the protocol compiler does.

        The first component of a dotted name is resolved on its own. The scope
        it lands in (a message or a package) must then contain the full name;
        no broader scope is tried after that.
        """
        first, dot, _ = name.partition(".")
        if not dot or not first:
            return self.resolve_type(in_scope, name)
        for candidate in self.name_candidates(in_scope, first):
            outer = self.lookup_type(candidate)
            if outer is not None:
                if outer.message_type is None:
                    return None
                anchor = outer.message_type.full_name.rpartition(".")[0]
                return self.lookup_type(f"{anchor}.{name}" if anchor else name)
            if candidate in self._packages:
                anchor = candidate.rpartition(".")[0]
                return self.lookup_type(f"{anchor}.{name}" if anchor else name)
        return None

    def resolve(self, element_id: str) -> Optional[Element]:
        """Resolve a full name to an element of any kind.

        The name is tried as a type, then as an interface. Failing that, its
        last component is looked up as a method, field, or enum value of
        whatever the remainder resolves to.
        """
        ref = self.lookup_type(element_id)
        if ref is not None:
            return ref.message_type or ref.enum_type
        interface = self.lookup_interface(element_id)
        if interface is not None:
            return interface

        parent_id, dot, last = element_id.rpartition(".")
        if not dot:
            return None
        parent = self.resolve(parent_id)
        if isinstance(parent, Interface):
            return parent.lookup_method(last)
        if isinstance(parent, MessageType):
            return parent.lookup_field(last)
        if isinstance(parent, EnumType):
            return parent.lookup_value(last)
        return None
