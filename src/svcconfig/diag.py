"""Diagnostics: locations, diag records, collectors, and suppression.

Every problem found in the user's input is reported as a :class:`Diag` -- an
immutable ``(kind, location, message)`` triple -- and accumulated in a
:class:`DiagCollector`. Only two kinds exist, ``ERROR`` and ``WARNING``;
``error_count`` / ``has_errors`` are the only pass/fail gate used by the
pipeline, so warnings never block progress.

:class:`BoundedDiagCollector` caps the number of diags per kind. Once a cap
is hit the collector records one final note. An error overflow also flags it
``aborted``; the stage scheduler checks that flag after each processor and
stops the run. Warnings past their cap are only dropped.

:class:`DiagSuppressor` drops warnings whose identifier (``<aspect>-<rule>``
for lint warnings, the message text otherwise) matches a pattern attached to
the target element or any of its ancestors. Suppressed diags are gone for
good and look exactly like diags that were never produced.
"""

from __future__ import annotations

import enum
import re
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Iterable, Optional

from pydantic import BaseModel, ConfigDict


# --- Locations ---


class Location(BaseModel):
    """Base class of all diagnostic locations."""

    model_config = ConfigDict(frozen=True)

    @property
    def display_string(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.display_string


class SimpleLocation(Location):
    """A location that is just a display string.

    Two sentinels are provided: :attr:`TOPLEVEL` for diags about the run as a
    whole, and :attr:`UNKNOWN` for lookups that found no recorded location.
    """

    display: str

    @property
    def display_string(self) -> str:
        return self.display

    TOPLEVEL: ClassVar[SimpleLocation]
    UNKNOWN: ClassVar[SimpleLocation]


SimpleLocation.TOPLEVEL = SimpleLocation(display="toplevel")
SimpleLocation.UNKNOWN = SimpleLocation(display="unknown location")


class ConfigLocation(Location):
    """A position inside a configuration or API description document.

    Lines and columns are 1-based, as printed by editors.
    """

    file_name: str
    line: int = 0
    column: int = 0

    @property
    def display_string(self) -> str:
        if self.line <= 0:
            return self.file_name
        return f"{self.file_name}:{self.line}:{self.column}"


# --- Diags ---


class DiagKind(str, enum.Enum):
    """Severity of a :class:`Diag`."""

    WARNING = "WARNING"
    ERROR = "ERROR"


class Diag(BaseModel):
    """One error or warning record.

    Messages are ``%``-formatted at construction time, so the record itself
    never changes.

    Example::

        Diag.error(loc, "Unresolved type '%s'", "foo.Bar")
        str(diag)  # "ERROR: foo.yaml:3:5: Unresolved type 'foo.Bar'"
    """

    model_config = ConfigDict(frozen=True)

    kind: DiagKind
    location: Location
    message: str

    @classmethod
    def create(cls, location: Location, message: str, kind: DiagKind, *args: Any) -> Diag:
        text = message % args if args else message
        return cls(kind=kind, location=location, message=text)

    @classmethod
    def error(cls, location: Location, message: str, *args: Any) -> Diag:
        return cls.create(location, message, DiagKind.ERROR, *args)

    @classmethod
    def warning(cls, location: Location, message: str, *args: Any) -> Diag:
        return cls.create(location, message, DiagKind.WARNING, *args)

    @property
    def is_error(self) -> bool:
        return self.kind == DiagKind.ERROR

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.location.display_string}: {self.message}"


ASPECT_DIAG_PREFIX = "%s: "
LINT_DIAG_PREFIX = "(lint) %s-%s: "

_LINT_ID = re.compile(r"^\(lint\) ([^:\s]+): ")


def aspect_prefix(aspect_name: str) -> str:
    """Return the message prefix used by diags reported from an aspect."""
    return ASPECT_DIAG_PREFIX % aspect_name


def lint_prefix(aspect_name: str, rule_name: str) -> str:
    """Return the message prefix used by lint warnings."""
    return LINT_DIAG_PREFIX % (aspect_name, rule_name)


def diag_identifier(diag: Diag) -> str:
    """Return the identifier suppression patterns are matched against.

    Lint warnings are identified as ``<aspect>-<rule>``; any other diag is
    identified by its full message.
    """
    match = _LINT_ID.match(diag.message)
    if match:
        return match.group(1)
    return diag.message


# --- Collectors ---


class DiagCollector(ABC):
    """Accumulates diags for one conversion run."""

    @abstractmethod
    def add_diag(self, diag: Diag) -> None:
        """Record *diag*."""

    @property
    @abstractmethod
    def diags(self) -> list[Diag]:
        """All recorded diags, in the order they were added."""

    @property
    def aborted(self) -> bool:
        """Whether the collector asked the pipeline to stop."""
        return False

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diags if d.kind == DiagKind.ERROR)

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    @property
    def errors(self) -> list[Diag]:
        return [d for d in self.diags if d.kind == DiagKind.ERROR]

    @property
    def warnings(self) -> list[Diag]:
        return [d for d in self.diags if d.kind == DiagKind.WARNING]

    def __str__(self) -> str:
        return "\n".join(str(d) for d in self.diags)


class SimpleDiagCollector(DiagCollector):
    """Unbounded collector backed by a list."""

    def __init__(self) -> None:
        self._diags: list[Diag] = []

    def add_diag(self, diag: Diag) -> None:
        self._diags.append(diag)

    @property
    def diags(self) -> list[Diag]:
        return list(self._diags)


DEFAULT_MAX_ERRORS = 500
"""Default number of errors a :class:`BoundedDiagCollector` records."""

DEFAULT_MAX_WARNINGS = 5000
"""Default number of warnings a :class:`BoundedDiagCollector` records."""


class BoundedDiagCollector(DiagCollector):
    """Collector with a per-kind ceiling.

    When a kind reaches its capacity, one extra diag of that kind is added
    explaining that no more will be logged, and later diags of that kind are
    dropped. Only an error overflow sets :attr:`aborted`; surplus warnings
    never stop processing.

    Args:
        max_errors: Number of errors recorded before aborting.
        max_warnings: Number of warnings recorded before dropping the rest.
    """

    def __init__(
        self,
        max_errors: int = DEFAULT_MAX_ERRORS,
        max_warnings: int = DEFAULT_MAX_WARNINGS,
    ) -> None:
        self._diags: list[Diag] = []
        self._capacity = {DiagKind.ERROR: max_errors, DiagKind.WARNING: max_warnings}
        self._counts = {DiagKind.ERROR: 0, DiagKind.WARNING: 0}
        self._aborted = False

    def add_diag(self, diag: Diag) -> None:
        capacity = self._capacity.get(diag.kind, 0)
        count = self._counts[diag.kind]
        if count < capacity:
            self._diags.append(diag)
            self._counts[diag.kind] = count + 1
        elif count == capacity:
            self._diags.append(
                Diag.create(
                    SimpleLocation.TOPLEVEL,
                    "Hit max count(%d) of allowed %ss. No more diags of this kind will be logged.",
                    diag.kind,
                    capacity,
                    diag.kind.value.lower(),
                )
            )
            self._counts[diag.kind] = count + 1
            if diag.kind == DiagKind.ERROR:
                self._aborted = True

    @property
    def diags(self) -> list[Diag]:
        return list(self._diags)

    @property
    def aborted(self) -> bool:
        return self._aborted


# --- Suppression ---


class DiagSuppressor:
    """Per-element warning suppression.

    Patterns are regular expressions matched in full against
    :func:`diag_identifier`. A warning is suppressed when any pattern attached
    to its target element, or to one of the element's ancestors, matches.
    Targets that are plain locations only see the patterns of *root*.

    Args:
        collector: Where to report malformed suppression directives.
        root: The element whose patterns apply to location-only targets
            (normally the :class:`~svcconfig.model.model.Model`).
    """

    def __init__(self, collector: DiagCollector, root: Any = None) -> None:
        self._collector = collector
        self._root = root
        self._patterns: dict[int, list[str]] = {}
        self._compiled: dict[int, re.Pattern[str]] = {}

    def add_pattern(self, element: Any, pattern: str) -> None:
        """Attach a raw regular expression to *element*."""
        key = id(element)
        self._patterns.setdefault(key, []).append(pattern)
        self._compiled.pop(key, None)

    def add_suppression_directive(
        self, element: Any, directive: str, aspect_names: Iterable[str]
    ) -> None:
        """Attach a user directive of the form ``aspect-rule`` or ``aspect-*``.

        Directives naming an aspect that is not registered are reported as a
        warning and otherwise ignored.
        """
        directive = directive.strip()
        aspect, sep, rule = directive.partition("-")
        if not sep or not rule or aspect not in set(aspect_names):
            location = getattr(element, "location", SimpleLocation.TOPLEVEL)
            self._collector.add_diag(
                Diag.warning(
                    location,
                    "Unrecognized suppression directive '%s'. Expected '<aspect>-<rule>' "
                    "or '<aspect>-*' with a registered aspect.",
                    directive,
                )
            )
            return
        rule_pattern = ".*" if rule == "*" else re.escape(rule)
        self.add_pattern(element, re.escape(aspect) + "-" + rule_pattern)

    def is_suppressed(self, diag: Diag, element_or_location: Any) -> bool:
        """Return ``True`` when *diag* must be dropped for the given target."""
        if diag.kind != DiagKind.WARNING:
            return False
        identifier = diag_identifier(diag)
        for element in self._targets(element_or_location):
            pattern = self._pattern_for(element)
            if pattern is not None and pattern.fullmatch(identifier):
                return True
        return False

    def _targets(self, element_or_location: Any) -> Iterable[Any]:
        if element_or_location is None or isinstance(element_or_location, Location):
            if self._root is not None:
                yield self._root
            return
        element: Optional[Any] = element_or_location
        while element is not None:
            yield element
            element = getattr(element, "parent", None)

    def _pattern_for(self, element: Any) -> Optional[re.Pattern[str]]:
        key = id(element)
        if key not in self._patterns:
            return None
        compiled = self._compiled.get(key)
        if compiled is None:
            joined = "|".join(f"(?:{p})" for p in self._patterns[key])
            compiled = re.compile(joined, re.DOTALL)
            self._compiled[key] = compiled
        return compiled
