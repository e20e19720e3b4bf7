"""Base classes of configuration aspects and their lint rules.

A :class:`ConfigAspect` owns one section of the service configuration. The
processors call its hooks while walking the element tree:

* Merging: :meth:`~ConfigAspect.start_merging`, :meth:`~ConfigAspect.merge`
  for every element, :meth:`~ConfigAspect.end_merging`.
* Linting: :meth:`~ConfigAspect.start_linting`, :meth:`~ConfigAspect.lint`
  for every element, :meth:`~ConfigAspect.end_linting`.
* Normalization: :meth:`~ConfigAspect.start_normalization`,
  :meth:`~ConfigAspect.normalize` for every reachable element,
  :meth:`~ConfigAspect.end_normalization`.

All hooks default to no-ops. Lint rules are registered while the aspect is
constructed and run from the default :meth:`~ConfigAspect.lint` and
:meth:`~ConfigAspect.end_linting` implementations.

Example::

    class ServiceNameRule(LintRule):
        def __init__(self, aspect):
            super().__init__(aspect, "service-dns-name", Model)

        def run(self, model):
            if "_" in model.service_config.name:
                self.warning(model, "Invalid DNS name '%s'.", model.service_config.name)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Sequence

from svcconfig.diag import Diag, Location, aspect_prefix, lint_prefix
from svcconfig.exceptions import PipelineError
from svcconfig.model.elements import Element
from svcconfig.model.stages import RESOLVED

if TYPE_CHECKING:
    from svcconfig.config_source import ConfigSourceBuilder
    from svcconfig.model.model import Model


def _location(target: Any) -> Location:
    if isinstance(target, Element):
        return target.location
    return target


def matches_selector(selector: str, full_name: str) -> bool:
    """Return whether a config rule *selector* applies to *full_name*.

    ``*`` selects everything, ``a.b.*`` selects every name below ``a.b``, and
    any other selector must equal the name.
    """
    if selector == "*":
        return True
    if selector.endswith(".*"):
        return full_name.startswith(selector[:-1])
    return selector == full_name


class ConfigAspect:
    """Base class of all configuration aspects.

    Args:
        model: The model this aspect is attached to.
        name: Display name, used in diag prefixes and suppression directives.
    """

    def __init__(self, model: Model, name: str) -> None:
        self.model = model
        self.name = name
        self._lint_rules: dict[type, list[LintRule]] = {}
        self._rule_names: list[str] = []

    # ------------------------------------------------------------------ #
    # Lint rule registry
    # ------------------------------------------------------------------ #

    @property
    def lint_rule_names(self) -> list[str]:
        return list(self._rule_names)

    def register_lint_rule(self, rule: LintRule) -> None:
        """Register *rule* for its element class.

        Raises:
            PipelineError: If model processing has already started.
        """
        if self.model.has_stage(RESOLVED):
            raise PipelineError(
                "Lint rules must be registered while constructing the aspect, "
                "not during processing of the model."
            )
        self._lint_rules.setdefault(rule.element_type, []).append(rule)
        if rule.name not in self._rule_names:
            self._rule_names.append(rule.name)

    def merge_dependencies(self) -> Sequence[type[ConfigAspect]]:
        """Return the aspect classes whose merging must complete before this one's."""
        return []

    # ------------------------------------------------------------------ #
    # Hooks
    # ------------------------------------------------------------------ #

    def start_merging(self) -> None:
        pass

    def merge(self, element: Element) -> None:
        pass

    def end_merging(self) -> None:
        pass

    def start_linting(self) -> None:
        pass

    def lint(self, element: Element) -> None:
        self._run_rules(element)

    def end_linting(self) -> None:
        self._run_rules(self.model)

    def start_normalization(self, builder: ConfigSourceBuilder) -> None:
        pass

    def normalize(self, element: Element, builder: ConfigSourceBuilder) -> None:
        pass

    def end_normalization(self, builder: ConfigSourceBuilder) -> None:
        pass

    def _run_rules(self, element: Element) -> None:
        for cls in type(element).__mro__:
            for rule in self._lint_rules.get(cls, ()):
                rule.run(element)

    # ------------------------------------------------------------------ #
    # Reporting
    # ------------------------------------------------------------------ #

    def error(self, target: Any, message: str, *args: Any) -> None:
        """Report an error about *target* (an element or a location)."""
        diag = Diag.error(_location(target), aspect_prefix(self.name) + message, *args)
        self.model.add_diag(diag, target)

    def warning(self, target: Any, message: str, *args: Any) -> None:
        diag = Diag.warning(_location(target), aspect_prefix(self.name) + message, *args)
        self.model.add_diag(diag, target)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class LintRule(ABC):
    """A style check of one aspect, applied to elements of one class.

    Warnings carry the prefix ``(lint) <aspect>-<rule>: `` so they can be
    suppressed by ``<aspect>-<rule>`` or ``<aspect>-*`` directives.

    Args:
        aspect: The owning aspect.
        name: Rule name, unique within the aspect.
        element_type: The element class the rule runs on, including subclasses.
    """

    def __init__(self, aspect: ConfigAspect, name: str, element_type: type) -> None:
        self.aspect = aspect
        self.name = name
        self.element_type = element_type

    @abstractmethod
    def run(self, element: Any) -> None:
        """Check *element* and report findings with :meth:`warning`."""
        ...

    def warning(self, target: Any, message: str, *args: Any) -> None:
        prefix = lint_prefix(self.aspect.name, self.name)
        diag = Diag.warning(_location(target), prefix + message, *args)
        self.aspect.model.add_diag(diag, target)
