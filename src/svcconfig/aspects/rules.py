"""Selector-based rule sets shared by the rule-driven aspects.

Configuration sections such as ``documentation.rules`` and ``http.rules``
attach settings to elements through a ``selector``. A selector is a
comma-separated list of full element names, each optionally ending in
``.*`` to select a whole scope, or the single wildcard ``*``.

When several rules select the same element, the rule listed last wins.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Generic, Optional, Sequence, TypeVar

from svcconfig.aspects.base import matches_selector
from svcconfig.diag import Diag
from svcconfig.model.elements import Element
from svcconfig.models import ConfigMessage

if TYPE_CHECKING:
    from svcconfig.model.model import Model

R = TypeVar("R", bound=ConfigMessage)

SELECTOR_SYNTAX = re.compile(r"^(\w+(\.\w+)*(\.\*)?|\*)$")


def split_selector(selector: str) -> list[str]:
    """Split a rule selector into its parts, dropping a trailing empty part."""
    parts = [part.strip() for part in selector.split(",")]
    if len(parts) > 1 and not parts[-1]:
        parts.pop()
    return parts


class ConfigRuleSet(Generic[R]):
    """Matches config rules against elements and tracks unused selectors.

    Args:
        model: The model, used to locate rules in the config and to report.
        category: Aspect name used in diag messages.
        rules: The rules in config order.
    """

    def __init__(self, model: Model, category: str, rules: Sequence[R]) -> None:
        self._model = model
        self._category = category
        self._rules = list(rules)
        self._selectors = [split_selector(getattr(rule, "selector")) for rule in self._rules]
        self._unmatched = [
            {s for s in selectors if s != "*"} for selectors in self._selectors
        ]

    def __len__(self) -> int:
        return len(self._rules)

    def report_bad_selectors(self) -> None:
        for rule, selectors in zip(self._rules, self._selectors):
            for selector in selectors:
                if not SELECTOR_SYNTAX.match(selector):
                    self._model.add_diag(
                        Diag.error(
                            self._model.location_in_config(rule, "selector"),
                            "%s rule has bad syntax in selector '%s'. See documentation "
                            "for information on selector syntax.",
                            self._category,
                            selector,
                        )
                    )

    def matching_rule(self, element: Element) -> Optional[R]:
        """Return the last rule selecting *element*, or ``None``."""
        name = element.full_name
        found: Optional[R] = None
        for index, selectors in enumerate(self._selectors):
            for selector in selectors:
                if matches_selector(selector, name):
                    self._unmatched[index].discard(selector)
                    found = self._rules[index]
        return found

    def report_unmatched(self) -> None:
        """Report an error for every selector that never matched an element."""
        for rule, unmatched, selectors in zip(self._rules, self._unmatched, self._selectors):
            for selector in selectors:
                if selector in unmatched and SELECTOR_SYNTAX.match(selector):
                    self._model.add_diag(
                        Diag.error(
                            self._model.location_in_config(rule, "selector"),
                            "%s: Cannot resolve selector '%s'.",
                            self._category,
                            selector,
                        )
                    )
