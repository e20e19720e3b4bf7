"""The ``documentation`` aspect.

Attaches a :class:`DocAttribute` to every element that is documented,
either by a ``documentation.rules`` entry of the service configuration or,
failing that, by its source comment. Comments may carry warning suppression
directives::

    // Lists shelves. (== suppress_warning http-* ==)

The directive is removed from the text and attached to the element, so it
silences matching lint warnings on the element and everything below it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from svcconfig.aspects.base import ConfigAspect
from svcconfig.aspects.rules import ConfigRuleSet
from svcconfig.config_source import ConfigSourceBuilder
from svcconfig.model.attributes import AttributeKey, declare_slot
from svcconfig.model.elements import Element, ProtoFile, documentation_comment
from svcconfig.model.model import Model
from svcconfig.model.stages import MERGED
from svcconfig.models import DocumentationRule, has_field

SUPPRESS_WARNING = re.compile(r"\(==\s*suppress_warning\s+(\S+)\s*==\)")


@dataclass(frozen=True)
class DocAttribute:
    description: str
    deprecation_description: str = ""


DOCUMENTATION = declare_slot(Element, AttributeKey("documentation", DocAttribute), MERGED)


def trim_comment_indentation(text: str) -> str:
    """Drop the single space that follows ``//`` on every comment line."""
    if text.startswith(" "):
        text = text[1:]
    return text.replace("\n ", "\n")


class DocumentationAspect(ConfigAspect):
    """Merges and normalizes ``documentation.rules``."""

    def __init__(self, model: Model) -> None:
        super().__init__(model, "documentation")
        self._rules: Optional[ConfigRuleSet[DocumentationRule]] = None

    def start_merging(self) -> None:
        documentation = self.model.service_config.documentation
        rules = documentation.rules if documentation is not None else []
        self._rules = ConfigRuleSet(self.model, self.name, rules)
        self._rules.report_bad_selectors()

    def merge(self, element: Element) -> None:
        if isinstance(element, ProtoFile):
            return
        rule = self._rules.matching_rule(element) if self._rules is not None else None
        if rule is not None:
            description = rule.description
            deprecation = rule.deprecation_description
        else:
            description = trim_comment_indentation(documentation_comment(element))
            deprecation = ""

        description = self._extract_directives(element, description)
        if description or deprecation:
            element.put_attribute(DOCUMENTATION, DocAttribute(description, deprecation))

    def end_merging(self) -> None:
        if self._rules is not None:
            self._rules.report_unmatched()

    def _extract_directives(self, element: Element, text: str) -> str:
        for directive in SUPPRESS_WARNING.findall(text):
            self.model.add_suppression_directive(element, directive)
        return SUPPRESS_WARNING.sub("", text).strip()

    # ------------------------------------------------------------------ #
    # Normalization
    # ------------------------------------------------------------------ #

    def start_normalization(self, builder: ConfigSourceBuilder) -> None:
        if builder.get("documentation") is not None:
            builder.with_builder("documentation", lambda b: b.set_value("rules", None, []))

    def normalize(self, element: Element, builder: ConfigSourceBuilder) -> None:
        attribute = element.get_attribute(DOCUMENTATION)
        if attribute is None or not element.full_name:
            return
        rule = DocumentationRule(
            selector=element.full_name,
            description=attribute.description,
            deprecation_description=attribute.deprecation_description,
        )
        builder.with_builder("documentation", lambda b: b.add_value("rules", rule))

    def end_normalization(self, builder: ConfigSourceBuilder) -> None:
        documentation = builder.get("documentation")
        if documentation is not None and not any(
            has_field(documentation, name) for name in type(documentation).model_fields
        ):
            builder.set_value("documentation", None, None)
