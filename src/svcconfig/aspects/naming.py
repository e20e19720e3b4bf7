"""The ``naming`` aspect: naming conventions of the service and its elements."""

from __future__ import annotations

import re
from typing import Any

from svcconfig.aspects.base import ConfigAspect, LintRule
from svcconfig.model.elements import EnumType, EnumValue, Field, Interface, MessageType, Method
from svcconfig.model.model import Model

DNS_NAME = re.compile(
    r"^(?=.{1,253}$)[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(\.[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$"
)

UPPER_CAMEL = re.compile(r"^[A-Z][A-Za-z0-9]*$")
LOWER_UNDERSCORE = re.compile(r"^[a-z][a-z0-9_]*$")
UPPER_UNDERSCORE = re.compile(r"^[A-Z][A-Z0-9_]*$")


def is_valid_dns_name(name: str) -> bool:
    return DNS_NAME.match(name) is not None and "_" not in name


class NamingAspect(ConfigAspect):
    def __init__(self, model: Model) -> None:
        super().__init__(model, "naming")
        self.register_lint_rule(ServiceNameRule(self))
        for element_type in (Interface, Method, MessageType, EnumType):
            self.register_lint_rule(
                RegexRule(self, "upper-camel", element_type, "UpperCamelCase", UPPER_CAMEL)
            )
        self.register_lint_rule(
            RegexRule(self, "lower-underscore", Field, "lower_underscore", LOWER_UNDERSCORE)
        )
        self.register_lint_rule(
            RegexRule(self, "upper-underscore", EnumValue, "UPPER_UNDERSCORE", UPPER_UNDERSCORE)
        )


class ServiceNameRule(LintRule):
    """Checks that the service name is usable as a DNS name."""

    def __init__(self, aspect: ConfigAspect) -> None:
        super().__init__(aspect, "service-dns-name", Model)

    def run(self, model: Model) -> None:
        name = model.service_config.name
        if name and not is_valid_dns_name(name):
            self.warning(
                model.location_in_config(model.service_config, "name"),
                "Invalid DNS name '%s'.",
                name,
            )


class RegexRule(LintRule):
    """Checks the simple name of elements against a naming convention."""

    def __init__(
        self,
        aspect: ConfigAspect,
        name: str,
        element_type: type,
        convention: str,
        pattern: re.Pattern[str],
    ) -> None:
        super().__init__(aspect, name, element_type)
        self.convention = convention
        self.pattern = pattern

    def run(self, element: Any) -> None:
        if not self.pattern.match(element.simple_name):
            self.warning(
                element,
                "Name '%s' is not matching %s conventions (pattern '%s')",
                element.simple_name,
                self.convention,
                self.pattern.pattern,
            )
