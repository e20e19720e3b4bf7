"""The ``http`` aspect: REST bindings of methods.

Every ``http.rules`` entry binds the methods its selector names to an HTTP
verb and path template. Merging produces an :class:`HttpAttribute` per bound
method, which splits the request message into

* path parameters, named by the ``{variable}`` segments of the template,
* the body, named by ``body`` (``*`` for the whole request),
* query parameters, the remaining top-level request fields.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from svcconfig.aspects.base import ConfigAspect, LintRule
from svcconfig.aspects.rules import ConfigRuleSet
from svcconfig.config_source import ConfigSourceBuilder
from svcconfig.model.attributes import AttributeKey, declare_slot
from svcconfig.model.elements import Element, Field, MessageType, Method
from svcconfig.model.model import Model
from svcconfig.model.stages import MERGED
from svcconfig.models import HttpRule

PATH_VARIABLE = re.compile(r"\{([^}=]+)(?:=[^}]*)?\}")

VERBS = ("get", "put", "post", "delete", "patch")

SYSTEM_PARAMETERS = (
    "$.xgafv",
    "$callback",
    "$fields",
    "access_token",
    "alt",
    "api_key",
    "callback",
    "fields",
    "key",
    "oauth_token",
    "pp",
    "prettyprint",
    "quotauser",
    "trace",
    "upload_protocol",
    "uploadtype",
    "userip",
)
"""Query parameter names reserved by the serving infrastructure (lowercase)."""


@dataclass
class HttpAttribute:
    """The resolved REST binding of one method.

    Attributes:
        rule: The config rule the binding was built from.
        verb: Lowercase HTTP verb, or the custom verb as written.
        path: The path template.
        path_variables: Variable names of the template, in order.
        path_fields: Request fields bound to path variables.
        body_field: The request field bound to the body, if ``body`` names one.
        query_fields: Top-level request fields bound to the query string.
        additional_bindings: Further bindings of the same method.
    """

    rule: HttpRule
    verb: str
    path: str
    body: str = ""
    response_body: str = ""
    path_variables: list[str] = field(default_factory=list)
    path_fields: list[Field] = field(default_factory=list)
    body_field: Optional[Field] = None
    query_fields: list[Field] = field(default_factory=list)
    additional_bindings: list[HttpAttribute] = field(default_factory=list)

    @property
    def param_fields(self) -> list[Field]:
        return [*self.path_fields, *self.query_fields]

    @property
    def all_bindings(self) -> list[HttpAttribute]:
        return [self, *self.additional_bindings]


HTTP = declare_slot(Method, AttributeKey("http", HttpAttribute), MERGED)


def rule_verb_and_path(rule: HttpRule) -> list[tuple[str, str]]:
    """Return every ``(verb, path)`` pair the rule specifies."""
    pairs = [(verb, getattr(rule, verb)) for verb in VERBS if getattr(rule, verb)]
    if rule.custom is not None and rule.custom.kind:
        pairs.append((rule.custom.kind, rule.custom.path))
    return pairs


def rest_name(field_element: Field) -> str:
    """Return the json name of a field, derived from its name if unset."""
    if field_element.json_name:
        return field_element.json_name
    head, *rest = field_element.simple_name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _resolve_field_path(message: Optional[MessageType], path: str) -> Optional[Field]:
    found: Optional[Field] = None
    for segment in path.split("."):
        if message is None:
            return None
        found = message.lookup_field(segment)
        if found is None:
            return None
        ref = found.type
        message = ref.message_type if ref is not None else None
    return found


class HttpAspect(ConfigAspect):
    """Merges and normalizes ``http.rules``."""

    def __init__(self, model: Model) -> None:
        super().__init__(model, "http")
        self._rules: Optional[ConfigRuleSet[HttpRule]] = None
        self.register_lint_rule(ReservedKeywordRule(self))

    def start_merging(self) -> None:
        http = self.model.service_config.http
        self._rules = ConfigRuleSet(self.model, self.name, http.rules if http else [])
        self._rules.report_bad_selectors()

    def merge(self, element: Element) -> None:
        if not isinstance(element, Method) or self._rules is None:
            return
        rule = self._rules.matching_rule(element)
        if rule is None:
            return
        attribute = self._binding(element, rule, primary=True)
        if attribute is not None:
            element.put_attribute(HTTP, attribute)

    def end_merging(self) -> None:
        if self._rules is not None:
            self._rules.report_unmatched()

    def _binding(self, method: Method, rule: HttpRule, primary: bool) -> Optional[HttpAttribute]:
        pairs = rule_verb_and_path(rule)
        if len(pairs) != 1:
            self.error(
                method,
                "Http config must specify path for exactly one of get/put/post/delete/patch.",
            )
            return None
        verb, path = pairs[0]
        if not primary:
            if rule.additional_bindings:
                self.error(
                    method, "rules in additional_bindings must not specify additional_bindings"
                )
            if rule.selector:
                self.error(method, "rules in additional_bindings must not specify a selector")

        if verb in ("get", "delete") and rule.body:
            self.error(method, "get/delete methods cannot have a body.")
        elif verb in ("post", "put", "patch") and not rule.body:
            self.warning(
                method, "POST/PATCH/PUT method for '%s' should specify a body.", method.full_name
            )

        message = method.input_message
        attribute = HttpAttribute(
            rule=rule,
            verb=verb,
            path=path,
            body=rule.body,
            response_body=rule.response_body,
            path_variables=PATH_VARIABLE.findall(path),
        )
        for variable in attribute.path_variables:
            resolved = _resolve_field_path(message, variable)
            if resolved is None:
                self._undefined(method, variable)
            else:
                attribute.path_fields.append(resolved)
        if rule.body and rule.body != "*":
            attribute.body_field = _resolve_field_path(message, rule.body)
            if attribute.body_field is None:
                self._undefined(method, rule.body)
        if rule.body != "*" and message is not None:
            bound = {variable.split(".")[0] for variable in attribute.path_variables}
            if rule.body:
                bound.add(rule.body.split(".")[0])
            attribute.query_fields = [f for f in message.fields if f.simple_name not in bound]

        if primary:
            for extra in rule.additional_bindings:
                binding = self._binding(method, extra, primary=False)
                if binding is not None:
                    attribute.additional_bindings.append(binding)
        return attribute

    def _undefined(self, method: Method, field_path: str) -> None:
        message = method.input_message
        self.error(
            method,
            "undefined field '%s' on message '%s'.",
            field_path,
            message.full_name if message is not None else "",
        )

    # ------------------------------------------------------------------ #
    # Normalization
    # ------------------------------------------------------------------ #

    def start_normalization(self, builder: ConfigSourceBuilder) -> None:
        if builder.get("http") is not None:
            builder.with_builder("http", lambda b: b.set_value("rules", None, []))

    def normalize(self, element: Element, builder: ConfigSourceBuilder) -> None:
        if not isinstance(element, Method):
            return
        attribute = element.get_attribute(HTTP)
        if attribute is None:
            return
        values = attribute.rule.model_dump(exclude_defaults=True)
        values["selector"] = element.full_name
        rule = HttpRule.model_validate(values)
        builder.with_builder("http", lambda b: b.add_value("rules", rule))


class ReservedKeywordRule(LintRule):
    """Warns about request parameters that collide with system parameters."""

    def __init__(self, aspect: ConfigAspect) -> None:
        super().__init__(aspect, "param-reserved-keyword", Method)

    def run(self, method: Method) -> None:
        attribute = method.get_attribute(HTTP)
        if attribute is None:
            return
        seen: set[str] = set()
        for binding in attribute.all_bindings:
            for param in binding.param_fields:
                name = rest_name(param)
                if name in seen:
                    continue
                seen.add(name)
                if name.lower() in SYSTEM_PARAMETERS:
                    self.warning(
                        method,
                        "Field name '%s' is a reserved keyword, please use a different name. "
                        "The reserved keywords are %s.",
                        name,
                        ", ".join(SYSTEM_PARAMETERS),
                    )
