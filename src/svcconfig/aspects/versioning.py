"""The ``versioning`` aspect: ``config_version`` of the service configuration."""

from __future__ import annotations

from svcconfig.aspects.base import ConfigAspect, LintRule
from svcconfig.config_source import ConfigSourceBuilder
from svcconfig.model.model import Model


class VersioningAspect(ConfigAspect):
    """Validates ``config_version`` and writes the effective value back."""

    def __init__(self, model: Model) -> None:
        super().__init__(model, "versioning")
        self.register_lint_rule(ConfigVersionRule(self))

    def start_merging(self) -> None:
        version = self.model.config_version
        if version > Model.DEV_CONFIG_VERSION or version < 0:
            self.error(
                self.model.location_in_config(self.model.service_config, "config_version"),
                "config_version %s is invalid, the latest config_version is %s.",
                version,
                Model.DEV_CONFIG_VERSION,
            )

    def end_normalization(self, builder: ConfigSourceBuilder) -> None:
        builder.set_value("config_version", None, self.model.config_version)


class ConfigVersionRule(LintRule):
    """Warns when the configuration pins a version other than the default."""

    def __init__(self, aspect: ConfigAspect) -> None:
        super().__init__(aspect, "config", Model)

    def run(self, model: Model) -> None:
        version = model.service_config.config_version
        if version is not None and version != Model.DEFAULT_CONFIG_VERSION:
            self.warning(
                model.location_in_config(model.service_config, "config_version"),
                "Specified config_version value '%s' is not equal to the current default "
                "value '%s'. Consider changing this value to the default config version.",
                version,
                Model.DEFAULT_CONFIG_VERSION,
            )
