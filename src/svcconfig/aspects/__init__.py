"""Configuration aspects: the sections of the service configuration.

Each aspect merges its section onto the element tree, lints it, and writes
it back during normalization. The standard aspects are registered by
:func:`svcconfig.setup.register_standard_aspects`.
"""

from svcconfig.aspects.base import ConfigAspect, LintRule, matches_selector

__all__ = ["ConfigAspect", "LintRule", "matches_selector"]
