"""Registration of the standard processors and aspects on a model."""

from __future__ import annotations

from svcconfig.aspects.documentation import DocumentationAspect
from svcconfig.aspects.http import HttpAspect
from svcconfig.aspects.naming import NamingAspect
from svcconfig.aspects.versioning import VersioningAspect
from svcconfig.model.model import Model
from svcconfig.processors.linter import Linter
from svcconfig.processors.merger import Merger
from svcconfig.processors.normalizer import Normalizer
from svcconfig.processors.resolver import Resolver


def register_standard_processors(model: Model) -> None:
    model.register_processor(Resolver())
    model.register_processor(Merger())
    model.register_processor(Linter())
    model.register_processor(Normalizer())


def register_standard_aspects(model: Model) -> None:
    """Register the standard aspects in their display order."""
    model.register_aspect(DocumentationAspect(model))
    model.register_aspect(HttpAspect(model))
    model.register_aspect(NamingAspect(model))
    model.register_aspect(VersioningAspect(model))
