"""End-to-end tests of the standard pipeline: resolve, merge, lint, normalize."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from svcconfig.aspects.base import ConfigAspect
from svcconfig.config import ToolSettings
from svcconfig.diag import SimpleDiagCollector
from svcconfig.exceptions import CyclicAspectDependencyError, PipelineError
from svcconfig.model.elements import Element, Field
from svcconfig.model.model import Model, StageResult
from svcconfig.model.stages import LINTED, MERGED, NORMALIZED, RESOLVED
from svcconfig.models import (
    Api,
    Cardinality,
    Documentation,
    DocumentationRule,
    FieldKind,
    Http,
    HttpRule,
    Service,
    Type,
)
from svcconfig.processors.base import Validator
from svcconfig.processors.merger import sort_for_merge
from svcconfig.tool import normalize
from svcconfig.yaml_reader import read_config_file

LIBRARY = "example.library.v1.Library"


def _service(**kwargs) -> Service:
    return Service(name="library.example.com", apis=[Api(name=LIBRARY)], **kwargs)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


class TestNormalize:
    """The normalized config describes exactly what is reachable."""

    def test_establishes_every_stage(self, make_model: Callable[..., Model]) -> None:
        model = make_model(_service())
        assert model.establish_stage(NORMALIZED) == StageResult.ESTABLISHED
        assert all(model.has_stage(s) for s in (RESOLVED, MERGED, LINTED, NORMALIZED))
        assert model.diag_collector.diags == []

    def test_types_are_reachable_and_sorted(self, make_model: Callable[..., Model]) -> None:
        model = make_model(_service())
        model.establish_stage(NORMALIZED)
        normalized = model.normalized_config
        assert [t.name for t in normalized.types] == [
            "example.library.v1.Book",
            "example.library.v1.GetShelfRequest",
            "example.library.v1.Shelf",
        ]
        assert normalized.config_version == 3

    def test_api_methods(self, make_model: Callable[..., Model]) -> None:
        model = make_model(_service())
        model.establish_stage(NORMALIZED)
        (api,) = model.normalized_config.apis
        assert api.name == LIBRARY
        assert api.source_context.file_name == "library.proto"
        get_shelf = api.methods[0]
        assert get_shelf.name == "GetShelf"
        assert get_shelf.request_type_url == (
            "type.googleapis.com/example.library.v1.GetShelfRequest"
        )
        assert get_shelf.response_type_url == "type.googleapis.com/example.library.v1.Shelf"

    def test_fields(self, make_model: Callable[..., Model]) -> None:
        model = make_model(_service())
        model.establish_stage(NORMALIZED)
        shelf = next(t for t in model.normalized_config.types if t.name.endswith("Shelf"))
        books = shelf.fields[2]
        assert books.kind == FieldKind.TYPE_MESSAGE
        assert books.cardinality == Cardinality.CARDINALITY_REPEATED
        assert books.type_url == "type.googleapis.com/example.library.v1.Book"

    def test_comment_becomes_documentation_rule(self, make_model: Callable[..., Model]) -> None:
        model = make_model(_service())
        model.establish_stage(NORMALIZED)
        rules = model.normalized_config.documentation.rules
        assert [(r.selector, r.description) for r in rules] == [
            (f"{LIBRARY}.CreateShelf", "Creates a shelf.")
        ]

    def test_extra_types_become_roots(self, make_model: Callable[..., Model]) -> None:
        model = make_model(_service(types=[Type(name="example.library.v1.Unused")]))
        assert model.establish_stage(NORMALIZED) == StageResult.ESTABLISHED
        names = [t.name for t in model.normalized_config.types]
        assert "example.library.v1.Unused" in names

    def test_wildcard_extra_types(self, make_model: Callable[..., Model]) -> None:
        model = make_model(Service(types=[Type(name="example.library.v1.*")]))
        assert model.establish_stage(NORMALIZED) == StageResult.ESTABLISHED
        assert len(model.normalized_config.types) == 4
        assert model.normalized_config.apis == []

    def test_library_config_file(self, library_config_path: Path) -> None:
        result = normalize([str(library_config_path)], ToolSettings())
        assert result.success, str(result.diag_collector)
        assert result.service.title == "Library Example"
        assert [t.name for t in result.service.types] == [
            "example.library.v1.GetShelfRequest",
            "example.library.v1.Shelf",
        ]


# ---------------------------------------------------------------------------
# Merge errors
# ---------------------------------------------------------------------------


class TestMergeErrors:
    def test_unresolved_api(self, make_model: Callable[..., Model]) -> None:
        model = make_model(Service(apis=[Api(name="example.library.v1.Nope")]))
        assert model.establish_stage(NORMALIZED) == StageResult.FAILED
        (error,) = model.diag_collector.errors
        assert str(error) == "ERROR: toplevel: Cannot resolve api 'example.library.v1.Nope'."
        assert model.normalized_config is None

    def test_extra_type_bad_syntax(self, make_model: Callable[..., Model]) -> None:
        model = make_model(Service(types=[Type(name="bad name!")]))
        assert model.establish_stage(MERGED) == StageResult.FAILED
        assert "Type selector 'bad name!'" in model.diag_collector.errors[0].message

    def test_extra_type_not_found(self, make_model: Callable[..., Model]) -> None:
        model = make_model(Service(types=[Type(name="x.Missing")]))
        assert model.establish_stage(MERGED) == StageResult.FAILED
        assert model.diag_collector.errors[0].message.startswith(
            "Cannot resolve additional TYPE_MESSAGE type 'x.Missing'"
        )

    def test_located_error_from_yaml(
        self, make_model: Callable[..., Model], tmp_path: Path
    ) -> None:
        path = tmp_path / "svc.yaml"
        path.write_text("type: google.api.Service\napis:\n- name: a.Missing\n", encoding="utf-8")
        source = read_config_file(SimpleDiagCollector(), str(path))

        model = make_model()
        model.set_config_sources([source])
        assert model.establish_stage(MERGED) == StageResult.FAILED
        error = model.diag_collector.errors[0]
        assert str(error.location) == f"{path}:3:9"


# ---------------------------------------------------------------------------
# Aspect ordering
# ---------------------------------------------------------------------------


class _Base(ConfigAspect):
    pass


class _Dependent(ConfigAspect):
    def merge_dependencies(self):
        return [_Base]


class _Loop(ConfigAspect):
    def merge_dependencies(self):
        return [_Loop2]


class _Loop2(ConfigAspect):
    def merge_dependencies(self):
        return [_Loop]


class TestSortForMerge:
    """Aspects are layered by the longest dependency chain."""

    def test_levels(self) -> None:
        model = Model()
        dependent, base, other = _Dependent(model, "dep"), _Base(model, "base"), _Base(model, "x")
        levels = sort_for_merge([dependent, base])
        assert levels == [[base], [dependent]]
        assert sort_for_merge([other]) == [[other]]

    def test_cycle(self) -> None:
        model = Model()
        with pytest.raises(CyclicAspectDependencyError, match="Cycle is"):
            sort_for_merge([_Loop(model, "a"), _Loop2(model, "b")])

    def test_unregistered_dependency(self) -> None:
        with pytest.raises(PipelineError, match="unregistered"):
            sort_for_merge([_Dependent(Model(), "dep")])


# ---------------------------------------------------------------------------
# Validators and registered rules
# ---------------------------------------------------------------------------


class _NoThemes(Validator):
    element_type = Field

    def validate(self, model: Model, element: Element) -> None:
        if element.simple_name == "theme":
            model.error(element, "Field '%s' is not allowed.", element.full_name)


class TestValidators:
    def test_validator_runs_after_merging(self, make_model: Callable[..., Model]) -> None:
        model = make_model(_service())
        model.register_validator(_NoThemes())
        assert model.establish_stage(MERGED) == StageResult.FAILED
        assert [d.message for d in model.diag_collector.errors] == [
            "Field 'example.library.v1.Shelf.theme' is not allowed."
        ]

    def test_standard_lint_rules(self, make_model: Callable[..., Model]) -> None:
        rules = {a.name: a.lint_rule_names for a in make_model(_service()).aspects}
        assert rules["http"] == ["param-reserved-keyword"]
        assert rules["naming"] == [
            "service-dns-name",
            "upper-camel",
            "lower-underscore",
            "upper-underscore",
        ]
        assert rules["versioning"] == ["config"]

    def test_lint_rules_survive_rule_sets(self, make_model: Callable[..., Model]) -> None:
        model = make_model(
            _service(
                http=Http(rules=[HttpRule(selector=f"{LIBRARY}.GetShelf", get="/v1/{name}")]),
                documentation=Documentation(
                    rules=[DocumentationRule(selector=f"{LIBRARY}.*", description="Shelves.")]
                ),
            )
        )
        before = {a.name: a.lint_rule_names for a in model.aspects}
        assert model.establish_stage(LINTED) == StageResult.ESTABLISHED
        assert {a.name: a.lint_rule_names for a in model.aspects} == before
        assert model.diag_collector.error_count == 0
