"""Tests for svcconfig.importer.loader."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from svcconfig.exceptions import SpecParseError
from svcconfig.importer.loader import (
    OPENAPI_3,
    SWAGGER_2,
    deref,
    detect_format,
    load_document,
    parse_document,
    resolve_pointer,
)


class TestParseDocument:
    def test_json(self) -> None:
        assert parse_document('{"openapi": "3.0.0"}') == {"openapi": "3.0.0"}

    def test_yaml_fallback(self) -> None:
        assert parse_document("openapi: 3.0.0\n") == {"openapi": "3.0.0"}

    def test_json_hint_disables_yaml(self) -> None:
        with pytest.raises(SpecParseError, match="Invalid JSON"):
            parse_document("openapi: 3.0.0\n", hint="json")

    def test_not_an_object(self) -> None:
        with pytest.raises(SpecParseError, match=r"got list"):
            parse_document("- a\n- b\n")

    def test_empty_yaml(self) -> None:
        with pytest.raises(SpecParseError, match="empty document"):
            parse_document("# nothing\n", hint="yaml")

    def test_neither_format(self) -> None:
        with pytest.raises(SpecParseError, match="Failed to parse spec as JSON or YAML"):
            parse_document("{unclosed: [")


class TestLoadDocument:
    def test_from_file(self, petstore_path: Path) -> None:
        document = load_document(str(petstore_path))
        assert document["info"]["title"] == "Swagger Petstore"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SpecParseError, match="Spec file not found"):
            load_document(str(tmp_path / "nope.yaml"))

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.json"
        path.write_text("  \n", encoding="utf-8")
        with pytest.raises(SpecParseError, match="Spec file is empty"):
            load_document(str(path))

    def test_stdin(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO('{"swagger": "2.0"}'))
        assert load_document("-") == {"swagger": "2.0"}

    def test_empty_stdin(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        with pytest.raises(SpecParseError, match="No input received from stdin"):
            load_document("-")


class TestDetectFormat:
    def test_versions(self) -> None:
        assert detect_format({"swagger": "2.0"}) == SWAGGER_2
        assert detect_format({"openapi": "3.1.0"}) == OPENAPI_3

    @pytest.mark.parametrize(
        "document, message",
        [
            ({"swagger": "1.2"}, "Unsupported Swagger version: 1.2"),
            ({"openapi": "4.0"}, "Unsupported OpenAPI version: 4.0"),
            ({"info": {}}, "Missing 'openapi' or 'swagger' field"),
        ],
    )
    def test_unsupported(self, document: dict, message: str) -> None:
        with pytest.raises(SpecParseError, match=message):
            detect_format(document)


class TestReferences:
    root = {
        "components": {"schemas": {"a/b": {"type": "string"}, "Alias": {"$ref": "#/x"}}},
        "x": {"$ref": "#/components/schemas/a~1b"},
        "loop": {"$ref": "#/loop"},
        "items": [{"name": "first"}],
    }

    def test_escaped_pointer(self) -> None:
        assert resolve_pointer("#/components/schemas/a~1b", self.root) == {"type": "string"}

    def test_list_index(self) -> None:
        assert resolve_pointer("#/items/0/name", self.root) == "first"

    def test_deref_follows_chains(self) -> None:
        assert deref({"$ref": "#/components/schemas/Alias"}, self.root) == {"type": "string"}

    def test_circular(self) -> None:
        with pytest.raises(SpecParseError, match="Circular"):
            deref({"$ref": "#/loop"}, self.root)

    def test_external(self) -> None:
        with pytest.raises(SpecParseError, match="External"):
            resolve_pointer("other.yaml#/x", self.root)

    def test_missing_key(self) -> None:
        with pytest.raises(SpecParseError, match="key 'nope' not found"):
            resolve_pointer("#/components/nope", self.root)
