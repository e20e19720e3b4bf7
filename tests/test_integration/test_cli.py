"""Integration tests for the svcconfig command line.

Each test invokes the real Typer application through the CliRunner with
settings isolated to a temporary directory. Emitted documents are written
with ``-o`` so that stdout and stderr never have to be told apart.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from svcconfig import __version__
from svcconfig.app import app
from svcconfig.config import DEFAULT_MAX_ERRORS, load_user_settings


@pytest.fixture(autouse=True)
def _isolated(isolated_config: Path) -> Path:
    return isolated_config


def test_version(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"svcconfig {__version__}" in result.output


class TestConvert:
    def test_json_document(
        self, cli_runner: CliRunner, petstore_path: Path, tmp_path: Path
    ) -> None:
        out = tmp_path / "service.json"
        result = cli_runner.invoke(app, ["-o", str(out), "convert", str(petstore_path)])
        assert result.exit_code == 0, result.output
        document = json.loads(out.read_text(encoding="utf-8"))
        assert document["type"] == "google.api.Service"
        assert document["name"] == "petstore.example.com"
        assert document["config_version"] == 3

    def test_yaml_document(
        self, cli_runner: CliRunner, petstore_path: Path, tmp_path: Path
    ) -> None:
        out = tmp_path / "service.yaml"
        result = cli_runner.invoke(
            app, ["-o", str(out), "convert", str(petstore_path), "--format", "yaml"]
        )
        assert result.exit_code == 0, result.output
        document = yaml.safe_load(out.read_text(encoding="utf-8"))
        assert document["title"] == "Swagger Petstore"

    def test_with_overrides(
        self,
        cli_runner: CliRunner,
        petstore_path: Path,
        overrides_path: Path,
        tmp_path: Path,
    ) -> None:
        out = tmp_path / "service.json"
        result = cli_runner.invoke(
            app, ["-o", str(out), "convert", str(petstore_path), "-c", str(overrides_path)]
        )
        assert result.exit_code == 0, result.output
        assert json.loads(out.read_text(encoding="utf-8"))["title"] == "Pet Store Override"

    def test_missing_spec(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        result = cli_runner.invoke(
            app, ["--no-color", "convert", str(tmp_path / "missing.yaml")]
        )
        assert result.exit_code == 7
        assert "Failed to load spec" in result.output

    def test_failed_conversion(
        self, cli_runner: CliRunner, petstore_path: Path, tmp_path: Path
    ) -> None:
        config = tmp_path / "bad.yaml"
        config.write_text(
            "type: google.api.Service\napis:\n- name: nope.Api\n", encoding="utf-8"
        )
        out = tmp_path / "service.json"
        result = cli_runner.invoke(
            app,
            ["--no-color", "-o", str(out), "convert", str(petstore_path), "-c", str(config)],
        )
        assert result.exit_code == 8
        assert "Cannot resolve api 'nope.Api'." in result.output
        assert "Conversion failed with" in result.output
        assert not out.exists()


class TestNormalizeAndDescriptor:
    def test_normalized_output_feeds_descriptor(
        self, cli_runner: CliRunner, library_config_path: Path, tmp_path: Path
    ) -> None:
        normalized = tmp_path / "normalized.json"
        result = cli_runner.invoke(
            app, ["-o", str(normalized), "normalize", str(library_config_path)]
        )
        assert result.exit_code == 0, result.output
        document = json.loads(normalized.read_text(encoding="utf-8"))
        assert [api["name"] for api in document["apis"]] == ["example.library.v1.Library"]

        descriptors = tmp_path / "descriptors.json"
        result = cli_runner.invoke(
            app, ["-o", str(descriptors), "descriptor", str(normalized)]
        )
        assert result.exit_code == 0, result.output
        (file_,) = json.loads(descriptors.read_text(encoding="utf-8"))["files"]
        assert file_["name"] == "library.proto"
        assert file_["package"] == "example.library.v1"

    def test_normalize_is_repeatable(
        self, cli_runner: CliRunner, library_config_path: Path, tmp_path: Path
    ) -> None:
        first = tmp_path / "first.json"
        second = tmp_path / "second.json"
        cli_runner.invoke(app, ["-o", str(first), "normalize", str(library_config_path)])
        result = cli_runner.invoke(app, ["-o", str(second), "normalize", str(first)])
        assert result.exit_code == 0, result.output
        assert json.loads(second.read_text(encoding="utf-8")) == json.loads(
            first.read_text(encoding="utf-8")
        )


class TestInspect:
    def test_types_as_json(self, cli_runner: CliRunner, petstore_path: Path) -> None:
        result = cli_runner.invoke(app, ["--json", "inspect", "types", str(petstore_path)])
        assert result.exit_code == 0, result.output
        rows = {row["Name"]: row for row in json.loads(result.stdout)}
        assert rows["swagger_petstore.MapEntry"]["Map Entry"] == "yes"
        assert rows["swagger_petstore.Pet"]["Fields"] == "5"

    def test_methods_as_json(self, cli_runner: CliRunner, petstore_path: Path) -> None:
        result = cli_runner.invoke(app, ["--json", "inspect", "methods", str(petstore_path)])
        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert [row["HTTP"] for row in rows] == ["GET /pets", "POST /pets", "GET /pets/{pet_id}"]
        assert rows[0]["Response"] == "google.protobuf.ListValue"


class TestConfigCommands:
    def test_set_and_reset(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(app, ["config", "set", "max_errors", "5"])
        assert result.exit_code == 0, result.output
        assert load_user_settings().max_errors == 5

        result = cli_runner.invoke(app, ["config", "set", "experiments", "a, b"])
        assert result.exit_code == 0, result.output
        assert load_user_settings().experiments == ["a", "b"]

        result = cli_runner.invoke(app, ["config", "reset", "--force"])
        assert result.exit_code == 0, result.output
        assert load_user_settings().max_errors == DEFAULT_MAX_ERRORS

    def test_show(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        cli_runner.invoke(app, ["config", "set", "namespace", "pets.v1"])
        out = tmp_path / "settings.json"
        result = cli_runner.invoke(app, ["-o", str(out), "config", "show"])
        assert result.exit_code == 0, result.output
        assert json.loads(out.read_text(encoding="utf-8"))["namespace"] == "pets.v1"

    @pytest.mark.parametrize(
        "args",
        [["config", "set", "nope", "1"], ["config", "set", "max_errors", "many"]],
    )
    def test_invalid_set(self, cli_runner: CliRunner, args: list[str]) -> None:
        assert cli_runner.invoke(app, args).exit_code == 2
