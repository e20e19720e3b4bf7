"""Shared test fixtures for svcconfig.

Provides reusable fixtures for loading document fixtures, building small
descriptor sets, creating isolated settings environments, managing output
state, and running CLI commands. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import pytest
import yaml

from svcconfig.config_source import ConfigSource
from svcconfig.descriptor import (
    FieldDescriptor,
    FileDescriptor,
    FileDescriptorSet,
    Label,
    MessageDescriptor,
    MethodDescriptor,
    ServiceDescriptor,
)
from svcconfig.model.model import Model
from svcconfig.models import FieldKind, Service
from svcconfig.output import OutputFormat, OutputManager, reset_output, set_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Document fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_path() -> Path:
    return FIXTURES_DIR / "petstore_3.0.yaml"


@pytest.fixture
def petstore_raw(petstore_path: Path) -> dict[str, Any]:
    """Load the raw OpenAPI 3.0 petstore document."""
    with open(petstore_path, encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def swagger_raw() -> dict[str, Any]:
    """Load the raw Swagger 2.0 petstore document."""
    with open(FIXTURES_DIR / "petstore_swagger.json", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def library_config_path() -> Path:
    """A service config declaring its own api and types."""
    return FIXTURES_DIR / "library_service.yaml"


@pytest.fixture
def overrides_path() -> Path:
    """A service config overriding parts of the imported petstore config."""
    return FIXTURES_DIR / "overrides.yaml"


# ---------------------------------------------------------------------------
# Descriptor fixtures
# ---------------------------------------------------------------------------


def string_field(name: str, number: int, json_name: str = "") -> FieldDescriptor:
    return FieldDescriptor(
        name=name, number=number, kind=FieldKind.TYPE_STRING, json_name=json_name or name
    )


def message_field(
    name: str, number: int, type_name: str, repeated: bool = False
) -> FieldDescriptor:
    return FieldDescriptor(
        name=name,
        number=number,
        kind=FieldKind.TYPE_MESSAGE,
        type_name=type_name,
        label=Label.LABEL_REPEATED if repeated else Label.LABEL_OPTIONAL,
    )


@pytest.fixture
def library_descriptors() -> FileDescriptorSet:
    """A small library API: one interface, three messages.

    ``Book`` is only reachable through ``Shelf.books``; ``Unused`` is not
    reachable from the interface at all.
    """
    return FileDescriptorSet(
        files=[
            FileDescriptor(
                name="library.proto",
                package="example.library.v1",
                services=[
                    ServiceDescriptor(
                        name="Library",
                        methods=[
                            MethodDescriptor(
                                name="GetShelf",
                                input_type="GetShelfRequest",
                                output_type="Shelf",
                            ),
                            MethodDescriptor(
                                name="CreateShelf",
                                input_type=".example.library.v1.Shelf",
                                output_type="Shelf",
                            ),
                        ],
                    )
                ],
                message_types=[
                    MessageDescriptor(name="GetShelfRequest", fields=[string_field("name", 1)]),
                    MessageDescriptor(
                        name="Shelf",
                        fields=[
                            string_field("name", 1),
                            string_field("theme", 2),
                            message_field("books", 3, "Book", repeated=True),
                        ],
                    ),
                    MessageDescriptor(
                        name="Book",
                        fields=[string_field("name", 1), string_field("author", 2)],
                    ),
                    MessageDescriptor(name="Unused", fields=[string_field("name", 1)]),
                ],
                comments={
                    "example.library.v1.Library.CreateShelf": " Creates a shelf.",
                },
            )
        ]
    )


@pytest.fixture
def make_model(library_descriptors: FileDescriptorSet) -> Callable[..., Model]:
    """Factory for models wired with the standard processors and aspects.

    The model is built from the library descriptors unless others are given;
    *service* becomes the single config source.
    """
    from svcconfig.setup import register_standard_aspects, register_standard_processors

    def factory(
        service: Optional[Service] = None,
        descriptors: Optional[FileDescriptorSet] = None,
        **kwargs: Any,
    ) -> Model:
        model = Model.create(descriptors or library_descriptors, **kwargs)
        register_standard_processors(model)
        register_standard_aspects(model)
        model.set_config_sources([ConfigSource.of(service)] if service is not None else [])
        return model

    return factory


# ---------------------------------------------------------------------------
# Settings isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate settings to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path so
    that tests never touch real user settings. Clears all SVCCONFIG_*
    environment variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("svcconfig.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "SVCCONFIG_EXPERIMENTS",
        "SVCCONFIG_MAX_ERRORS",
        "SVCCONFIG_MAX_WARNINGS",
        "SVCCONFIG_NAMESPACE",
        "NO_COLOR",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
