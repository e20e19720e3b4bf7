"""Load OpenAPI documents from a local file or stdin.

Documents are JSON or YAML; the format is detected from the file extension
and, failing that, from the content. Both Swagger 2.0 and OpenAPI 3.x
documents are accepted.

The public functions are:

* :func:`load_document` -- Load and parse a document from a file or ``-``.
* :func:`parse_document` -- Parse already-read text.
* :func:`detect_format` -- Check the declared version of a loaded document.
* :func:`resolve_pointer` -- Follow an internal ``$ref`` pointer.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import yaml

from svcconfig.exceptions import SpecParseError

SWAGGER_2 = "swagger2"
OPENAPI_3 = "openapi3"


def load_document(source: str) -> dict[str, Any]:
    """Load an OpenAPI document from a file path, or stdin for ``-``.

    Raises:
        SpecParseError: If the source cannot be read or parsed.
    """
    if source == "-":
        return _load_from_stdin()
    return _load_from_file(source)


def _load_from_stdin() -> dict[str, Any]:
    try:
        content = sys.stdin.read()
    except OSError as exc:
        raise SpecParseError(f"Failed to read from stdin: {exc}") from exc

    if not content.strip():
        raise SpecParseError("No input received from stdin")

    return parse_document(content)


def _load_from_file(path: str) -> dict[str, Any]:
    file_path = Path(path)
    if not file_path.is_file():
        raise SpecParseError(f"Spec file not found: {path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecParseError(f"Failed to read spec file {path}: {exc}") from exc

    if not content.strip():
        raise SpecParseError(f"Spec file is empty: {path}")

    suffix = file_path.suffix.lower()
    hint = ""
    if suffix == ".json":
        hint = "json"
    elif suffix in (".yaml", ".yml"):
        hint = "yaml"

    return parse_document(content, hint=hint)


def parse_document(content: str, hint: str = "") -> dict[str, Any]:
    """Parse content as JSON or YAML.

    JSON is tried first unless *hint* is ``"yaml"``; a ``"json"`` hint
    disables the YAML fallback.

    Raises:
        SpecParseError: If the content is neither, or is not an object.
    """
    json_error: Exception | None = None

    if hint != "yaml":
        try:
            result = json.loads(content)
        except json.JSONDecodeError as exc:
            if hint == "json":
                raise SpecParseError(f"Invalid JSON: {exc}") from exc
            json_error = exc
        else:
            return _require_object(result)

    try:
        result = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        msg = "Failed to parse spec as JSON or YAML"
        if json_error:
            msg += f"\n  JSON error: {json_error}"
        msg += f"\n  YAML error: {exc}"
        raise SpecParseError(msg) from exc
    return _require_object(result)


def _require_object(result: Any) -> dict[str, Any]:
    if not isinstance(result, dict):
        got = type(result).__name__ if result is not None else "empty document"
        raise SpecParseError(f"Spec must be a JSON/YAML object (got {got})")
    return result


def detect_format(document: dict[str, Any]) -> str:
    """Return :data:`SWAGGER_2` or :data:`OPENAPI_3` for a loaded document.

    Raises:
        SpecParseError: If the document declares no or an unsupported version.
    """
    if "swagger" in document:
        version = str(document["swagger"])
        if version == "2.0":
            return SWAGGER_2
        raise SpecParseError(
            f"Unsupported Swagger version: {version}. Only Swagger 2.0 is supported."
        )

    openapi_version = document.get("openapi")
    if openapi_version is None:
        raise SpecParseError(
            "Missing 'openapi' or 'swagger' field. Is this an OpenAPI document?"
        )
    version = str(openapi_version)
    if version.startswith("3."):
        return OPENAPI_3
    raise SpecParseError(
        f"Unsupported OpenAPI version: {version}. Only OpenAPI 3.x and Swagger 2.0 "
        "are supported."
    )


def resolve_pointer(ref: str, root: dict[str, Any]) -> Any:
    """Resolve an internal ``$ref`` like ``#/parameters/limit`` against *root*.

    Handles RFC 6901 escaping (``~0`` for ``~``, ``~1`` for ``/``).

    Raises:
        SpecParseError: If the reference is external or does not exist.
    """
    if not ref.startswith("#/"):
        raise SpecParseError(
            f"External $ref not supported: {ref}. "
            "Only internal references (#/...) are handled."
        )

    current: Any = root
    for segment in ref[2:].split("/"):
        segment = segment.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict):
            if segment not in current:
                raise SpecParseError(
                    f"Cannot resolve $ref '{ref}': key '{segment}' not found at path"
                )
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError) as exc:
                raise SpecParseError(
                    f"Cannot resolve $ref '{ref}': invalid array index '{segment}'"
                ) from exc
        else:
            raise SpecParseError(
                f"Cannot resolve $ref '{ref}': cannot navigate into {type(current).__name__}"
            )
    return current


def deref(value: Any, root: dict[str, Any]) -> Any:
    """Follow ``$ref`` chains until a non-reference value is reached."""
    seen: set[str] = set()
    while isinstance(value, dict) and "$ref" in value:
        ref = value["$ref"]
        if ref in seen:
            raise SpecParseError(f"Circular $ref '{ref}'")
        seen.add(ref)
        value = resolve_pointer(ref, root)
    return value
