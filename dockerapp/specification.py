"""Validation of application metadata against its JSON schema."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import jsonschema

METADATA_VERSION = "v0.2"

_SCHEMAS: dict[str, dict[str, Any]] = {
    "v0.2": {
        "type": "object",
        "required": ["version", "name"],
        "properties": {
            "maintainers": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {"email": {"format": "email"}},
                },
            },
        },
    },
}


class SpecificationError(ValueError):
    """Raised when metadata does not satisfy its schema."""


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _describe(error: jsonschema.ValidationError) -> Iterator[str]:
    if error.validator == "required":
        if isinstance(error.instance, dict):
            for name in error.validator_value:
                if name not in error.instance:
                    yield f"{name} is required"
    elif error.validator == "format":
        yield f"Does not match format '{error.validator_value}'"
    elif error.validator == "type":
        expected = error.validator_value
        if isinstance(expected, list):
            expected = "/".join(expected)
        yield f"Invalid type. Expected: {expected}, given: {_json_type(error.instance)}"
    else:
        yield error.message


def validate(config: Any, version: str) -> None:
    """Validate metadata against the schema of the given version."""
    schema = _SCHEMAS.get(version)
    if schema is None:
        raise SpecificationError(f"unsupported metadata version: {version}")
    validator = jsonschema.Draft4Validator(schema, format_checker=jsonschema.FormatChecker())
    messages = set()
    for error in validator.iter_errors(config):
        field = ".".join(str(part) for part in error.absolute_path) or "(root)"
        messages.update(f"- {field}: {text}" for text in _describe(error))
    if messages:
        raise SpecificationError("\n".join(sorted(messages)))