"""Thin wrapper around :mod:`jsonschema` with stable error messages."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from jsonschema import validators
from jsonschema.exceptions import SchemaError, ValidationError

from gradecore.errors import SchemaDefinitionError

__all__ = ["check_schema", "validate_instance"]

_BOUND_MESSAGES = {
    "minimum": "must be >= {value}",
    "maximum": "must be <= {value}",
    "exclusiveMinimum": "must be > {value}",
    "exclusiveMaximum": "must be < {value}",
    "minLength": "must NOT have fewer than {value} characters",
    "maxLength": "must NOT have more than {value} characters",
    "minItems": "must NOT have fewer than {value} items",
    "maxItems": "must NOT have more than {value} items",
    "minProperties": "must NOT have fewer than {value} properties",
    "maxProperties": "must NOT have more than {value} properties",
    "multipleOf": "must be multiple of {value}",
    "pattern": 'must match pattern "{value}"',
    "format": 'must match format "{value}"',
}

_FIXED_MESSAGES = {
    "enum": "must be equal to one of the allowed values",
    "const": "must be equal to constant",
    "additionalProperties": "must NOT have additional properties",
    "uniqueItems": "must NOT have duplicate items",
}


def check_schema(schema: Any) -> None:
    if not isinstance(schema, Mapping):
        raise SchemaDefinitionError(
            f"Parameter schema must be a mapping, got {type(schema).__name__}"
        )
    try:
        validator_cls = validators.validator_for(schema)
        validator_cls.check_schema(schema)
    except SchemaError as exc:
        raise SchemaDefinitionError(f"Parameter schema failed validation: {exc.message}") from exc


def validate_instance(schema: Mapping[str, Any], instance: Any) -> list[str]:
    """Validate ``instance`` and return error messages (empty when valid).

    Messages take the form ``data/<pointer> <message>`` and are ordered by
    instance location so that the output is deterministic.
    """

    check_schema(schema)
    validator_cls = validators.validator_for(schema)
    validator = validator_cls(schema, format_checker=validator_cls.FORMAT_CHECKER)
    errors = sorted(
        validator.iter_errors(instance),
        key=lambda error: ([str(part) for part in error.absolute_path], str(error.validator)),
    )
    messages: list[str] = []
    for error in errors:
        location = _instance_location(error)
        for message in _describe(error):
            messages.append(f"{location} {message}")
    return list(dict.fromkeys(messages))


def _instance_location(error: ValidationError) -> str:
    parts = [str(part).replace("~", "~0").replace("/", "~1") for part in error.absolute_path]
    return "data" + "".join(f"/{part}" for part in parts)


def _describe(error: ValidationError) -> list[str]:
    keyword = str(error.validator)
    if keyword == "required":
        instance = error.instance if isinstance(error.instance, Mapping) else {}
        missing = [name for name in error.validator_value if name not in instance]
        return [f"must have required property '{name}'" for name in missing]
    if keyword == "type":
        expected = error.validator_value
        if isinstance(expected, list):
            expected = ",".join(expected)
        return [f"must be {expected}"]
    if keyword in _FIXED_MESSAGES:
        return [_FIXED_MESSAGES[keyword]]
    if keyword in _BOUND_MESSAGES:
        return [_BOUND_MESSAGES[keyword].format(value=error.validator_value)]
    return [error.message]
