"""JSON Schema helpers for tool input schemas."""

from typing import Any

from jsonschema import Draft7Validator


def validate_schema(data: Any, schema: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate data against a JSON Schema.

    Tool schemas only use ``type``, ``properties`` and ``required``, so the
    checks amount to presence of required fields and primitive types.

    Args:
        data: The data to validate
        schema: JSON Schema to validate against

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    if not schema:
        return True, []

    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])

    if not errors:
        return True, []

    error_messages = [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in errors
    ]

    return False, error_messages


def object_schema(
    properties: dict[str, dict[str, Any]],
    required: list[str] | None = None
) -> dict[str, Any]:
    """
    Build an object schema from property definitions.

    Args:
        properties: Mapping of argument name to its schema
        required: Names of required arguments

    Returns:
        JSON Schema dictionary
    """
    return {
        "type": "object",
        "properties": properties,
        "required": list(required or []),
    }


def string_property(description: str) -> dict[str, Any]:
    return {"type": "string", "description": description}


def limit_property(default: int, maximum: int) -> dict[str, Any]:
    # No "maximum" keyword: larger values are capped, not rejected
    return {
        "type": "integer",
        "minimum": 1,
        "description": f"Maximum results to return (default {default}, capped at {maximum})",
        "default": default,
    }
