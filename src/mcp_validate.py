"""JSON Schema validation helpers for MCP tool inputs.

This module wraps jsonschema Draft7 validation and reports the first error
as a ``SchemaError``, which tools return to the caller as text.
"""

from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft7Validator

from errors import InvalidInputError


class SchemaError(InvalidInputError):
    """Raised when data fails to validate against a provided schema."""


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    # Optional tool arguments arrive as None or ""; both mean absent.
    return {k: v for k, v in data.items() if v is not None and v != ""}


def validate_input(schema: Dict[str, Any], data: Dict[str, Any]) -> None:
    """Validate tool input strictly and raise on the first error.

    Args:
        schema: Draft-07 JSON Schema dict.
        data:   Input payload to validate.
    """
    validator = Draft7Validator(schema)
    errs = sorted(validator.iter_errors(_drop_none(data)), key=lambda e: list(e.path))
    if errs:
        first = errs[0]
        path = "/".join([str(p) for p in first.path])
        msg = f"Invalid input at '{path}': {first.message}"
        raise SchemaError(msg)
