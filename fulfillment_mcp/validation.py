"""
Schema Validation for tool arguments.

Compiles JSON Schema (Draft 7) validators on first use and caches them by
the schema's canonical serialization, so every call to the same tool reuses
one compiled validator.

Usage:
    validator = Validator()
    args = validator.validate({"orderId": "ORD-1"}, CANCEL_ORDER_SCHEMA)

    # Update-style payloads where every field is optional
    validator.validate_partial({"notes": "rush"}, UPDATE_ORDER_SCHEMA)
"""

from __future__ import annotations

import json
import logging
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError, best_match

from .errors import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

# Keywords whose value is a single subschema
_SUBSCHEMA_KEYS = ("items", "additionalProperties", "not", "if", "then", "else", "contains")
# Keywords whose value is a list of subschemas
_SUBSCHEMA_LIST_KEYS = ("allOf", "anyOf", "oneOf")
# Keywords whose value maps names to subschemas
_SUBSCHEMA_MAP_KEYS = ("properties", "patternProperties", "definitions", "$defs")


def schema_key(schema: dict[str, Any]) -> str:
    """Canonical, key-order independent serialization of a schema."""
    return json.dumps(schema, sort_keys=True, separators=(",", ":"), default=str)


def strip_required(schema: Any) -> Any:
    """Return a copy of ``schema`` with every ``required`` constraint removed."""
    if isinstance(schema, list):
        return [strip_required(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    stripped: dict[str, Any] = {}
    for key, value in schema.items():
        if key == "required":
            continue
        if key in _SUBSCHEMA_MAP_KEYS and isinstance(value, dict):
            stripped[key] = {name: strip_required(sub) for name, sub in value.items()}
        elif key in _SUBSCHEMA_KEYS or key in _SUBSCHEMA_LIST_KEYS:
            stripped[key] = strip_required(value)
        else:
            stripped[key] = value
    return stripped


class Validator:
    """
    Validates untrusted input against JSON schemas.

    The compiled-validator cache grows with the number of distinct schemas
    and is never evicted automatically; call clear_cache() in long-running
    processes that generate schemas dynamically, or between tests.
    """

    def __init__(self) -> None:
        self._cache: dict[str, Draft7Validator] = {}

    def compile(self, schema: dict[str, Any]) -> Draft7Validator:
        """
        Get the compiled validator for a schema, compiling on first use.

        Raises:
            ConfigurationError: If the schema itself is invalid
        """
        key = schema_key(schema)
        compiled = self._cache.get(key)
        if compiled is None:
            try:
                Draft7Validator.check_schema(schema)
            except SchemaError as e:
                raise ConfigurationError(f"Invalid schema: {e.message}") from e
            compiled = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)
            self._cache[key] = compiled
            logger.debug(f"[validator] Compiled schema ({len(self._cache)} cached)")
        return compiled

    def validate(self, data: Any, schema: dict[str, Any]) -> Any:
        """
        Validate data against a schema.

        Returns:
            The data, unchanged

        Raises:
            ValidationError: With the violated field path and a reason
        """
        compiled = self.compile(schema)
        error = best_match(compiled.iter_errors(data))
        if error is None:
            return data

        path = [str(part) for part in error.absolute_path]
        if error.validator == "required" and isinstance(error.instance, dict):
            missing = [name for name in error.validator_value if name not in error.instance]
            if missing:
                path.append(str(missing[0]))

        field = ".".join(path) or "data"
        raise ValidationError(field, error.message, data)

    def validate_partial(self, data: Any, schema: dict[str, Any]) -> Any:
        """Validate with all ``required`` constraints removed."""
        return self.validate(data, strip_required(schema))

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_info(self) -> dict[str, Any]:
        return {"size": len(self._cache)}


__all__ = [
    "Validator",
    "schema_key",
    "strip_required",
]
