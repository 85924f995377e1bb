"""Schema validation for service requests and responses.

Each service has one JSON document under ``schemas/`` holding shared
``$defs`` plus an ``inputs`` and an ``outputs`` schema per operation.
Operations are validated against the whole document with a ``$ref`` to the
operation's schema, so shared definitions resolve in place.
"""

from __future__ import annotations

import json
import math
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import jsonschema
from jsonschema.exceptions import best_match


# Plain decimal literals only: no underscores, non-ASCII digits, nan or inf
_INTEGER = re.compile(r"^-?\d+$", re.ASCII)
_DECIMAL = re.compile(r"^-?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$", re.ASCII)


class ValidationError(Exception):
    """Raised when validation fails."""

    pass


def _schema_dir() -> Path:
    """Return path to schemas directory."""
    return Path(__file__).resolve().parents[2] / "schemas"


@lru_cache(maxsize=None)
def load_service_schema(service: str) -> dict:
    """Load a service's schema document.

    Raises:
        FileNotFoundError: If the service has no schema file
    """
    schema_path = _schema_dir() / f"{service}.json"
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        return json.load(f)


def _operation_schema(service: str, section: str, operation: str) -> dict:
    document = load_service_schema(service)
    try:
        return document[section][operation]
    except KeyError:
        raise KeyError(f"No {section[:-1]} schema for {service}/{operation}") from None


@lru_cache(maxsize=None)
def _validator(service: str, section: str, operation: str) -> jsonschema.Draft202012Validator:
    _operation_schema(service, section, operation)
    document = load_service_schema(service)
    wrapper = {**document, "$ref": f"#/{section}/{operation}"}
    return jsonschema.Draft202012Validator(
        wrapper, format_checker=jsonschema.Draft202012Validator.FORMAT_CHECKER
    )


def _resolve(document: Mapping[str, Any], prop: Mapping[str, Any]) -> Mapping[str, Any]:
    """Follow a local ``#/$defs/...`` reference, keeping sibling keywords."""
    ref = prop.get("$ref")
    if not ref or not ref.startswith("#/$defs/"):
        return prop
    target = document.get("$defs", {}).get(ref.rsplit("/", 1)[-1], {})
    return {**target, **{k: v for k, v in prop.items() if k != "$ref"}}


def _coerce(value: Any, prop: Mapping[str, Any]) -> Any:
    """Convert a query-string value to the property's declared numeric type.

    Values that do not parse are left alone for validation to reject.
    """
    if not isinstance(value, str):
        return value
    declared = prop.get("type")
    text = value.strip()
    if _INTEGER.match(text):
        if declared in ("integer", "number"):
            return int(text)
        return value
    if declared == "number" and _DECIMAL.match(text):
        number = float(text)
        # 1e999 overflows to inf
        return number if math.isfinite(number) else value
    return value


def _raise_for(errors) -> None:
    error = best_match(errors)
    if error is None:
        return
    # Extract the field name from the error path
    field = ".".join(str(p) for p in error.absolute_path) if error.absolute_path else ""
    if not field and error.validator == "required":
        field = error.message.split("'")[1] if "'" in error.message else "unknown"
    if not field:
        field = "request"
    raise ValidationError(f"Validation failed for {field}: {error.message}") from error


def validate_input(service: str, operation: str, params: Mapping[str, Any]) -> dict[str, Any]:
    """Coerce, default and validate request parameters.

    Args:
        service: Service name (schema file stem)
        operation: Operation key under ``inputs``
        params: Raw parameters, string values allowed for numeric fields

    Returns:
        New dict with numeric strings converted and defaults applied

    Raises:
        ValidationError: If the parameters do not match the schema
        KeyError: If the operation has no input schema
    """
    document = load_service_schema(service)
    schema = _operation_schema(service, "inputs", operation)
    properties = schema.get("properties", {})

    normalized = dict(params)
    for name, raw_prop in properties.items():
        prop = _resolve(document, raw_prop)
        if name in normalized:
            normalized[name] = _coerce(normalized[name], prop)
        elif "default" in prop:
            normalized[name] = prop["default"]

    _raise_for(_validator(service, "inputs", operation).iter_errors(normalized))
    return normalized


def validate_output(service: str, operation: str, payload: Mapping[str, Any]) -> None:
    """Validate a response payload.

    Raises:
        ValidationError: If the payload does not match the schema
    """
    _raise_for(_validator(service, "outputs", operation).iter_errors(payload))
