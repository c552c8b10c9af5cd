from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft202012Validator

from .defaults import EXPORT_SCHEMA, SETTINGS_SCHEMA
from .exceptions import WorkspaceImportError, WorkspaceValidationError

_settings_validator = Draft202012Validator(SETTINGS_SCHEMA)
_export_validator = Draft202012Validator(EXPORT_SCHEMA)


def _first_error(validator: Draft202012Validator, data: Any) -> str | None:
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(part) for part in e.path])
    if not errors:
        return None
    first = errors[0]
    location = ".".join(str(part) for part in first.path)
    return f"{location}: {first.message}" if location else first.message


def validate_settings(data: Dict[str, Any]) -> None:
    message = _first_error(_settings_validator, data)
    if message:
        raise WorkspaceValidationError(f"Invalid settings: {message}")


def validate_export(data: Any) -> None:
    message = _first_error(_export_validator, data)
    if message:
        raise WorkspaceImportError(f"Invalid workspace payload: {message}")


__all__ = ["validate_settings", "validate_export"]
