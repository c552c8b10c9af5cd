from __future__ import annotations

import re
from typing import Any, Dict, List, Tuple

_BARE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_SHORT_ESCAPES = {"\b": "\\b", "\t": "\\t", "\n": "\\n", "\f": "\\f", "\r": "\\r"}


def _escape_control(match: "re.Match[str]") -> str:
    char = match.group(0)
    return _SHORT_ESCAPES.get(char) or f"\\u{ord(char):04X}"


def _toml_escape(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return _CONTROL_CHARS.sub(_escape_control, escaped)


def _format_toml_key(key: str) -> str:
    if _BARE_KEY.match(key):
        return key
    return f'"{_toml_escape(key)}"'


def _format_inline_table(table: Dict[str, Any]) -> str:
    items = [
        f"{_format_toml_key(str(key))} = {_format_toml_value(value)}"
        for key, value in table.items()
        if value is not None
    ]
    if not items:
        return "{}"
    return "{ " + ", ".join(items) + " }"


def _format_toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(value)
    if isinstance(value, str):
        return f'"{_toml_escape(value)}"'
    if isinstance(value, (list, tuple)):
        if any(item is None for item in value):
            raise TypeError("TOML arrays cannot contain null values")
        return "[" + ", ".join(_format_toml_value(v) for v in value) + "]"
    if isinstance(value, dict):
        return _format_inline_table(value)
    raise TypeError(f"Unsupported value type for TOML serialization: {type(value)!r}")


def toml_dumps(data: Dict[str, Any]) -> str:
    """Serialise ``data`` as TOML; keys holding ``None`` are omitted."""

    lines: List[str] = []

    def write_table(prefix: str, table: Dict[str, Any]) -> None:
        scalar_items: List[Tuple[str, Any]] = []
        sub_tables: List[Tuple[str, Dict[str, Any]]] = []

        for key, value in table.items():
            if value is None:
                continue
            if isinstance(value, dict):
                sub_tables.append((str(key), value))
            else:
                scalar_items.append((str(key), value))

        if prefix:
            if lines:
                lines.append("")
            lines.append(f"[{prefix}]")

        for key, value in scalar_items:
            lines.append(f"{_format_toml_key(key)} = {_format_toml_value(value)}")

        for key, value in sub_tables:
            formatted = _format_toml_key(key)
            new_prefix = f"{prefix}.{formatted}" if prefix else formatted
            write_table(new_prefix, value)

    write_table("", data)
    return "\n".join(lines) + "\n"


__all__ = ["toml_dumps"]
