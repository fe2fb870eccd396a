"""Human-readable rendering of values that appear in routing decisions."""

from __future__ import annotations

import dataclasses
from typing import Any, Mapping, Optional

from .utils import compact_json, to_text


def _has_name(value: Any) -> bool:
    return isinstance(value, Mapping) and "name" in value


def _format_nested(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_format_nested(item) for item in value) + "]"
    if isinstance(value, Mapping):
        return format_debug_log_entry(value)
    return to_text(value)


def format_debug_log_entry(value: Any) -> str:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = {key: item for key, item in dataclasses.asdict(value).items() if item is not None}
    if isinstance(value, (list, tuple)):
        if value and all(_has_name(item) for item in value):
            return ", ".join(to_text(item["name"]) for item in value)
        return ", ".join(
            compact_json(item) if isinstance(item, Mapping) else _format_nested(item) for item in value
        )
    if isinstance(value, Mapping):
        if "name" in value:
            return to_text(value["name"])
        return ", ".join(f"{key}: {_format_nested(item)}" for key, item in value.items())
    return to_text(value)


def build_debug_log_message(header: str, details: Optional[Mapping[str, Any]] = None) -> str:
    lines = [header]
    if details:
        items = list(details.items())
        width = max((len(str(key)) for key, _ in items), default=0)
        for key, value in items:
            lines.append(f"  {str(key):<{width}}: {format_debug_log_entry(value)}")
    return "\n".join(lines)
