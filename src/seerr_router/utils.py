from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml


def to_text(value: Any) -> str:
    """Return the JSON-style string form of a scalar."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_to_array(value: Any) -> List[str]:
    """Coerce a scalar or a list of scalars into lower-cased string tokens."""
    if isinstance(value, (list, tuple)):
        return [to_text(item).lower() for item in value]
    return [to_text(value).lower()]


def compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def expand_env(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    if isinstance(value, dict):
        return {key: expand_env(val) for key, val in value.items()}
    return value


def load_yaml_file(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return expand_env(data)


def load_json_file(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)
