from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from jsonschema import Draft7Validator

from .config import INSTANCE_TYPES, MEDIA_TYPES
from .models import CONDITION_KEYS


@dataclass(slots=True)
class ValidationIssue:
    """Represents a single validation problem."""

    severity: str
    path: str
    message: str
    code: str


@dataclass(slots=True)
class ValidationReport:
    """Aggregates validation warnings and errors."""

    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


_SCALAR_TYPES = ["string", "number", "integer", "boolean"]
_CONDITION_VALUE = {
    "oneOf": [
        {"type": _SCALAR_TYPES},
        {"type": "array", "items": {"type": _SCALAR_TYPES}},
    ]
}

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "settings": {
            "type": "object",
            "properties": {
                "host": {"type": "string"},
                "port": {"type": "integer", "minimum": 1, "maximum": 65535},
                "dry_run": {"type": "boolean"},
                "request_timeout": {"type": "integer", "minimum": 1},
                "overseerr": {
                    "type": "object",
                    "properties": {
                        "url": {"type": "string"},
                        "api_key": {"type": ["string", "null"]},
                        "timeout": {"type": "integer", "minimum": 1},
                    },
                    "additionalProperties": True,
                },
            },
            "additionalProperties": True,
        },
        "instances": {
            "type": "object",
            "patternProperties": {
                "^[A-Za-z0-9_.-]+$": {"$ref": "#/definitions/instance"},
            },
            "additionalProperties": False,
        },
        "filters": {
            "type": "array",
            "items": {"$ref": "#/definitions/filter"},
        },
    },
    "required": ["filters"],
    "additionalProperties": True,
    "definitions": {
        "instance": {
            "type": "object",
            "properties": {
                "type": {"type": "string", "enum": list(INSTANCE_TYPES)},
                "url": {"type": "string", "minLength": 1},
                "api_key": {"type": "string", "minLength": 1},
                "root_folder": {"type": "string", "minLength": 1},
                "quality_profile_id": {"type": "integer"},
                "language_profile_id": {"type": ["integer", "null"]},
                "tags": {"type": "array", "items": {"type": "integer"}},
                "search": {"type": "boolean"},
                "minimum_availability": {"type": "string"},
                "season_folder": {"type": "boolean"},
            },
            "required": ["type", "url", "api_key", "root_folder", "quality_profile_id"],
            "additionalProperties": True,
        },
        "condition": {
            "oneOf": [
                _CONDITION_VALUE,
                {
                    "type": "object",
                    "properties": {key: _CONDITION_VALUE for key in CONDITION_KEYS},
                    "additionalProperties": True,
                },
            ]
        },
        "filter": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "media_type": {"type": "string", "enum": list(MEDIA_TYPES)},
                "is_4k": {"type": "boolean"},
                "conditions": {
                    "type": ["object", "null"],
                    "additionalProperties": {"$ref": "#/definitions/condition"},
                },
                "apply": {
                    "oneOf": [
                        {"type": "string", "minLength": 1},
                        {"type": "array", "items": {"type": "string", "minLength": 1}, "minItems": 1},
                    ]
                },
            },
            "required": ["media_type", "apply"],
            "additionalProperties": True,
        },
    },
}


def _format_jsonschema_path(path: Sequence[Any]) -> str:
    if not path:
        return "<root>"
    tokens: List[str] = []
    for part in path:
        if isinstance(part, int):
            if tokens:
                tokens[-1] = f"{tokens[-1]}[{part}]"
            else:
                tokens.append(f"[{part}]")
        else:
            tokens.append(str(part))
    return ".".join(tokens) if tokens else "<root>"


def validate_config_data(data: Dict[str, Any]) -> ValidationReport:
    report = ValidationReport()
    validator = Draft7Validator(CONFIG_SCHEMA)

    for error in sorted(validator.iter_errors(data), key=lambda exc: _format_jsonschema_path(exc.absolute_path)):
        report.errors.append(
            ValidationIssue(
                severity="error",
                path=_format_jsonschema_path(error.absolute_path),
                message=error.message,
                code="schema",
            )
        )

    _validate_semantics(data, report)
    return report


def _validate_max_seasons(value: Any, path: str, report: ValidationReport) -> None:
    valid = not isinstance(value, bool)
    if valid:
        try:
            float(value)
        except (TypeError, ValueError):
            valid = False
    if not valid:
        report.errors.append(
            ValidationIssue(
                severity="error",
                path=path,
                message=f"max_seasons must be a number, got {value!r}",
                code="max-seasons",
            )
        )


def _validate_rule_condition(condition: Dict[str, Any], path: str, report: ValidationReport) -> None:
    unknown = sorted(str(key) for key in condition if key not in CONDITION_KEYS)
    if unknown:
        report.warnings.append(
            ValidationIssue(
                severity="warning",
                path=path,
                message=f"Ignoring unknown condition keys: {', '.join(unknown)}",
                code="condition-keys",
            )
        )
    if not any(key in condition for key in CONDITION_KEYS):
        report.warnings.append(
            ValidationIssue(
                severity="warning",
                path=path,
                message="Condition has no require/include/exclude entry and always passes",
                code="condition-empty",
            )
        )


def _validate_semantics(data: Dict[str, Any], report: ValidationReport) -> None:
    instances = data.get("instances") or {}
    known_instances = set(instances.keys()) if isinstance(instances, dict) else set()

    filters = data.get("filters") or []
    if not isinstance(filters, list):
        return

    for index, filter_data in enumerate(filters):
        if not isinstance(filter_data, dict):
            continue
        path = f"filters[{index}]"

        apply = filter_data.get("apply")
        targets = apply if isinstance(apply, list) else [apply] if isinstance(apply, str) else []
        for target in targets:
            if isinstance(target, str) and target not in known_instances:
                report.errors.append(
                    ValidationIssue(
                        severity="error",
                        path=f"{path}.apply",
                        message=f"Unknown instance '{target}'",
                        code="unknown-instance",
                    )
                )

        media_type = filter_data.get("media_type")
        for target in targets:
            if not isinstance(target, str) or not isinstance(instances, dict):
                continue
            instance = instances.get(target)
            if not isinstance(instance, dict) or media_type not in MEDIA_TYPES:
                continue
            expected = "radarr" if media_type == "movie" else "sonarr"
            if instance.get("type") != expected:
                report.warnings.append(
                    ValidationIssue(
                        severity="warning",
                        path=f"{path}.apply",
                        message=(
                            f"Instance '{target}' is a {instance.get('type')} instance "
                            f"but the filter routes {media_type} requests"
                        ),
                        code="instance-type",
                    )
                )

        conditions = filter_data.get("conditions") or {}
        if not isinstance(conditions, dict):
            continue
        for key, condition in conditions.items():
            condition_path = f"{path}.conditions.{key}"
            if key == "max_seasons":
                _validate_max_seasons(condition, condition_path, report)
            elif isinstance(condition, dict):
                _validate_rule_condition(condition, condition_path, report)


__all__ = ["ValidationIssue", "ValidationReport", "validate_config_data", "CONFIG_SCHEMA"]
