from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

ConditionValue = Union[str, int, float, bool, List[Any]]
ApplyTarget = Union[str, List[str]]

CONDITION_KEYS = ("require", "include", "exclude")


@dataclass(frozen=True, slots=True)
class PlainCondition:
    """Shorthand condition: include, substring, case-insensitive."""

    value: ConditionValue


@dataclass(frozen=True, slots=True)
class RuleCondition:
    """Explicit condition; every member that is set must pass."""

    require: Optional[ConditionValue] = None
    include: Optional[ConditionValue] = None
    exclude: Optional[ConditionValue] = None

    def is_empty(self) -> bool:
        return self.require is None and self.include is None and self.exclude is None


Condition = Union[PlainCondition, RuleCondition]


def as_condition(raw: Any) -> Condition:
    """Convert a raw configuration value into a condition variant.

    Values that already are conditions pass through unchanged. A mapping is
    read as a require/include/exclude rule (other keys are ignored); anything
    else is a plain include value.
    """
    if isinstance(raw, (PlainCondition, RuleCondition)):
        return raw
    if isinstance(raw, Mapping):
        return RuleCondition(
            require=raw.get("require"),
            include=raw.get("include"),
            exclude=raw.get("exclude"),
        )
    return PlainCondition(value=raw)


@dataclass(frozen=True, slots=True)
class Filter:
    media_type: str
    apply: ApplyTarget
    is_4k: Optional[bool] = None
    conditions: Dict[str, Condition] = field(default_factory=dict)
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Filter":
        raw_conditions = data.get("conditions") or {}
        is_4k = data.get("is_4k")
        return cls(
            media_type=str(data["media_type"]),
            apply=data["apply"],
            is_4k=None if is_4k is None else bool(is_4k),
            conditions={str(key): as_condition(value) for key, value in raw_conditions.items()},
            name=data.get("name"),
        )

    def label(self, index: int) -> str:
        return self.name or f"filter #{index + 1}"


def apply_targets(apply: ApplyTarget) -> List[str]:
    if isinstance(apply, (list, tuple)):
        return [str(item) for item in apply]
    return [str(apply)]
