from __future__ import annotations

from typing import Any, Iterator, List, Mapping, Optional, Sequence

from .models import PlainCondition, as_condition
from .utils import normalize_to_array


def _iter_leaves(value: Any) -> Iterator[Any]:
    if isinstance(value, Mapping):
        for item in value.values():
            yield from _iter_leaves(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _iter_leaves(item)
    else:
        yield value


def flatten_values(value: Any) -> List[Any]:
    """Collect every scalar leaf of a nested list/mapping structure."""
    return list(_iter_leaves(value))


def match_value(filter_value: Any, data_value: Any, required: bool) -> bool:
    """Compare a filter value against arbitrary data.

    With ``required`` every filter token must equal some leaf of the data.
    Otherwise any filter token contained in any leaf is enough.
    """
    leaves = normalize_to_array(flatten_values(data_value))
    tokens = normalize_to_array(filter_value)

    if required:
        return all(token in leaves for token in tokens)
    return any(token in leaf for token in tokens for leaf in leaves)


def match_condition(values: Any, condition: Any) -> bool:
    """Evaluate a plain or require/include/exclude condition against ``values``."""
    resolved = as_condition(condition)
    if isinstance(resolved, PlainCondition):
        return match_value(resolved.value, values, False)

    if resolved.require is not None and not match_value(resolved.require, values, True):
        return False
    if resolved.include is not None and not match_value(resolved.include, values, False):
        return False
    if resolved.exclude is not None and match_value(resolved.exclude, values, False):
        return False
    return True


def _field_values(records: Optional[Sequence[Any]], field_name: str) -> List[Any]:
    values: List[Any] = []
    for record in records or []:
        if isinstance(record, Mapping):
            if field_name in record:
                values.append(record[field_name])
        else:
            values.append(getattr(record, field_name, None))
    return values


def match_keywords(keywords: Optional[Sequence[Any]], condition: Any) -> bool:
    names = _field_values(keywords, "name")
    return match_condition(names, condition)


def match_content_ratings(content_ratings: Optional[Mapping[str, Any]], condition: Any) -> bool:
    """Match ratings; a missing or empty rating list never matches, even for ``exclude``."""
    if not isinstance(content_ratings, Mapping):
        return False
    results = content_ratings.get("results") or []
    if not results:
        return False
    ratings = _field_values(results, "rating")
    return match_condition(ratings, condition)
