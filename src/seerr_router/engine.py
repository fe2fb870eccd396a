from __future__ import annotations

import logging
import math
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple, Union

from .debug_log import build_debug_log_message
from .matcher import match_condition, match_content_ratings, match_keywords
from .models import ApplyTarget, Condition, Filter, PlainCondition
from .webhook import Webhook, get_post_data

LOGGER = logging.getLogger(__name__)

_MISSING = object()

FilterLike = Union[Filter, Mapping[str, Any]]
WebhookLike = Union[Webhook, Mapping[str, Any]]
LookupSource = Tuple[str, Callable[[Webhook, Mapping[str, Any], str], Any]]


def _from_data(webhook: Webhook, data: Mapping[str, Any], key: str) -> Any:
    value = data.get(key)
    return _MISSING if value is None else value


def _from_request(webhook: Webhook, data: Mapping[str, Any], key: str) -> Any:
    value = webhook.request.get(key)
    return _MISSING if value is None else value


LOOKUP_SOURCES: Tuple[LookupSource, ...] = (
    ("data", _from_data),
    ("request", _from_request),
)


def resolve_field(webhook: Webhook, data: Mapping[str, Any], key: str) -> Tuple[Optional[str], Any]:
    """Return the first lookup source holding ``key`` and its value."""
    for source_name, getter in LOOKUP_SOURCES:
        value = getter(webhook, data, key)
        if value is not _MISSING:
            return source_name, value
    return None, _MISSING


def _debug(header: str, details: Mapping[str, Any]) -> None:
    if LOGGER.isEnabledFor(logging.DEBUG):
        LOGGER.debug(build_debug_log_message(header, details))


def _passes_4k_gate(is_4k: Optional[bool], webhook: Webhook) -> bool:
    if is_4k is None:
        return True
    standard = webhook.media.standard_pending
    uhd = webhook.media.uhd_pending
    if is_4k:
        return uhd and not standard
    return standard and not uhd


def _season_limit(condition: Condition) -> Optional[float]:
    raw = condition.value if isinstance(condition, PlainCondition) else None
    if raw is None or isinstance(raw, bool):
        return None
    try:
        limit = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(limit):
        return None
    return limit


def _check_max_seasons(webhook: Webhook, condition: Condition) -> bool:
    seasons = get_post_data(webhook).seasons
    if seasons is None:
        _debug("max_seasons failed: no requested seasons on webhook", {"Condition": condition})
        return False
    limit = _season_limit(condition)
    if limit is None:
        _debug("max_seasons failed: limit is not numeric", {"Condition": condition})
        return False
    passed = len(seasons) <= limit
    _debug(
        "max_seasons check:",
        {"Requested": seasons, "Limit": limit, "Result": passed},
    )
    return passed


def _check_condition(key: str, condition: Condition, webhook: Webhook, data: Mapping[str, Any]) -> bool:
    if key == "max_seasons":
        return _check_max_seasons(webhook, condition)

    if key == "keywords":
        keywords = data.get("keywords")
        if keywords is None:
            _debug("keywords failed: no keywords in metadata", {"Condition": condition})
            return False
        passed = match_keywords(keywords, condition)
        _debug("keywords check:", {"Keywords": keywords, "Condition": condition, "Result": passed})
        return passed

    if key == "contentRatings":
        ratings = data.get("contentRatings")
        passed = match_content_ratings(ratings, condition)
        results = ratings.get("results") if isinstance(ratings, Mapping) else None
        _debug("contentRatings check:", {"Ratings": results, "Condition": condition, "Result": passed})
        return passed

    source, value = resolve_field(webhook, data, key)
    if source is None:
        _debug("Condition failed: field not found", {"Field": key})
        return False
    passed = match_condition(value, condition)
    _debug(
        "Condition check:",
        {"Field": key, "Source": source, "Value": value, "Condition": condition, "Result": passed},
    )
    return passed


def filter_matches(filter_: Filter, webhook: Webhook, data: Mapping[str, Any]) -> bool:
    if filter_.media_type != webhook.media.media_type:
        return False
    if not _passes_4k_gate(filter_.is_4k, webhook):
        _debug(
            "Skipping filter on 4k status:",
            {"is_4k": filter_.is_4k, "Status": webhook.media.status, "Status 4k": webhook.media.status4k},
        )
        return False
    for key, condition in filter_.conditions.items():
        if not _check_condition(key, condition, webhook, data):
            return False
    return True


def find_instances(
    webhook: WebhookLike,
    data: Mapping[str, Any],
    filters: Sequence[FilterLike],
) -> Optional[ApplyTarget]:
    """Return the ``apply`` payload of the first matching filter, or ``None``."""
    resolved_webhook = webhook if isinstance(webhook, Webhook) else Webhook.from_payload(webhook)
    data = data or {}

    for index, entry in enumerate(filters):
        filter_ = entry if isinstance(entry, Filter) else Filter.from_dict(entry)
        if filter_matches(filter_, resolved_webhook, data):
            LOGGER.debug("Matched %s -> %s", filter_.label(index), filter_.apply)
            return filter_.apply

    LOGGER.debug("No filter matched %s request", resolved_webhook.media.media_type)
    return None
