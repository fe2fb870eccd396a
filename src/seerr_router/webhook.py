from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

LOGGER = logging.getLogger(__name__)

REQUESTED_SEASONS = "Requested Seasons"
PENDING = "PENDING"
EPISODIC_MEDIA_TYPES = frozenset({"tv"})


def is_object(value: Any) -> bool:
    return isinstance(value, Mapping)


def is_object_array(value: Any) -> bool:
    return isinstance(value, list) and any(is_object(item) for item in value)


def is_webhook(value: Any) -> bool:
    """Return True when ``value`` has the media/request records of a webhook."""
    return is_object(value) and is_object(value.get("media")) and is_object(value.get("request"))


@dataclass(frozen=True, slots=True)
class ExtraField:
    name: str
    value: str


@dataclass(frozen=True, slots=True)
class WebhookMedia:
    media_type: str
    tmdb_id: Optional[str] = None
    tvdb_id: Optional[str] = None
    status: Optional[str] = None
    status4k: Optional[str] = None

    @property
    def standard_pending(self) -> bool:
        return (self.status or "").upper() == PENDING

    @property
    def uhd_pending(self) -> bool:
        return (self.status4k or "").upper() == PENDING


@dataclass(frozen=True, slots=True)
class Webhook:
    media: WebhookMedia
    request: Dict[str, Any]
    extra: Optional[List[ExtraField]] = None
    notification_type: Optional[str] = None
    subject: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Webhook":
        """Build a webhook from a payload that already passed :func:`is_webhook`."""
        media = payload["media"]
        extra_raw = payload.get("extra")
        extra: Optional[List[ExtraField]] = None
        if isinstance(extra_raw, list):
            extra = [
                ExtraField(name=str(item.get("name", "")), value=str(item.get("value", "")))
                for item in extra_raw
                if is_object(item)
            ]
        return cls(
            media=WebhookMedia(
                media_type=str(media.get("media_type", "")),
                tmdb_id=_optional_text(media.get("tmdbId")),
                tvdb_id=_optional_text(media.get("tvdbId")),
                status=_optional_text(media.get("status")),
                status4k=_optional_text(media.get("status4k")),
            ),
            request=dict(payload["request"]),
            extra=extra,
            notification_type=_optional_text(payload.get("notification_type")),
            subject=_optional_text(payload.get("subject")),
            raw=dict(payload),
        )

    def extra_value(self, name: str) -> Optional[str]:
        for entry in self.extra or []:
            if entry.name == name:
                return entry.value
        return None

    @property
    def request_id(self) -> Optional[str]:
        return _optional_text(self.request.get("request_id"))


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True, slots=True)
class PostData:
    media_type: str
    seasons: Optional[List[int]] = None


def parse_seasons(value: str) -> List[int]:
    """Parse a comma separated season list, dropping pieces that are not integers."""
    seasons: List[int] = []
    for piece in value.split(","):
        token = piece.strip()
        try:
            seasons.append(int(token))
        except ValueError:
            LOGGER.debug("Ignoring non-numeric season token %r", token)
    return seasons


def get_post_data(webhook: Webhook) -> PostData:
    media_type = webhook.media.media_type
    if media_type not in EPISODIC_MEDIA_TYPES:
        return PostData(media_type=media_type)

    requested = webhook.extra_value(REQUESTED_SEASONS)
    if requested is None:
        return PostData(media_type=media_type)
    return PostData(media_type=media_type, seasons=parse_seasons(requested))
