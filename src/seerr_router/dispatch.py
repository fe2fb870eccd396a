from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import requests
from requests import Response
from requests.exceptions import RequestException

from .config import InstanceConfig
from .models import ApplyTarget, apply_targets
from .webhook import PostData, Webhook

LOGGER = logging.getLogger(__name__)

_ALREADY_EXISTS_MARKERS = ("already been added", "already exists", "alreadyexists")


class DispatchError(RuntimeError):
    pass


@dataclass(slots=True)
class DispatchOutcome:
    instance: str
    success: bool
    already_exists: bool = False
    dry_run: bool = False
    message: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "instance": self.instance,
            "success": self.success,
            "already_exists": self.already_exists,
            "dry_run": self.dry_run,
            "message": self.message,
        }


def _as_id(value: Any, label: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise DispatchError(f"Invalid {label} '{value}'") from exc


def _title(data: Mapping[str, Any], webhook: Webhook) -> str:
    for key in ("title", "name", "originalTitle", "originalName"):
        value = data.get(key)
        if value:
            return str(value)
    return webhook.subject or ""


def build_radarr_payload(instance: InstanceConfig, webhook: Webhook, data: Mapping[str, Any]) -> Dict[str, Any]:
    if not webhook.media.tmdb_id:
        raise DispatchError("Movie requests need a TMDB id")
    return {
        "tmdbId": _as_id(webhook.media.tmdb_id, "TMDB id"),
        "title": _title(data, webhook),
        "qualityProfileId": instance.quality_profile_id,
        "rootFolderPath": instance.root_folder,
        "minimumAvailability": instance.minimum_availability,
        "monitored": True,
        "tags": list(instance.tags),
        "addOptions": {"searchForMovie": instance.search},
    }


def build_sonarr_payload(
    instance: InstanceConfig,
    webhook: Webhook,
    data: Mapping[str, Any],
    post_data: PostData,
) -> Dict[str, Any]:
    tvdb_id = webhook.media.tvdb_id or (data.get("externalIds") or {}).get("tvdbId")
    if not tvdb_id:
        raise DispatchError("Series requests need a TVDB id")

    requested = set(post_data.seasons or [])
    seasons: List[Dict[str, Any]] = []
    for season in data.get("seasons") or []:
        if not isinstance(season, Mapping) or season.get("seasonNumber") is None:
            continue
        number = int(season["seasonNumber"])
        monitored = number in requested if requested else number > 0
        seasons.append({"seasonNumber": number, "monitored": monitored})
    if not seasons:
        seasons = [{"seasonNumber": number, "monitored": True} for number in sorted(requested)]

    payload: Dict[str, Any] = {
        "tvdbId": _as_id(tvdb_id, "TVDB id"),
        "title": _title(data, webhook),
        "qualityProfileId": instance.quality_profile_id,
        "rootFolderPath": instance.root_folder,
        "seasonFolder": instance.season_folder,
        "monitored": True,
        "seasons": seasons,
        "tags": list(instance.tags),
        "addOptions": {"searchForMissingEpisodes": instance.search},
    }
    if instance.language_profile_id is not None:
        payload["languageProfileId"] = instance.language_profile_id
    return payload


def _excerpt(response: Response, limit: int = 200) -> str:
    text = response.text or ""
    return text if len(text) <= limit else text[: limit - 1] + "…"


class ArrDispatcher:
    """Adds routed media to the Radarr/Sonarr instances named by a filter."""

    def __init__(
        self,
        instances: Mapping[str, InstanceConfig],
        *,
        timeout: int = 30,
        dry_run: bool = False,
    ) -> None:
        self.instances = dict(instances)
        self.timeout = timeout
        self.dry_run = dry_run

    def _endpoint(self, instance: InstanceConfig) -> str:
        resource = "movie" if instance.type == "radarr" else "series"
        return f"{instance.url}/api/v3/{resource}"

    def _build_payload(
        self,
        instance: InstanceConfig,
        webhook: Webhook,
        data: Mapping[str, Any],
        post_data: PostData,
    ) -> Dict[str, Any]:
        if instance.type == "radarr":
            return build_radarr_payload(instance, webhook, data)
        return build_sonarr_payload(instance, webhook, data, post_data)

    def dispatch(
        self,
        apply: ApplyTarget,
        webhook: Webhook,
        data: Mapping[str, Any],
        post_data: PostData,
    ) -> List[DispatchOutcome]:
        outcomes: List[DispatchOutcome] = []
        for name in apply_targets(apply):
            instance = self.instances.get(name)
            if instance is None:
                LOGGER.error("Filter routes to unknown instance '%s'", name)
                outcomes.append(DispatchOutcome(instance=name, success=False, message="unknown instance"))
                continue
            try:
                outcomes.append(self._send(instance, webhook, data, post_data))
            except DispatchError as exc:
                LOGGER.error("Failed to dispatch to %s: %s", name, exc)
                outcomes.append(DispatchOutcome(instance=name, success=False, message=str(exc)))
        return outcomes

    def _send(
        self,
        instance: InstanceConfig,
        webhook: Webhook,
        data: Mapping[str, Any],
        post_data: PostData,
    ) -> DispatchOutcome:
        payload = self._build_payload(instance, webhook, data, post_data)
        url = self._endpoint(instance)

        if self.dry_run:
            LOGGER.info("[dry-run] Would add '%s' to %s", payload.get("title"), instance.name)
            return DispatchOutcome(instance=instance.name, success=True, dry_run=True, payload=payload)

        try:
            response = requests.post(
                url,
                json=payload,
                headers={"X-Api-Key": instance.api_key},
                timeout=self.timeout,
            )
        except RequestException as exc:
            raise DispatchError(f"Request to {url} failed: {exc}") from exc

        if response.status_code == 400 and any(
            marker in (response.text or "").lower() for marker in _ALREADY_EXISTS_MARKERS
        ):
            LOGGER.info("'%s' already exists on %s", payload.get("title"), instance.name)
            return DispatchOutcome(
                instance=instance.name,
                success=True,
                already_exists=True,
                message="already exists",
                payload=payload,
            )

        if response.status_code >= 400:
            raise DispatchError(f"{instance.name} responded with {response.status_code}: {_excerpt(response)}")

        LOGGER.info("Added '%s' to %s", payload.get("title"), instance.name)
        return DispatchOutcome(instance=instance.name, success=True, payload=payload)
