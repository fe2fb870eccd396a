from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import Filter, apply_targets
from .utils import load_yaml_file

INSTANCE_TYPES = ("radarr", "sonarr")
MEDIA_TYPES = ("movie", "tv")


@dataclass(slots=True)
class OverseerrSettings:
    url: str = ""
    api_key: Optional[str] = None
    timeout: int = 30


@dataclass(slots=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8481
    dry_run: bool = False
    request_timeout: int = 30
    overseerr: OverseerrSettings = field(default_factory=OverseerrSettings)


@dataclass(slots=True)
class InstanceConfig:
    name: str
    type: str  # radarr | sonarr
    url: str
    api_key: str
    root_folder: str
    quality_profile_id: int
    language_profile_id: Optional[int] = None
    tags: List[int] = field(default_factory=list)
    search: bool = True
    minimum_availability: str = "released"
    season_folder: bool = True

    @property
    def media_type(self) -> str:
        return "movie" if self.type == "radarr" else "tv"


@dataclass(slots=True)
class AppConfig:
    settings: Settings
    instances: Dict[str, InstanceConfig]
    filters: List[Filter]


def _optional_int(value: Any, *, field_name: str) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:  # noqa: PERF203
        raise ValueError(f"'{field_name}' must be an integer") from exc


def _build_overseerr_settings(data: Dict[str, Any]) -> OverseerrSettings:
    if not isinstance(data, dict):
        raise ValueError("'settings.overseerr' must be provided as a mapping when specified")
    api_key = data.get("api_key")
    if isinstance(api_key, str):
        api_key = api_key.strip() or None
    return OverseerrSettings(
        url=str(data.get("url", "")).strip().rstrip("/"),
        api_key=api_key,
        timeout=_optional_int(data.get("timeout", 30), field_name="settings.overseerr.timeout") or 30,
    )


def _build_settings(data: Dict[str, Any]) -> Settings:
    if not isinstance(data, dict):
        raise ValueError("'settings' must be provided as a mapping when specified")
    return Settings(
        host=str(data.get("host", "0.0.0.0")),
        port=_optional_int(data.get("port", 8481), field_name="settings.port") or 8481,
        dry_run=bool(data.get("dry_run", False)),
        request_timeout=_optional_int(data.get("request_timeout", 30), field_name="settings.request_timeout") or 30,
        overseerr=_build_overseerr_settings(data.get("overseerr", {}) or {}),
    )


def _build_instance_config(name: str, data: Dict[str, Any]) -> InstanceConfig:
    if not isinstance(data, dict):
        raise ValueError(f"Instance '{name}' must be a mapping")

    instance_type = str(data.get("type", "")).strip().lower()
    if instance_type not in INSTANCE_TYPES:
        raise ValueError(f"Instance '{name}' has unsupported type '{data.get('type')}'")

    for required in ("url", "api_key", "root_folder", "quality_profile_id"):
        if data.get(required) in (None, ""):
            raise ValueError(f"Instance '{name}' is missing required '{required}'")

    tags_raw = data.get("tags", []) or []
    if not isinstance(tags_raw, list):
        raise ValueError(f"'instances.{name}.tags' must be a list of tag ids")

    return InstanceConfig(
        name=name,
        type=instance_type,
        url=str(data["url"]).strip().rstrip("/"),
        api_key=str(data["api_key"]),
        root_folder=str(data["root_folder"]),
        quality_profile_id=int(data["quality_profile_id"]),
        language_profile_id=_optional_int(
            data.get("language_profile_id"), field_name=f"instances.{name}.language_profile_id"
        ),
        tags=[int(tag) for tag in tags_raw],
        search=bool(data.get("search", True)),
        minimum_availability=str(data.get("minimum_availability", "released")),
        season_folder=bool(data.get("season_folder", True)),
    )


def _build_filter(index: int, data: Any) -> Filter:
    if not isinstance(data, dict):
        raise ValueError(f"'filters[{index}]' must be a mapping")
    if not data.get("media_type"):
        raise ValueError(f"'filters[{index}]' is missing required 'media_type'")
    if "apply" not in data or data["apply"] in (None, "", []):
        raise ValueError(f"'filters[{index}]' is missing required 'apply'")

    conditions = data.get("conditions") or {}
    if not isinstance(conditions, dict):
        raise ValueError(f"'filters[{index}].conditions' must be a mapping of field -> condition")

    is_4k = data.get("is_4k")
    if is_4k is not None and not isinstance(is_4k, bool):
        raise ValueError(f"'filters[{index}].is_4k' must be true or false when provided")

    return Filter.from_dict(data)


def build_config(data: Dict[str, Any]) -> AppConfig:
    settings = _build_settings(data.get("settings", {}) or {})

    instances_raw = data.get("instances", {}) or {}
    if not isinstance(instances_raw, dict):
        raise ValueError("'instances' must be defined as a mapping of name -> instance")
    instances = {
        str(name): _build_instance_config(str(name), entry) for name, entry in instances_raw.items()
    }

    filters_raw = data.get("filters", []) or []
    if not isinstance(filters_raw, list):
        raise ValueError("'filters' must be provided as a list")
    filters = [_build_filter(index, entry) for index, entry in enumerate(filters_raw)]

    for index, filter_ in enumerate(filters):
        for target in apply_targets(filter_.apply):
            if target not in instances:
                raise ValueError(f"'filters[{index}].apply' references unknown instance '{target}'")

    return AppConfig(settings=settings, instances=instances, filters=filters)


def load_config(path: Path) -> AppConfig:
    return build_config(load_yaml_file(path))
