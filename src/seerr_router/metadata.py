from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import requests
from requests import Response

from .config import OverseerrSettings

LOGGER = logging.getLogger(__name__)

MAX_FETCH_RETRIES = 3
INITIAL_BACKOFF = 1.0
MAX_BACKOFF = 8.0
MEDIA_ENDPOINTS = {"movie": "movie", "tv": "tv"}


class MetadataFetchError(RuntimeError):
    pass


class OverseerrClient:
    """Fetches media details for a request from the Overseerr API."""

    def __init__(self, settings: OverseerrSettings) -> None:
        self.settings = settings

    def enabled(self) -> bool:
        return bool(self.settings.url)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.settings.api_key:
            headers["X-Api-Key"] = self.settings.api_key
        return headers

    def media_url(self, media_type: str, tmdb_id: str) -> str:
        endpoint = MEDIA_ENDPOINTS.get(media_type)
        if endpoint is None:
            raise MetadataFetchError(f"Unsupported media type '{media_type}'")
        return f"{self.settings.url}/api/v1/{endpoint}/{tmdb_id}"

    def _get(self, url: str) -> Response:
        """GET ``url``, retrying connection problems with doubling delays."""
        delay = INITIAL_BACKOFF
        attempt = 1
        while True:
            try:
                return requests.get(url, headers=self._headers(), timeout=self.settings.timeout)
            except requests.RequestException as exc:
                if attempt >= MAX_FETCH_RETRIES:
                    raise MetadataFetchError(
                        f"Unable to fetch metadata from {url} after {attempt} attempts"
                    ) from exc
                LOGGER.debug("Overseerr request %s/%s to %s failed: %s", attempt, MAX_FETCH_RETRIES, url, exc)
                time.sleep(delay)
                delay = min(delay * 2, MAX_BACKOFF)
                attempt += 1

    def fetch_media_details(self, media_type: str, tmdb_id: Optional[str]) -> Dict[str, Any]:
        if not self.enabled():
            raise MetadataFetchError("Overseerr URL is not configured")
        if not tmdb_id:
            raise MetadataFetchError("Webhook does not carry a TMDB id")

        url = self.media_url(media_type, tmdb_id)
        LOGGER.info("Fetching %s metadata from %s", media_type, url)
        response = self._get(url)

        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            LOGGER.warning("Overseerr rejected %s: %s", url, exc)
            raise MetadataFetchError(f"Overseerr responded with {response.status_code} for {url}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise MetadataFetchError(f"Overseerr returned invalid JSON for {url}") from exc

        if not isinstance(payload, dict):
            raise MetadataFetchError(f"Expected a JSON object from {url}, got {type(payload).__name__}")
        return payload
