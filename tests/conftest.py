from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest


def make_payload(
    media_type: str = "movie",
    *,
    status: str = "PENDING",
    status4k: str = "UNKNOWN",
    tmdb_id: Optional[str] = "98",
    tvdb_id: Optional[str] = None,
    request: Optional[Dict[str, Any]] = None,
    extra: Optional[List[Dict[str, str]]] = None,
    notification_type: str = "MEDIA_PENDING",
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "notification_type": notification_type,
        "subject": "Gladiator (2000)",
        "media": {
            "media_type": media_type,
            "tmdbId": tmdb_id,
            "tvdbId": tvdb_id,
            "status": status,
            "status4k": status4k,
        },
        "request": request if request is not None else {"request_id": "12", "requestedBy_username": "alice"},
    }
    if extra is not None:
        payload["extra"] = extra
    return payload


@pytest.fixture
def movie_payload() -> Dict[str, Any]:
    return make_payload("movie")


@pytest.fixture
def tv_payload() -> Dict[str, Any]:
    return make_payload(
        "tv",
        tmdb_id="1399",
        tvdb_id="121361",
        extra=[{"name": "Requested Seasons", "value": "1, 2"}],
    )


@pytest.fixture
def movie_data() -> Dict[str, Any]:
    return {
        "title": "Gladiator",
        "originalLanguage": "en",
        "genres": [{"id": 28, "name": "Action"}, {"id": 18, "name": "Drama"}],
        "keywords": [{"id": 1, "name": "epic"}, {"id": 2, "name": "gladiator"}],
        "releases": {"results": [{"iso_3166_1": "US", "release_dates": [{"certification": "R"}]}]},
    }


@pytest.fixture
def tv_data() -> Dict[str, Any]:
    return {
        "name": "Game of Thrones",
        "originalLanguage": "en",
        "genres": [{"id": 10765, "name": "Sci-Fi & Fantasy"}, {"id": 18, "name": "Drama"}],
        "keywords": [{"id": 3, "name": "dragon"}],
        "contentRatings": {"results": [{"iso_3166_1": "US", "rating": "TV-MA"}]},
        "externalIds": {"tvdbId": 121361},
        "seasons": [{"seasonNumber": 0}, {"seasonNumber": 1}, {"seasonNumber": 2}, {"seasonNumber": 3}],
    }


@pytest.fixture
def payload_factory():
    return make_payload
