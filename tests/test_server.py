from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from seerr_router.config import build_config
from seerr_router.router import RouteResult
from seerr_router.server import create_app


class StubRouter:
    def __init__(self, result: RouteResult) -> None:
        self.config = build_config(
            {
                "settings": {"dry_run": True},
                "instances": {
                    "sonarr": {
                        "type": "sonarr",
                        "url": "http://sonarr:8989",
                        "api_key": "key",
                        "root_folder": "/tv",
                        "quality_profile_id": 1,
                    },
                    "radarr": {
                        "type": "radarr",
                        "url": "http://radarr:7878",
                        "api_key": "key",
                        "root_folder": "/movies",
                        "quality_profile_id": 1,
                    },
                },
                "filters": [{"media_type": "movie", "apply": "radarr"}],
            }
        )
        self.result = result
        self.payloads = []

    def handle(self, payload):
        self.payloads.append(payload)
        return self.result


def _client(result: RouteResult) -> tuple:
    router = StubRouter(result)
    return TestClient(create_app(router)), router


def test_webhook_returns_route_result(movie_payload) -> None:
    client, router = _client(RouteResult(status="routed", message="Dispatched", instances="radarr"))

    response = client.post("/webhook", json=movie_payload)

    assert response.status_code == 200
    assert response.json() == {"status": "routed", "message": "Dispatched", "instances": "radarr", "outcomes": []}
    assert router.payloads == [movie_payload]


@pytest.mark.parametrize(("status", "code"), [("invalid", 400), ("error", 502), ("unmatched", 200), ("test", 200)])
def test_webhook_status_codes(status, code) -> None:
    client, _ = _client(RouteResult(status=status))
    assert client.post("/webhook", json={}).status_code == code


def test_webhook_rejects_malformed_json() -> None:
    client, router = _client(RouteResult(status="routed"))

    response = client.post("/webhook", content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["status"] == "invalid"
    assert router.payloads == []


def test_health_reports_configuration() -> None:
    client, _ = _client(RouteResult(status="test"))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "filters": 1,
        "instances": ["radarr", "sonarr"],
        "dry_run": True,
    }
