"""Tests for the HTTP API."""

import fakeredis
import pytest
from fastapi.testclient import TestClient

from nudgepush.api import deps
from nudgepush.api.app import create_app
from nudgepush.models.nudge import NudgeEvent
from nudgepush.storage.nudge_store import NudgeStore
from nudgepush.storage.settings_store import SettingsStore
from nudgepush.storage.stats_store import StatsStore
from nudgepush.storage.token_registry import TokenRegistry
from nudgepush.storage.user_store import UserStore


class FakePublisher:
    def __init__(self):
        self.published: list[NudgeEvent] = []

    async def publish(self, event: NudgeEvent) -> None:
        self.published.append(event)


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture
def client(redis_server, publisher, settings) -> TestClient:
    def fake_redis() -> fakeredis.FakeAsyncRedis:
        # Created per request so the client binds to the TestClient event loop
        return fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)

    app = create_app()
    app.dependency_overrides[deps.get_nudge_store] = lambda: NudgeStore(fake_redis())
    app.dependency_overrides[deps.get_settings_store] = lambda: SettingsStore(fake_redis())
    app.dependency_overrides[deps.get_token_registry] = lambda: TokenRegistry(fake_redis())
    app.dependency_overrides[deps.get_user_store] = lambda: UserStore(fake_redis())
    app.dependency_overrides[deps.get_stats_store] = lambda: StatsStore(fake_redis())
    app.dependency_overrides[deps.get_publisher] = lambda: publisher
    return TestClient(app)


def test_create_nudge_stores_and_publishes(client, publisher) -> None:
    response = client.post(
        "/api/v1/nudges",
        json={"from_user_id": "alice", "from_user_name": "Alice", "to_user_id": "bob"},
    )

    assert response.status_code == 202
    nudge_id = response.json()["data"]["nudge_id"]
    assert publisher.published[0].id == nudge_id

    record = client.get(f"/api/v1/nudges/{nudge_id}").json()["data"]
    assert record["from_user_id"] == "alice"
    assert record["stage"] == "received"
    assert record["delivered"] is None


def test_cannot_nudge_yourself(client) -> None:
    response = client.post("/api/v1/nudges", json={"from_user_id": "alice", "to_user_id": "alice"})

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot nudge yourself"


def test_missing_nudge_returns_error_envelope(client) -> None:
    response = client.get("/api/v1/nudges/missing")

    assert response.status_code == 404
    payload = response.json()
    assert payload["code"] == 404
    assert payload["message"] == "Nudge missing not found"
    assert payload["data"] is None


def test_validation_error_response_format(client) -> None:
    response = client.post("/api/v1/nudges", json={"from_user_id": ""})

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == 422
    assert payload["message"] == "Validation error"
    assert payload["data"]


def test_token_registration_roundtrip(client) -> None:
    client.put("/api/v1/users/bob/tokens", json={"token": "t1"})
    response = client.put("/api/v1/users/bob/tokens", json={"token": "t2"})
    assert response.json()["data"]["tokens"] == ["t1", "t2"]

    response = client.request("DELETE", "/api/v1/users/bob/tokens", json={"token": "t1"})
    assert response.json()["data"]["tokens"] == ["t2"]

    response = client.request("DELETE", "/api/v1/users/bob/tokens", json={"token": "t1"})
    assert response.status_code == 404


def test_settings_default_and_partial_update(client) -> None:
    defaults = client.get("/api/v1/users/bob/settings").json()["data"]
    assert defaults["enabled"] is True
    assert defaults["nudge_enabled"] is True

    updated = client.patch("/api/v1/users/bob/settings", json={"nudge_enabled": False}).json()["data"]
    assert updated["nudge_enabled"] is False
    assert updated["enabled"] is True

    response = client.patch("/api/v1/users/bob/settings", json={"morning_manna_time": "7am"})
    assert response.status_code == 422


def test_nudge_stats_for_sender_without_activity(client) -> None:
    data = client.get("/api/v1/users/alice/nudge-stats", params={"day": "2026-03-10"}).json()["data"]

    assert data["role"] == "standard"
    assert data["daily_limit"] == 3
    assert data["remaining"] == 3
    assert data["stats"]["nudges_sent"] == 0


def test_health(client) -> None:
    assert client.get("/health").json()["status"] == "ok"
