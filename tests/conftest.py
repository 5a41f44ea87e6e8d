"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from typing import AsyncIterator

import fakeredis
import pytest
import pytest_asyncio

from nudgepush.core.config import Settings, get_settings
from nudgepush.models.push import PushMessage, TokenResult
from nudgepush.notification.dispatcher import PushDispatcher
from nudgepush.notification.transport import PushTransport

# 12:00 in Asia/Seoul
NOW = datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc)


class FakeTransport(PushTransport):
    """Records batches and fails the tokens it is told to fail."""

    def __init__(self):
        self.messages: list[PushMessage] = []
        self.fail_codes: dict[str, str] = {}
        self.error: Exception | None = None

    async def send_each(self, message: PushMessage) -> list[TokenResult]:
        self.messages.append(message)
        if self.error:
            raise self.error
        return [
            TokenResult(
                token=token,
                success=token not in self.fail_codes,
                error_code=self.fail_codes.get(token),
            )
            for token in message.tokens
        ]


@pytest.fixture
def settings(monkeypatch) -> Settings:
    """Cached settings with test-only overrides applied through monkeypatch."""
    settings = get_settings()
    monkeypatch.setattr(settings, "timezone", "Asia/Seoul")
    return settings


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest_asyncio.fixture
async def redis(redis_server) -> AsyncIterator[fakeredis.FakeAsyncRedis]:
    """In-memory Redis isolated per test."""
    client = fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def dispatcher(transport) -> PushDispatcher:
    return PushDispatcher(transport)


@pytest.fixture
def now() -> datetime:
    return NOW
