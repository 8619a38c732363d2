"""Shared fixtures: fake Redis, settings and a scripted Netatmo HTTP session."""

from __future__ import annotations

import itertools
import sys
from pathlib import Path
from unittest.mock import MagicMock

import fakeredis
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.driftguard.event_log import EventLog
from core.driftguard.settings import DriftGuardSettings


class FakeResponse:
    """Just enough of requests.Response for the clients."""

    def __init__(self, status_code: int = 200, payload=None, text: str | None = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else str(payload)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class StaticTokens:
    """Token provider that never touches the network."""

    def __init__(self, token: str = "access-token"):
        self.token = token
        self.calls = 0

    def get_access_token(self) -> str:
        self.calls += 1
        return self.token


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def clock():
    counter = itertools.count(1_700_000_000_000)
    return lambda: next(counter)


@pytest.fixture
def event_log(redis_client, clock) -> EventLog:
    return EventLog(redis_client, clock=clock)


@pytest.fixture
def settings() -> DriftGuardSettings:
    return DriftGuardSettings(
        netatmo_client_id="client-id",
        netatmo_client_secret="client-secret",
        netatmo_refresh_token="bootstrap-refresh",
        redis_url="redis://localhost:6379/0",
        qstash_token="qstash-token",
        qstash_current_signing_key="current-key",
        qstash_next_signing_key="next-key",
        check_secret="cron-secret",
        base_url="https://driftguard.example.com",
    )


@pytest.fixture
def session() -> MagicMock:
    return MagicMock()


@pytest.fixture
def tokens() -> StaticTokens:
    return StaticTokens()
