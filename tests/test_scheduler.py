import base64
import hashlib
import json
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import jwt
import pytest
from qstash import Receiver

from core.driftguard.models import ResetPayload, ThermostatHandle
from core.driftguard.scheduler import ResetScheduler

BODY = json.dumps({"homeId": "home-1", "roomId": "room-1", "originalSetpoint": 19.0})


def sign(body: str, key: str, url: str = "https://driftguard.example.com/reset") -> str:
    """Mint a QStash-style signature JWT."""
    now = int(time.time())
    digest = base64.urlsafe_b64encode(hashlib.sha256(body.encode()).digest()).decode().rstrip("=")
    claims = {
        "iss": "Upstash",
        "sub": url,
        "exp": now + 300,
        "nbf": now - 5,
        "iat": now,
        "jti": "jwt-1",
        "body": digest,
    }
    return jwt.encode(claims, key, algorithm="HS256")


@pytest.fixture
def scheduler():
    receiver = Receiver(current_signing_key="current-key", next_signing_key="next-key")
    return ResetScheduler(MagicMock(), receiver, "https://driftguard.example.com/")


def test_schedule_reset_publishes_delayed_json(scheduler):
    scheduler.client.message.publish_json.return_value = SimpleNamespace(message_id="msg-123")
    payload = ResetPayload(ThermostatHandle("home-1", "room-1"), 19.0, "Flat", "Living room")

    message_id = scheduler.schedule_reset(payload, delay_seconds=45)

    assert message_id == "msg-123"
    scheduler.client.message.publish_json.assert_called_once_with(
        url="https://driftguard.example.com/reset",
        body={
            "homeId": "home-1",
            "roomId": "room-1",
            "originalSetpoint": 19.0,
            "homeName": "Flat",
            "roomName": "Living room",
        },
        delay="45s",
    )


def test_signature_from_current_key_is_accepted(scheduler):
    assert scheduler.verify(sign(BODY, "current-key"), BODY) is True


def test_signature_from_next_key_is_accepted(scheduler):
    assert scheduler.verify(sign(BODY, "next-key"), BODY) is True


def test_signature_from_unknown_key_is_rejected(scheduler):
    assert scheduler.verify(sign(BODY, "someone-else"), BODY) is False


def test_signature_over_different_body_is_rejected(scheduler):
    tampered = BODY.replace("19.0", "30.0")
    assert scheduler.verify(sign(BODY, "current-key"), tampered) is False


@pytest.mark.parametrize("signature", [None, "", "not-a-jwt"])
def test_missing_or_garbage_signature_is_rejected(scheduler, signature):
    assert scheduler.verify(signature, BODY) is False
