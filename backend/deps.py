"""
Per-request collaborator factories.

Every invocation builds its own clients from settings; nothing is cached at
module level. Tests swap these out with app.dependency_overrides.
"""

import hmac

import redis
import requests
from fastapi import Depends, Header

from core.driftguard.credentials import TokenCache
from core.driftguard.event_log import EventLog
from core.driftguard.exceptions import AuthConfigError, AuthRejected
from core.driftguard.netatmo_client import NetatmoClient
from core.driftguard.scheduler import ResetScheduler
from core.driftguard.settings import DriftGuardSettings, load_settings


def get_settings() -> DriftGuardSettings:
    return load_settings()


def get_redis(settings: DriftGuardSettings = Depends(get_settings)) -> redis.Redis:
    settings.require("redis_url")
    return redis.from_url(settings.redis_url, decode_responses=True)


def get_netatmo(
    settings: DriftGuardSettings = Depends(get_settings),
    redis_client: redis.Redis = Depends(get_redis),
) -> NetatmoClient:
    settings.require("netatmo_client_id", "netatmo_client_secret", "netatmo_refresh_token")
    session = requests.Session()
    token_cache = TokenCache(
        redis_client,
        settings.netatmo_client_id,
        settings.netatmo_client_secret,
        settings.netatmo_refresh_token,
        session=session,
        timeout=settings.http_timeout,
    )
    return NetatmoClient(
        token_cache,
        session=session,
        timeout=settings.http_timeout,
        max_mode_expiry=settings.max_mode_expiry_seconds,
    )


def get_event_log(
    settings: DriftGuardSettings = Depends(get_settings),
    redis_client: redis.Redis = Depends(get_redis),
) -> EventLog:
    return EventLog(redis_client, max_events=settings.max_events)


def get_scheduler(settings: DriftGuardSettings = Depends(get_settings)) -> ResetScheduler:
    settings.require("qstash_token", "qstash_current_signing_key", "qstash_next_signing_key", "base_url")
    return ResetScheduler.from_keys(
        settings.qstash_token,
        settings.qstash_current_signing_key,
        settings.qstash_next_signing_key,
        settings.base_url,
    )


def require_check_secret(
    authorization: str | None = Header(default=None),
    settings: DriftGuardSettings = Depends(get_settings),
) -> None:
    """Bearer check against CRON_SECRET.

    Raises:
        AuthConfigError: Secret not provisioned on the server
        AuthRejected: Missing or wrong bearer token
    """
    if not settings.check_secret:
        raise AuthConfigError("CRON_SECRET environment variable not configured")

    expected = f"Bearer {settings.check_secret}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise AuthRejected("Invalid or missing cron secret")
