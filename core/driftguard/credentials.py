"""
Netatmo Credential Cache

Cache-aside access token backed by Redis. Netatmo may rotate the refresh token
on any refresh, so the newest one stored in Redis always wins over the
bootstrap token from the environment.
"""

import logging

import requests

from .exceptions import VendorAPIError
from .models import Credential, TokenResponse, decode

logger = logging.getLogger(__name__)

NETATMO_TOKEN_URL = "https://api.netatmo.com/oauth2/token"
ACCESS_TOKEN_KEY = "netatmo:access_token"
REFRESH_TOKEN_KEY = "netatmo:refresh_token"
ACCESS_TOKEN_TTL = 10000  # ~2.7 hours, tokens expire in 3 hours
EXPIRY_MARGIN = 300
MIN_ACCESS_TOKEN_TTL = 60


class TokenCache:
    """Access/refresh token lifecycle against the Netatmo OAuth endpoint."""

    def __init__(
        self,
        redis_client,
        client_id: str,
        client_secret: str,
        bootstrap_refresh_token: str,
        session: requests.Session | None = None,
        timeout: float = 10.0,
    ):
        """Initialize token cache.

        Args:
            redis_client: redis.Redis (decode_responses=True) shared across invocations
            client_id: Netatmo app client id
            client_secret: Netatmo app client secret
            bootstrap_refresh_token: Refresh token from the initial OAuth consent
            session: Optional requests session
            timeout: HTTP timeout in seconds
        """
        self.redis = redis_client
        self.client_id = client_id
        self.client_secret = client_secret
        self.bootstrap_refresh_token = bootstrap_refresh_token
        self.session = session or requests.Session()
        self.timeout = timeout

    def get_refresh_token(self) -> str:
        """Prefer a rotated token from Redis, fall back to the bootstrap token."""
        cached = self.redis.get(REFRESH_TOKEN_KEY)
        if cached:
            return cached
        return self.bootstrap_refresh_token

    def get_access_token(self) -> str:
        """Get a valid access token, either from cache or by refreshing.

        Raises:
            VendorAPIError: If the OAuth endpoint is unreachable or rejects the refresh
        """
        cached = self.redis.get(ACCESS_TOKEN_KEY)
        if cached:
            logger.debug("Using cached access token")
            return cached

        logger.info("Refreshing Netatmo access token")
        credential = self.refresh()

        self.redis.set(ACCESS_TOKEN_KEY, credential.access_token, ex=self._ttl(credential))

        # Netatmo may rotate the refresh token; the old one stops working
        if credential.refresh_token:
            self.redis.set(REFRESH_TOKEN_KEY, credential.refresh_token)
            logger.info("Refresh token updated in Redis")

        return credential.access_token

    def refresh(self) -> Credential:
        """Exchange the current refresh token for a new access/refresh pair."""
        data = {
            "grant_type": "refresh_token",
            "refresh_token": self.get_refresh_token(),
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        try:
            response = self.session.post(NETATMO_TOKEN_URL, data=data, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise VendorAPIError(f"Failed to refresh Netatmo token: {e}") from e

        if not response.ok:
            raise VendorAPIError(
                f"Failed to refresh Netatmo token: {response.status_code} - {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        token = decode(TokenResponse, response.json(), "token")
        logger.info("Token refreshed successfully")
        return Credential(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            expires_in=token.expires_in,
        )

    @staticmethod
    def _ttl(credential: Credential) -> int:
        """Cache lifetime, always shorter than the real expiry."""
        if credential.expires_in is None:
            return ACCESS_TOKEN_TTL
        ttl = min(ACCESS_TOKEN_TTL, credential.expires_in - EXPIRY_MARGIN)
        if ttl < MIN_ACCESS_TOKEN_TTL:
            # Short-lived token: keep it for half its life
            ttl = max(1, credential.expires_in // 2)
        return ttl
