"""
Delayed Reset Scheduler

Publishes the phase-two reset as a delayed QStash message and verifies the
signature on the callback when it comes back. The payload carries all state
the callback needs, since it may be delivered to a different instance.
"""

import logging

from qstash import QStash, Receiver

from .models import ResetPayload

logger = logging.getLogger(__name__)

DEFAULT_RESET_DELAY_SECONDS = 30
RESET_PATH = "/reset"


class ResetScheduler:
    """Schedules reset callbacks and authenticates their delivery."""

    def __init__(self, client: QStash, receiver: Receiver, base_url: str):
        """Initialize scheduler.

        Args:
            client: QStash client used to publish
            receiver: Receiver holding the current and next signing keys
            base_url: Public URL of this service (callback target root)
        """
        self.client = client
        self.receiver = receiver
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_keys(cls, token: str, current_signing_key: str, next_signing_key: str, base_url: str) -> "ResetScheduler":
        return cls(
            QStash(token),
            Receiver(current_signing_key=current_signing_key, next_signing_key=next_signing_key),
            base_url,
        )

    @property
    def callback_url(self) -> str:
        return f"{self.base_url}{RESET_PATH}"

    def schedule_reset(self, payload: ResetPayload, delay_seconds: int = DEFAULT_RESET_DELAY_SECONDS) -> str:
        """Publish a one-shot reset callback.

        Returns:
            QStash message id for tracking
        """
        logger.info(f"Scheduling reset callback for {payload.display_name} to {self.callback_url} in {delay_seconds}s")
        result = self.client.message.publish_json(
            url=self.callback_url,
            body=payload.to_dict(),
            delay=f"{delay_seconds}s",
        )
        logger.info(f"Scheduled reset with message ID: {result.message_id}")
        return result.message_id

    def verify(self, signature: str | None, body: str) -> bool:
        """Check a callback signature against the current and next signing keys."""
        if not signature:
            logger.warning("Missing QStash signature")
            return False
        try:
            self.receiver.verify(signature=signature, body=body)
        except Exception as e:  # SignatureError, or a JWT decoding error for garbage input
            logger.warning(f"Signature verification failed: {e}")
            return False
        return True
