"""
Overage Event Log

Append-only audit trail in a Redis sorted set scored by timestamp (ms).
Retention is bounded: the oldest entries are trimmed after each insert.
"""

import logging
import time
from typing import Callable, Optional

from .models import EVENT_TYPES, OverageEvent, ThermostatHandle

logger = logging.getLogger(__name__)

OVERAGE_EVENTS_KEY = "netatmo:overages"
SEQUENCE_SUFFIX = ":seq"
MAX_EVENTS_TO_KEEP = 1000
DEFAULT_RECENT_WINDOW_MS = 24 * 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


class EventLog:
    """Bounded, time-ordered event store. No update or delete of single entries."""

    def __init__(
        self,
        redis_client,
        max_events: int = MAX_EVENTS_TO_KEEP,
        key: str = OVERAGE_EVENTS_KEY,
        clock: Callable[[], int] = _now_ms,
    ):
        self.redis = redis_client
        self.max_events = max_events
        self.key = key
        self.clock = clock

    def log_event(
        self,
        event_type: str,
        handle: ThermostatHandle,
        current_temp: float,
        setpoint: float,
    ) -> OverageEvent:
        """Append an event stamped with the current time, then trim to the bound."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")

        event = OverageEvent(
            type=event_type,
            home_id=handle.home_id,
            room_id=handle.room_id,
            current_temp=current_temp,
            setpoint=setpoint,
            diff=current_temp - setpoint,
            timestamp=self.clock(),
            event_id=self._next_id(),
        )
        logger.info(f"Logging event: {event_type} for {handle} (diff {event.diff:.2f}°C)")

        self.redis.zadd(self.key, {event.to_json(): event.timestamp})

        count = self.redis.zcard(self.key)
        if count > self.max_events:
            # Ranks are ascending by score, so rank 0 is the oldest
            self.redis.zremrangebyrank(self.key, 0, count - self.max_events - 1)

        return event

    def _next_id(self) -> str:
        """Monotonic id, zero-padded so same-score members sort in insertion order."""
        return f"{self.redis.incr(self.key + SEQUENCE_SUFFIX):020d}"

    def log_overage_detected(self, handle: ThermostatHandle, current_temp: float, setpoint: float) -> OverageEvent:
        return self.log_event("overage_detected", handle, current_temp, setpoint)

    def log_reset_triggered(self, handle: ThermostatHandle, current_temp: float, setpoint: float) -> OverageEvent:
        return self.log_event("reset_triggered", handle, current_temp, setpoint)

    def log_reset_completed(self, handle: ThermostatHandle, current_temp: float, setpoint: float) -> OverageEvent:
        return self.log_event("reset_completed", handle, current_temp, setpoint)

    def get_recent_events(
        self,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
    ) -> list[OverageEvent]:
        """Get events in a time range, oldest first.

        Args:
            start_time: Start timestamp in ms (defaults to 24 hours ago)
            end_time: End timestamp in ms (defaults to now)
        """
        now = self.clock()
        start = start_time if start_time is not None else now - DEFAULT_RECENT_WINDOW_MS
        end = end_time if end_time is not None else now

        results = self.redis.zrangebyscore(self.key, start, end)
        return [OverageEvent.from_json(item) for item in results]

    def get_event_counts(
        self,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
    ) -> dict[str, int]:
        """Count events by type within a time range."""
        counts = {event_type: 0 for event_type in EVENT_TYPES}
        for event in self.get_recent_events(start_time, end_time):
            counts[event.type] = counts.get(event.type, 0) + 1
        return counts

    def get_all_events(self, offset: int = 0, limit: int = 100) -> list[OverageEvent]:
        """Get events most recent first, paginated."""
        if offset < 0 or limit <= 0:
            return []
        results = self.redis.zrevrange(self.key, offset, offset + limit - 1)
        return [OverageEvent.from_json(item) for item in results]
