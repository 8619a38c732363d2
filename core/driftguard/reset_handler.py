"""
Reset Callback Handling

Phase two of a relay reset. Always commands home mode: Netatmo's own max-mode
expiry may already have reverted the room, and a redundant home command is a
no-op, so duplicate deliveries are harmless.
"""

import json
import logging

from .event_log import EventLog
from .exceptions import AuthRejected, PayloadError
from .models import ResetPayload, ThermostatHandle
from .netatmo_client import NetatmoClient
from .scheduler import ResetScheduler

logger = logging.getLogger(__name__)


def parse_reset_payload(raw_body: str) -> ResetPayload:
    """Parse a callback body into a ResetPayload.

    Raises:
        PayloadError: If the body is not JSON or misses homeId/roomId
    """
    try:
        data = json.loads(raw_body)
    except ValueError as e:
        raise PayloadError(f"Invalid JSON body: {e}") from e

    if not isinstance(data, dict) or not data.get("homeId") or not data.get("roomId"):
        raise PayloadError("Invalid payload - missing homeId or roomId")

    original_setpoint = data.get("originalSetpoint")
    if isinstance(original_setpoint, bool) or not isinstance(original_setpoint, (int, float)):
        raise PayloadError("Invalid payload - originalSetpoint must be a number")

    return ResetPayload(
        handle=ThermostatHandle(str(data["homeId"]), str(data["roomId"])),
        original_setpoint=float(original_setpoint),
        home_name=data.get("homeName"),
        room_name=data.get("roomName"),
    )


def handle_reset(
    signature: str | None,
    raw_body: str,
    scheduler: ResetScheduler,
    netatmo: NetatmoClient,
    event_log: EventLog,
) -> dict:
    """Verify and complete one reset callback.

    Returns:
        Completion summary for the HTTP response

    Raises:
        AuthRejected: Missing or invalid signature (nothing is read or written)
        PayloadError: Malformed body
        VendorAPIError: Netatmo call failed
    """
    if not scheduler.verify(signature, raw_body):
        raise AuthRejected("Invalid or missing QStash signature")

    payload = parse_reset_payload(raw_body)
    handle = payload.handle
    logger.info(f"Resetting {payload.display_name} back to home mode")

    # Read for the audit record only
    status = netatmo.get_home_status(handle.home_id)
    room = netatmo.get_room_from_status(status, handle.room_id)
    if room is None or room.therm_measured_temperature is None:
        logger.warning(f"Room {handle} not found in home status, logging 0.0°C")
        current_temp = 0.0
    else:
        current_temp = room.therm_measured_temperature

    netatmo.set_room_to_home(handle)
    event_log.log_reset_completed(handle, current_temp, payload.original_setpoint)

    logger.info(f"Successfully reset {payload.display_name} to home mode. Current temp: {current_temp}°C")
    return {
        "status": "reset_completed",
        "homeId": handle.home_id,
        "roomId": handle.room_id,
        "homeName": payload.home_name,
        "roomName": payload.room_name,
        "currentTemp": current_temp,
        "originalSetpoint": payload.original_setpoint,
    }
