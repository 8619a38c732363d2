"""
Check Cycle

One pass over every discovered room: skip, failsafe-reset, trigger a drift
reset, or do nothing. Each room is isolated so one failing room does not abort
the others.
"""

import logging

from .drift_detector import detect_drift
from .event_log import EventLog
from .models import (
    ACTION_DRIFT_RESET_TRIGGERED,
    ACTION_ERROR,
    ACTION_FAILSAFE_RESET,
    ACTION_NONE,
    ACTION_SKIPPED_UNREACHABLE,
    CheckSummary,
    ResetPayload,
    ThermostatSnapshot,
    UnitResult,
)
from .netatmo_client import NetatmoClient
from .scheduler import ResetScheduler
from .settings import DriftGuardSettings

logger = logging.getLogger(__name__)


def evaluate_unit(
    snapshot: ThermostatSnapshot,
    netatmo: NetatmoClient,
    event_log: EventLog,
    scheduler: ResetScheduler,
    settings: DriftGuardSettings,
) -> UnitResult:
    """Decide and act for a single room."""
    handle = snapshot.handle
    result = UnitResult(
        home=snapshot.home_name,
        room=snapshot.room_name,
        action=ACTION_NONE,
        current_temp=snapshot.current_temp,
        setpoint=snapshot.setpoint,
    )

    if not snapshot.reachable:
        logger.info(f'Skipping unreachable room "{snapshot.display_name}"')
        result.action = ACTION_SKIPPED_UNREACHABLE
        return result

    if snapshot.mode == "max":
        # Left in forced max by a lost or failed callback
        logger.warning(f"{snapshot.display_name} is stuck in MAX mode, resetting to home")
        netatmo.set_room_to_home(handle)
        event_log.log_reset_completed(handle, snapshot.current_temp, snapshot.setpoint)
        result.action = ACTION_FAILSAFE_RESET
        return result

    window_end = snapshot.server_time
    window_begin = window_end - settings.lookback_minutes * 60
    points = netatmo.get_measurements(handle, window_begin, window_end, scale=settings.measure_scale)
    drift = detect_drift(
        points,
        snapshot.server_time,
        min_minutes_since_drop=settings.min_minutes_since_drop,
        min_temp_rise=settings.min_temp_rise,
    )

    logger.info(
        f"{snapshot.display_name}: Current: {snapshot.current_temp}°C, "
        f"Setpoint: {snapshot.setpoint}°C, {len(points)} samples, drifting: {drift.is_drifting}"
    )

    if not drift.is_drifting:
        return result

    logger.warning(
        f'DRIFT in "{snapshot.display_name}"! Temperature rose {drift.temp_rise:.2f}°C '
        f"in {drift.minutes_since_drop} min since the setpoint dropped"
    )
    event_log.log_overage_detected(handle, snapshot.current_temp, snapshot.setpoint)
    netatmo.set_room_to_max(handle, server_time=snapshot.server_time)
    event_log.log_reset_triggered(handle, snapshot.current_temp, snapshot.setpoint)

    payload = ResetPayload(
        handle=handle,
        original_setpoint=snapshot.setpoint,
        home_name=snapshot.home_name,
        room_name=snapshot.room_name,
    )
    result.message_id = scheduler.schedule_reset(payload, settings.reset_delay_seconds)
    result.action = ACTION_DRIFT_RESET_TRIGGERED
    result.drift = drift
    return result


def run_check(
    netatmo: NetatmoClient,
    event_log: EventLog,
    scheduler: ResetScheduler,
    settings: DriftGuardSettings,
) -> CheckSummary:
    """Run one check cycle over all discovered thermostats.

    Raises:
        VendorAPIError: If discovery itself fails (token refresh or home list)
    """
    logger.info("Starting temperature check for all thermostats")
    summary = CheckSummary()

    for snapshot in netatmo.discover_thermostats():
        try:
            result = evaluate_unit(snapshot, netatmo, event_log, scheduler, settings)
        except Exception as e:
            # Vendor, QStash or Redis failure; the room may already be in forced max
            logger.exception(f"Check failed for {snapshot.display_name} ({snapshot.handle}): {e}")
            result = UnitResult(
                home=snapshot.home_name,
                room=snapshot.room_name,
                action=ACTION_ERROR,
                current_temp=snapshot.current_temp,
                setpoint=snapshot.setpoint,
                error=str(e),
            )
        summary.results.append(result)

    logger.info(f"Completed. Checked {summary.checked} rooms, found {summary.overages} overages")
    return summary
