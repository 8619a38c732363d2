from unittest.mock import MagicMock

import pytest
import redis
import requests
from qstash.errors import QStashError

from core.driftguard.control_loop import run_check
from core.driftguard.exceptions import VendorAPIError
from core.driftguard.models import MeasurePoint, ResetPayload, ThermostatHandle, ThermostatSnapshot
from core.driftguard.netatmo_client import NetatmoClient
from core.driftguard.scheduler import ResetScheduler

NOW = 1_700_000_000


def snapshot(room_id="room-1", temp=22.0, setpoint=19.0, mode="schedule", reachable=True):
    return ThermostatSnapshot(
        handle=ThermostatHandle("home-1", room_id),
        home_name="Flat",
        room_name=f"Room {room_id}",
        current_temp=temp,
        setpoint=setpoint,
        mode=mode,
        reachable=reachable,
        server_time=NOW,
    )


DRIFTING = [
    MeasurePoint(NOW - 1200, 20.9, 21.0),
    MeasurePoint(NOW - 900, 20.5, 19.0),
    MeasurePoint(NOW, 22.0, 19.0),
]
STABLE = [
    MeasurePoint(NOW - 1200, 20.9, 21.0),
    MeasurePoint(NOW - 900, 20.5, 19.0),
    MeasurePoint(NOW, 20.1, 19.0),
]


@pytest.fixture
def netatmo():
    return MagicMock(spec=NetatmoClient)


@pytest.fixture
def scheduler():
    mock = MagicMock(spec=ResetScheduler)
    mock.schedule_reset.return_value = "msg-1"
    return mock


def test_unreachable_room_is_skipped(netatmo, scheduler, event_log, settings):
    netatmo.discover_thermostats.return_value = [snapshot(reachable=False)]

    summary = run_check(netatmo, event_log, scheduler, settings)

    assert summary.results[0].action == "skipped_unreachable"
    assert summary.results[0].to_dict()["diff"] == "N/A"
    netatmo.get_measurements.assert_not_called()
    netatmo.set_room_to_home.assert_not_called()
    assert event_log.get_all_events() == []


def test_room_stuck_in_max_gets_failsafe_reset(netatmo, scheduler, event_log, settings):
    netatmo.discover_thermostats.return_value = [snapshot(mode="max", temp=23.0, setpoint=30.0)]

    summary = run_check(netatmo, event_log, scheduler, settings)

    assert summary.results[0].action == "failsafe_reset"
    netatmo.set_room_to_home.assert_called_once_with(ThermostatHandle("home-1", "room-1"))
    netatmo.get_measurements.assert_not_called()
    netatmo.set_room_to_max.assert_not_called()
    scheduler.schedule_reset.assert_not_called()
    assert [e.type for e in event_log.get_all_events()] == ["reset_completed"]
    assert summary.status == "ok"


def test_drift_triggers_max_and_schedules_reset(netatmo, scheduler, event_log, settings):
    netatmo.discover_thermostats.return_value = [snapshot()]
    netatmo.get_measurements.return_value = DRIFTING

    summary = run_check(netatmo, event_log, scheduler, settings)

    handle = ThermostatHandle("home-1", "room-1")
    netatmo.get_measurements.assert_called_once_with(handle, NOW - 30 * 60, NOW, scale="max")
    netatmo.set_room_to_max.assert_called_once_with(handle, server_time=NOW)
    scheduler.schedule_reset.assert_called_once_with(
        ResetPayload(handle=handle, original_setpoint=19.0, home_name="Flat", room_name="Room room-1"),
        30,
    )

    result = summary.results[0]
    assert result.action == "drift_reset_triggered"
    assert result.message_id == "msg-1"
    assert result.drift.temp_rise == 1.5
    assert result.drift.minutes_since_drop == 15
    assert summary.status == "overages_detected"
    assert summary.overages == 1
    assert [e.type for e in event_log.get_all_events()] == ["reset_triggered", "overage_detected"]


def test_stable_room_takes_no_action(netatmo, scheduler, event_log, settings):
    netatmo.discover_thermostats.return_value = [snapshot(temp=20.1)]
    netatmo.get_measurements.return_value = STABLE

    summary = run_check(netatmo, event_log, scheduler, settings)

    assert summary.results[0].action == "none"
    assert summary.results[0].to_dict()["diff"] == "1.10"
    netatmo.set_room_to_max.assert_not_called()
    scheduler.schedule_reset.assert_not_called()
    assert summary.to_dict()["status"] == "ok"


def test_one_failing_room_does_not_abort_cycle(netatmo, scheduler, event_log, settings):
    netatmo.discover_thermostats.return_value = [
        snapshot("room-1"),
        snapshot("room-2"),
        snapshot("room-3"),
    ]
    netatmo.get_measurements.side_effect = [
        VendorAPIError("Netatmo API error: 500 - boom", status_code=500),
        requests.exceptions.Timeout("slow"),
        DRIFTING,
    ]

    summary = run_check(netatmo, event_log, scheduler, settings)

    assert [r.action for r in summary.results] == ["error", "error", "drift_reset_triggered"]
    assert "boom" in summary.results[0].error
    assert summary.checked == 3
    assert summary.overages == 1


def test_errors_only_cycle_reports_errors(netatmo, scheduler, event_log, settings):
    netatmo.discover_thermostats.return_value = [snapshot()]
    netatmo.get_measurements.side_effect = VendorAPIError("nope")

    assert run_check(netatmo, event_log, scheduler, settings).status == "errors"


def test_no_thermostats(netatmo, scheduler, event_log, settings):
    netatmo.discover_thermostats.return_value = []

    data = run_check(netatmo, event_log, scheduler, settings).to_dict()

    assert data == {"status": "ok", "checked": 0, "overages": 0, "results": [], "message": "No thermostats found"}


def test_discovery_failure_propagates(netatmo, scheduler, event_log, settings):
    netatmo.discover_thermostats.side_effect = VendorAPIError("token refresh failed", status_code=400)

    with pytest.raises(VendorAPIError):
        run_check(netatmo, event_log, scheduler, settings)


def test_publish_failure_after_max_is_isolated(netatmo, scheduler, event_log, settings):
    netatmo.discover_thermostats.return_value = [snapshot("room-1"), snapshot("room-2")]
    netatmo.get_measurements.return_value = DRIFTING
    scheduler.schedule_reset.side_effect = [QStashError("publish failed"), "msg-2"]

    summary = run_check(netatmo, event_log, scheduler, settings)

    assert [r.action for r in summary.results] == ["error", "drift_reset_triggered"]
    assert "publish failed" in summary.results[0].error
    assert summary.results[1].message_id == "msg-2"
    # room-1 stays covered by the Netatmo-side max expiry
    assert netatmo.set_room_to_max.call_count == 2
    assert summary.status == "overages_detected"


def test_event_log_failure_is_isolated(netatmo, scheduler, event_log, settings):
    netatmo.discover_thermostats.return_value = [snapshot("room-1", mode="max"), snapshot("room-2", temp=20.1)]
    netatmo.get_measurements.return_value = STABLE
    broken_log = MagicMock(wraps=event_log)
    broken_log.log_reset_completed.side_effect = redis.exceptions.ConnectionError("redis down")

    summary = run_check(netatmo, broken_log, scheduler, settings)

    assert [r.action for r in summary.results] == ["error", "none"]
    assert "redis down" in summary.results[0].error
    assert summary.status == "errors"
