"""
Netatmo Energy API Client for DriftGuard

Typed client for home discovery, room status, room history and setpoint writes.
"""

import logging
import time
from typing import Any, Optional

import requests

from .exceptions import VendorAPIError
from .models import (
    HomesDataResponse,
    HomeStatusResponse,
    MeasurePoint,
    RoomMeasureResponse,
    RoomStatus,
    ThermostatHandle,
    ThermostatSnapshot,
    decode,
)

logger = logging.getLogger(__name__)

NETATMO_API_BASE = "https://api.netatmo.com"
THERMOSTAT_MODULE_TYPES = {"NAPlug", "NATherm1", "NRV"}
MAX_MODE_EXPIRY_SECONDS = 60


class NetatmoClient:
    """Netatmo REST API client authenticated through the token cache."""

    def __init__(
        self,
        token_cache,
        base_url: str = NETATMO_API_BASE,
        session: requests.Session | None = None,
        timeout: float = 10.0,
        max_mode_expiry: int = MAX_MODE_EXPIRY_SECONDS,
    ):
        """Initialize Netatmo client.

        Args:
            token_cache: Object with get_access_token() (see TokenCache)
            base_url: Netatmo API root
            session: Optional requests session for connection pooling
            timeout: HTTP timeout in seconds
            max_mode_expiry: Seconds before Netatmo auto-reverts a forced max
        """
        self.token_cache = token_cache
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_mode_expiry = max_mode_expiry

    def _request(self, endpoint: str, method: str = "GET", params: dict[str, str] | None = None) -> Any:
        """Make an authenticated API request.

        A 401 is not retried with a forced refresh; the next cycle picks up a
        fresh token once the cached one expires.

        Raises:
            VendorAPIError: On network failure or non-2xx response
        """
        params = params or {}
        headers = {"Authorization": f"Bearer {self.token_cache.get_access_token()}"}
        url = f"{self.base_url}/api{endpoint}"

        try:
            if method == "GET":
                response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            else:
                # Form-encoded body
                response = self.session.post(url, data=params, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise VendorAPIError(f"Netatmo API request failed: {e}") from e

        if not response.ok:
            raise VendorAPIError(
                f"Netatmo API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise VendorAPIError(
                f"Netatmo API returned non-JSON body for {endpoint}",
                status_code=response.status_code,
                body=response.text,
            ) from e

    def get_homes_data(self) -> HomesDataResponse:
        """Get all homes and their topology (rooms, modules)."""
        logger.debug("Getting homes data")
        return decode(HomesDataResponse, self._request("/homesdata"), "homesdata")

    def get_home_status(self, home_id: str) -> HomeStatusResponse:
        """Get the live status of a home (temperatures, setpoints, modes)."""
        logger.debug(f"Getting home status for {home_id}")
        data = self._request("/homestatus", params={"home_id": home_id})
        return decode(HomeStatusResponse, data, "homestatus")

    @staticmethod
    def get_room_from_status(status: HomeStatusResponse, room_id: str) -> Optional[RoomStatus]:
        return next((room for room in status.body.home.rooms if room.id == room_id), None)

    def discover_thermostats(self) -> list[ThermostatSnapshot]:
        """Discover all thermostat-controlled rooms across all homes.

        A home whose status cannot be read is logged and skipped.

        Returns:
            One snapshot per room that reports a temperature, setpoint and mode

        Raises:
            VendorAPIError: If the home list itself cannot be read
        """
        logger.info("Discovering thermostats")
        homes_data = self.get_homes_data()
        snapshots: list[ThermostatSnapshot] = []

        for home in homes_data.body.homes:
            if not any(m.type in THERMOSTAT_MODULE_TYPES for m in home.modules):
                logger.info(f'Home "{home.name}" has no thermostat modules')
                continue

            try:
                status = self.get_home_status(home.id)
            except VendorAPIError as e:
                logger.error(f'Failed to get status for home "{home.name}": {e}')
                continue

            room_names = {room.id: room.name for room in home.rooms}
            for room in status.body.home.rooms:
                if (
                    room.therm_measured_temperature is None
                    or room.therm_setpoint_temperature is None
                    or room.therm_setpoint_mode is None
                ):
                    logger.debug(f"Room {room.id} in {home.name} has no thermostat state")
                    continue

                snapshots.append(
                    ThermostatSnapshot(
                        handle=ThermostatHandle(home.id, room.id),
                        home_name=home.name,
                        room_name=room_names.get(room.id) or f"Room {room.id}",
                        current_temp=room.therm_measured_temperature,
                        setpoint=room.therm_setpoint_temperature,
                        mode=room.therm_setpoint_mode,
                        reachable=room.reachable,
                        server_time=status.time_server,
                    )
                )

        logger.info(f"Found {len(snapshots)} thermostat-controlled rooms")
        return snapshots

    def set_room_therm_point(
        self,
        handle: ThermostatHandle,
        mode: str,
        temp: float | None = None,
        endtime: int | None = None,
    ) -> dict:
        """Set the setpoint mode for a room.

        Args:
            handle: Room to change
            mode: "manual", "max" or "home"
            temp: Target temperature, required for manual mode
            endtime: Unix time at which Netatmo reverts the change

        Raises:
            ValueError: If manual mode is requested without a temperature
        """
        if mode not in ("manual", "max", "home"):
            raise ValueError(f"Unsupported setpoint mode: {mode}")
        if mode == "manual" and temp is None:
            raise ValueError("Manual mode requires a temperature")

        params = {"home_id": handle.home_id, "room_id": handle.room_id, "mode": mode}
        if mode == "manual":
            params["temp"] = str(temp)
        if endtime is not None:
            params["endtime"] = str(endtime)

        logger.info(f"Setting room {handle} to mode: {mode}" + (f", temp: {temp}" if temp is not None else ""))
        return self._request("/setroomthermpoint", method="POST", params=params)

    def set_room_to_max(self, handle: ThermostatHandle, server_time: int | None = None) -> None:
        """Force max heating with a Netatmo-side auto-revert.

        Args:
            handle: Room to force
            server_time: Netatmo server time, so the expiry is on Netatmo's clock
        """
        base_time = server_time if server_time is not None else int(time.time())
        self.set_room_therm_point(handle, "max", endtime=base_time + self.max_mode_expiry)
        logger.info(f"Room {handle} set to MAX mode (expires in {self.max_mode_expiry}s)")

    def set_room_to_home(self, handle: ThermostatHandle) -> None:
        """Return the room to its schedule. Idempotent on Netatmo's side."""
        self.set_room_therm_point(handle, "home")
        logger.info(f"Room {handle} set to HOME mode")

    def get_room_measure(
        self,
        handle: ThermostatHandle,
        scale: str = "max",
        date_begin: int | None = None,
        date_end: int | None = None,
    ) -> RoomMeasureResponse:
        """Get historical temperature and setpoint data for a room.

        Args:
            handle: Room to read
            scale: Granularity: "max", "30min", "1hour", "3hours", "1day"
            date_begin: Start timestamp (Unix seconds)
            date_end: End timestamp (Unix seconds)
        """
        logger.debug(f"Getting room measure for {handle} (scale: {scale})")
        params = {
            "home_id": handle.home_id,
            "room_id": handle.room_id,
            "scale": scale,
            "type": "temperature,sp_temperature",
            "optimize": "true",
        }
        if date_begin is not None:
            params["date_begin"] = str(date_begin)
        if date_end is not None:
            params["date_end"] = str(date_end)

        return decode(RoomMeasureResponse, self._request("/getroommeasure", params=params), "getroommeasure")

    @staticmethod
    def parse_measure_data(response: RoomMeasureResponse) -> list[MeasurePoint]:
        """Flatten series buckets into points sorted by timestamp.

        Samples with a missing temperature or setpoint are dropped.
        """
        points = []
        for series in response.body:
            for i, value in enumerate(series.value):
                if len(value) < 2 or value[0] is None or value[1] is None:
                    continue
                points.append(
                    MeasurePoint(
                        timestamp=series.beg_time + i * series.step_time,
                        temperature=value[0],
                        setpoint=value[1],
                    )
                )
        return sorted(points, key=lambda p: p.timestamp)

    def get_measurements(
        self,
        handle: ThermostatHandle,
        date_begin: int,
        date_end: int,
        scale: str = "max",
    ) -> list[MeasurePoint]:
        """Read and flatten the room history for a time window."""
        response = self.get_room_measure(handle, scale=scale, date_begin=date_begin, date_end=date_end)
        return self.parse_measure_data(response)
