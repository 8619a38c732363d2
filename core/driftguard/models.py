"""
DriftGuard Data Models

Dataclasses for the records the service passes around, plus pydantic models
for the Netatmo response shapes so unexpected payloads fail at the boundary.
"""

import json
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, ValidationError

from .exceptions import VendorDecodeError

EVENT_TYPES: tuple[str, ...] = ("overage_detected", "reset_triggered", "reset_completed")

# Per-unit outcomes of a check cycle
ACTION_SKIPPED_UNREACHABLE = "skipped_unreachable"
ACTION_FAILSAFE_RESET = "failsafe_reset"
ACTION_DRIFT_RESET_TRIGGERED = "drift_reset_triggered"
ACTION_NONE = "none"
ACTION_ERROR = "error"


@dataclass(frozen=True)
class ThermostatHandle:
    """Identifies one controllable room."""

    home_id: str
    room_id: str

    def __str__(self) -> str:
        return f"{self.home_id}/{self.room_id}"


@dataclass
class ThermostatSnapshot:
    """Room state read during discovery. Never persisted."""

    handle: ThermostatHandle
    home_name: str
    room_name: str
    current_temp: float
    setpoint: float
    mode: str  # schedule, manual, max, off, ...
    reachable: bool
    server_time: int  # Unix seconds, Netatmo clock

    @property
    def display_name(self) -> str:
        return f"{self.home_name}/{self.room_name}"


@dataclass
class MeasurePoint:
    """A single historical sample."""

    timestamp: int  # Unix seconds
    temperature: float
    setpoint: float


@dataclass
class DriftDetection:
    """Detector output. Optional fields are only set when drifting."""

    is_drifting: bool
    setpoint_drop_time: Optional[int] = None
    temp_at_drop: Optional[float] = None
    current_temp: Optional[float] = None
    temp_rise: Optional[float] = None
    minutes_since_drop: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "isDrifting": self.is_drifting,
            "setpointDropTime": self.setpoint_drop_time,
            "tempAtDrop": self.temp_at_drop,
            "currentTemp": self.current_temp,
            "tempRise": self.temp_rise,
            "minutesSinceDrop": self.minutes_since_drop,
        }


@dataclass
class OverageEvent:
    """Audit record stored in the event log."""

    type: str
    home_id: str
    room_id: str
    current_temp: float
    setpoint: float
    diff: float
    timestamp: int  # Unix milliseconds, also the sort key
    event_id: str = ""  # Sequence id; orders and keeps distinct same-millisecond events

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "homeId": self.home_id,
            "roomId": self.room_id,
            "currentTemp": self.current_temp,
            "setpoint": self.setpoint,
            "diff": self.diff,
            "timestamp": self.timestamp,
            "id": self.event_id,
        }

    def to_json(self) -> str:
        # Id first: Redis breaks score ties by comparing members lexically
        data = self.to_dict()
        return json.dumps({"id": data.pop("id"), **dict(sorted(data.items()))})

    @classmethod
    def from_dict(cls, data: dict) -> "OverageEvent":
        return cls(
            type=data["type"],
            home_id=data["homeId"],
            room_id=data["roomId"],
            current_temp=data["currentTemp"],
            setpoint=data["setpoint"],
            diff=data["diff"],
            timestamp=data["timestamp"],
            event_id=data.get("id", ""),
        )

    @classmethod
    def from_json(cls, raw: str) -> "OverageEvent":
        return cls.from_dict(json.loads(raw))


@dataclass
class ResetPayload:
    """Everything the delayed callback needs to finish a reset on its own."""

    handle: ThermostatHandle
    original_setpoint: float
    home_name: Optional[str] = None
    room_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.home_name and self.room_name:
            return f"{self.home_name}/{self.room_name}"
        return str(self.handle)

    def to_dict(self) -> dict:
        data = {
            "homeId": self.handle.home_id,
            "roomId": self.handle.room_id,
            "originalSetpoint": self.original_setpoint,
        }
        if self.home_name is not None:
            data["homeName"] = self.home_name
        if self.room_name is not None:
            data["roomName"] = self.room_name
        return data


@dataclass
class Credential:
    """Access/refresh token pair from the Netatmo OAuth endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None  # Seconds, as reported by Netatmo


@dataclass
class UnitResult:
    """Outcome of evaluating one room in a check cycle."""

    home: str
    room: str
    action: str
    current_temp: Optional[float] = None
    setpoint: Optional[float] = None
    message_id: Optional[str] = None
    drift: Optional[DriftDetection] = None
    error: Optional[str] = None

    @property
    def diff(self) -> str:
        if self.action == ACTION_SKIPPED_UNREACHABLE or self.current_temp is None or self.setpoint is None:
            return "N/A"
        return f"{self.current_temp - self.setpoint:.2f}"

    def to_dict(self) -> dict:
        data = {
            "home": self.home,
            "room": self.room,
            "currentTemp": self.current_temp,
            "setpoint": self.setpoint,
            "diff": self.diff,
            "action": self.action,
        }
        if self.message_id:
            data["qstashMessageId"] = self.message_id
        if self.drift:
            data["drift"] = self.drift.to_dict()
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class CheckSummary:
    """Aggregated result of one check cycle."""

    results: list[UnitResult] = field(default_factory=list)

    @property
    def checked(self) -> int:
        return len(self.results)

    @property
    def overages(self) -> int:
        return sum(1 for r in self.results if r.action == ACTION_DRIFT_RESET_TRIGGERED)

    @property
    def errors(self) -> int:
        return sum(1 for r in self.results if r.action == ACTION_ERROR)

    @property
    def status(self) -> str:
        if self.overages:
            return "overages_detected"
        if self.errors:
            return "errors"
        return "ok"

    def to_dict(self) -> dict:
        data = {
            "status": self.status,
            "checked": self.checked,
            "overages": self.overages,
            "results": [r.to_dict() for r in self.results],
        }
        if not self.results:
            data["message"] = "No thermostats found"
        return data


# Netatmo response shapes


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class HomeRoom(BaseModel):
    id: str
    name: str = ""
    type: Optional[str] = None


class HomeModule(BaseModel):
    id: str
    type: str
    name: str = ""
    room_id: Optional[str] = None


class Home(BaseModel):
    id: str
    name: str
    rooms: list[HomeRoom] = []
    modules: list[HomeModule] = []


class HomesDataBody(BaseModel):
    homes: list[Home]


class HomesDataResponse(BaseModel):
    status: str
    time_server: int
    body: HomesDataBody


class RoomStatus(BaseModel):
    id: str
    reachable: bool = False
    therm_measured_temperature: Optional[float] = None
    therm_setpoint_temperature: Optional[float] = None
    therm_setpoint_mode: Optional[str] = None
    therm_setpoint_end_time: Optional[int] = None


class HomeStatusHome(BaseModel):
    id: str
    rooms: list[RoomStatus] = []


class HomeStatusBody(BaseModel):
    home: HomeStatusHome


class HomeStatusResponse(BaseModel):
    status: str
    time_server: int
    body: HomeStatusBody


class MeasureSeries(BaseModel):
    beg_time: int
    step_time: int = 0  # Omitted by Netatmo for single-value series
    value: list[list[Optional[float]]]


class RoomMeasureResponse(BaseModel):
    status: str
    body: list[MeasureSeries]


def decode(model: type[BaseModel], data, what: str):
    """Validate a Netatmo response, raising VendorDecodeError on mismatch."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise VendorDecodeError(f"Unexpected {what} response: {e}", body=str(data)[:500]) from e
