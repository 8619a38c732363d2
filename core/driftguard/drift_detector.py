"""
Relay Drift Detection

A healthy relay makes the temperature plateau or fall within minutes of a
setpoint drop. A sustained rise after the margin window means the relay
failed to open and the room is overshooting.
"""

import math

from .models import DriftDetection, MeasurePoint

DEFAULT_MIN_MINUTES_SINCE_DROP = 10
DEFAULT_MIN_TEMP_RISE = 0.5  # °C


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def detect_drift(
    points: list[MeasurePoint],
    server_time: int,
    min_minutes_since_drop: float = DEFAULT_MIN_MINUTES_SINCE_DROP,
    min_temp_rise: float = DEFAULT_MIN_TEMP_RISE,
) -> DriftDetection:
    """Detect temperature rising after the most recent setpoint drop.

    Only the most recent drop is evaluated; earlier drops are ignored even if
    they were never resolved.

    Args:
        points: Measure points sorted by timestamp (ascending)
        server_time: Current Netatmo server time (Unix seconds)
        min_minutes_since_drop: Thermal lag allowed before judging
        min_temp_rise: Rise since the drop that counts as drift (°C)

    Returns:
        DriftDetection, with diagnostics populated only when drifting
    """
    if len(points) < 2:
        return DriftDetection(is_drifting=False)

    current = points[-1]

    for i in range(len(points) - 1, 0, -1):
        drop = points[i]
        if drop.setpoint >= points[i - 1].setpoint:
            continue

        seconds_since_drop = server_time - drop.timestamp
        if seconds_since_drop < min_minutes_since_drop * 60:
            return DriftDetection(is_drifting=False)

        temp_rise = current.temperature - drop.temperature
        if temp_rise >= min_temp_rise:
            return DriftDetection(
                is_drifting=True,
                setpoint_drop_time=drop.timestamp,
                temp_at_drop=drop.temperature,
                current_temp=current.temperature,
                temp_rise=temp_rise,
                minutes_since_drop=_round_half_up(seconds_since_drop / 60),
            )
        return DriftDetection(is_drifting=False)

    return DriftDetection(is_drifting=False)
