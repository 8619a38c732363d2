"""DriftGuard: stuck-relay overshoot compensation for Netatmo thermostats."""

# Define public API
__all__ = [
    "DriftGuardSettings",
    "load_settings",
    "TokenCache",
    "NetatmoClient",
    "EventLog",
    "ResetScheduler",
    "detect_drift",
    "run_check",
    "handle_reset",
]

# Import settings
from .settings import DriftGuardSettings, load_settings

# Import clients and stores
from .credentials import TokenCache
from .netatmo_client import NetatmoClient
from .event_log import EventLog
from .scheduler import ResetScheduler

# Import control flow
from .drift_detector import detect_drift
from .control_loop import run_check
from .reset_handler import handle_reset
