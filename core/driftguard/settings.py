"""
DriftGuard Configuration Settings

Secrets come from the environment (optionally a .env file). Non-secret tunables
can be overridden from a YAML options file.
"""

import logging
import os
import re
from dataclasses import dataclass, fields

import yaml
from dotenv import load_dotenv

from .exceptions import AuthConfigError, ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"

# Settings that may only come from the environment
SECRET_FIELDS = {
    "netatmo_client_id": "NETATMO_CLIENT_ID",
    "netatmo_client_secret": "NETATMO_CLIENT_SECRET",
    "netatmo_refresh_token": "NETATMO_REFRESH_TOKEN",
    "redis_url": "REDIS_URL",
    "qstash_token": "QSTASH_TOKEN",
    "qstash_current_signing_key": "QSTASH_CURRENT_SIGNING_KEY",
    "qstash_next_signing_key": "QSTASH_NEXT_SIGNING_KEY",
    "check_secret": "CRON_SECRET",
    "base_url": "BASE_URL",
}


def _camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


@dataclass
class DriftGuardSettings:
    """Everything one invocation needs to build its collaborators."""

    netatmo_client_id: str = ""
    netatmo_client_secret: str = ""
    netatmo_refresh_token: str = ""
    redis_url: str = ""
    qstash_token: str = ""
    qstash_current_signing_key: str = ""
    qstash_next_signing_key: str = ""
    check_secret: str = ""
    base_url: str = ""

    min_minutes_since_drop: float = 10.0
    min_temp_rise: float = 0.5  # °C
    lookback_minutes: int = 30
    measure_scale: str = "max"
    reset_delay_seconds: int = 30
    max_mode_expiry_seconds: int = 60  # Vendor-side failsafe for forced max
    max_events: int = 1000
    http_timeout: float = 10.0

    @classmethod
    def from_dict(cls, data: dict) -> "DriftGuardSettings":
        """Create from dictionary, accepting camelCase keys and ignoring unknown ones."""
        known = {f.name for f in fields(cls)}
        converted = {_camel_to_snake(k): v for k, v in data.items()}
        unknown = set(converted) - known
        if unknown:
            logger.warning(f"Ignoring unknown settings: {sorted(unknown)}")
        return cls(**{k: v for k, v in converted.items() if k in known})

    def require(self, *names: str) -> None:
        """Raise AuthConfigError listing every named setting that is empty."""
        missing = [SECRET_FIELDS.get(name, name) for name in names if not getattr(self, name)]
        if missing:
            raise AuthConfigError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


def load_settings(config_path: str | None = None) -> DriftGuardSettings:
    """Load settings from environment, .env and the optional YAML options file.

    Args:
        config_path: YAML file with tunables (defaults to $DRIFTGUARD_CONFIG or config.yaml)

    Returns:
        Populated settings. Secrets are not validated here; each factory
        calls require() for the ones it needs.

    Raises:
        ConfigurationError: If the options file is not a mapping
    """
    load_dotenv()

    values: dict = {}
    config_path = config_path or os.getenv("DRIFTGUARD_CONFIG", DEFAULT_CONFIG_PATH)
    if os.path.exists(config_path):
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
        options = (config.get("options", config) or {}) if isinstance(config, dict) else config
        if not isinstance(options, dict):
            raise ConfigurationError(f"Options file {config_path} must contain a mapping of settings")
        values.update(
            {k: v for k, v in options.items() if _camel_to_snake(k) not in SECRET_FIELDS}
        )
        logger.info(f"Loaded options from {config_path}")

    for field_name, env_name in SECRET_FIELDS.items():
        values[field_name] = os.getenv(env_name, "")

    # VERCEL_URL-style hosts come without a scheme
    base_url = values["base_url"]
    if base_url and not base_url.startswith(("http://", "https://")):
        values["base_url"] = f"https://{base_url}"

    return DriftGuardSettings.from_dict(values)
