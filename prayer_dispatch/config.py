"""Configuration for the prayer notification dispatcher."""
from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from prayer_dispatch.errors import ConfigurationError

load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Application configuration, read once from the environment."""

    DB_PATH = os.getenv("DB_PATH", str(PROJECT_ROOT / "data.sqlite3"))

    # Scheduler trigger
    CRON_SECRET = os.getenv("CRON_SECRET", "")
    CRON_SECRET_ENFORCED = _env_bool("CRON_SECRET_ENFORCED", True)
    POLL_INTERVAL_MINUTES = int(os.getenv("POLL_INTERVAL_MINUTES", 5))

    # Prayer times API (Aladhan)
    PRAYER_API_URL = os.getenv("PRAYER_API_URL", "https://api.aladhan.com/v1")
    PRAYER_CALC_METHOD = int(os.getenv("PRAYER_CALC_METHOD", 3))

    # Recipient defaults (Dhaka)
    DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")
    DEFAULT_LATITUDE = float(os.getenv("DEFAULT_LATITUDE", 23.8103))
    DEFAULT_LONGITUDE = float(os.getenv("DEFAULT_LONGITUDE", 90.4125))

    # Delivery
    EXPO_PUSH_URL = os.getenv("EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send")
    VAPID_PUBLIC_KEY = os.getenv("VAPID_PUBLIC_KEY", "")
    VAPID_PRIVATE_KEY = os.getenv("VAPID_PRIVATE_KEY", "")
    HTTP_TIMEOUT_S = float(os.getenv("HTTP_TIMEOUT_S", 10))

    # Text generation
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TIMEOUT_S = float(os.getenv("OPENAI_TIMEOUT_S", 15))
    NUDGE_MAX_TOKENS = int(os.getenv("NUDGE_MAX_TOKENS", 60))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls, start_band_minutes: int = 5, ending_band_minutes: int = 7) -> bool:
        """Reject settings that would skip windows or stall a cycle.

        The poll interval must not exceed the start band. The ending-soon band
        (17 to 23 minutes before the next prayer) is seven minutes wide, so any
        accepted interval can match it on two consecutive polls; duplicates are
        not suppressed.
        """
        log = logging.getLogger(__name__)
        if cls.POLL_INTERVAL_MINUTES <= 0:
            raise ConfigurationError("POLL_INTERVAL_MINUTES must be positive")
        if cls.POLL_INTERVAL_MINUTES > start_band_minutes:
            raise ConfigurationError(
                f"POLL_INTERVAL_MINUTES={cls.POLL_INTERVAL_MINUTES} exceeds the {start_band_minutes}-minute start window"
            )
        if cls.POLL_INTERVAL_MINUTES < start_band_minutes:
            log.warning(
                "POLL_INTERVAL_MINUTES=%s is shorter than the %s-minute start window; start windows may fire twice",
                cls.POLL_INTERVAL_MINUTES,
                start_band_minutes,
            )
        if cls.POLL_INTERVAL_MINUTES < ending_band_minutes:
            log.info(
                "POLL_INTERVAL_MINUTES=%s is shorter than the %s-minute ending-soon window; ending-soon may fire twice",
                cls.POLL_INTERVAL_MINUTES,
                ending_band_minutes,
            )
        if cls.HTTP_TIMEOUT_S <= 0 or cls.OPENAI_TIMEOUT_S <= 0:
            raise ConfigurationError("Timeouts must be positive")
        return True


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or Config.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
