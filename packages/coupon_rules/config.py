"""Configuration from environment variables."""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from project root
_project_root = Path(__file__).resolve().parents[2]
load_dotenv(_project_root / ".env")


def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get environment variable."""
    return os.getenv(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean env var."""
    v = os.getenv(key, "").lower()
    return v in ("1", "true", "yes") if v else default


def get_env_float(key: str, default: float) -> float:
    """Get non-negative float env var; malformed values fall back to default."""
    v = os.getenv(key)
    if not v:
        return default
    try:
        return max(0.0, float(v))
    except ValueError:
        return default


@lru_cache(maxsize=None)
def resolve_timezone(name: str) -> Optional[ZoneInfo]:
    """ZoneInfo for an IANA name; None (system local time) when empty or unknown."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.error("Unknown COUPON_TIMEZONE %r, using system local time", name)
        return None


class Settings:
    """Coupon engine settings."""

    # Policy catalog
    policy_path: str = get_env("COUPON_POLICY_PATH") or str(_project_root / "coupons.json")
    # IANA zone for time-of-day / weekday checks (e.g. Asia/Kolkata); empty = system local time
    timezone: str = (get_env("COUPON_TIMEZONE") or "").strip()

    # Calculation
    default_shipping_cost: float = get_env_float("DEFAULT_SHIPPING_COST", 40.0)

    # Threshold suggestions
    suggestion_ceiling: float = get_env_float("THRESHOLD_SUGGESTION_CEILING", 2000.0)
    suggestion_tie_window: float = get_env_float("THRESHOLD_TIE_WINDOW", 50.0)

    # Logging
    log_level: str = get_env("LOG_LEVEL", "INFO")
    log_json: bool = get_env_bool("LOG_JSON", True)

    @property
    def tzinfo(self) -> Optional[ZoneInfo]:
        """Wall-clock zone; None means system local time."""
        return resolve_timezone(self.timezone)


settings = Settings()
# Report a bad zone name at startup rather than on first evaluation
resolve_timezone(settings.timezone)
