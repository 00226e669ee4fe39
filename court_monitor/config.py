import logging
import os
from typing import Callable, Dict, List

from dotenv import load_dotenv
from pydantic import ValidationError

from court_monitor.exceptions import ConfigurationError
from court_monitor.models import AutoBookingRule, CustomerInfo, TimeRange

logger = logging.getLogger(__name__)

load_dotenv(override=False)

# Settings that failed to parse; validate() reports them
INVALID_SETTINGS: List[str] = []


def _number(name: str, default: str, cast: Callable = int):
    raw = os.environ.get(name) or default
    try:
        return cast(raw)
    except ValueError:
        logger.error(f"Invalid {name}={raw!r}, using {default}")
        INVALID_SETTINGS.append(f"{name}={raw!r}")
        return cast(default)

# --- Facility ---
SPORT_CLUB_ID = os.environ.get("SPORT_CLUB_ID", "1003")
FACILITY_TIMEZONE = os.environ.get("FACILITY_TIMEZONE", "America/Argentina/Buenos_Aires")

# --- URLs & API ---
AVAILABILITY_API_URL = os.environ.get(
    "AVAILABILITY_API_URL",
    f"https://alquilatucancha.com/api/v3/availability/sportclubs/{SPORT_CLUB_ID}",
)
BOOKING_API_URL = os.environ.get("BOOKING_API_URL", "https://alquilatucancha.com/api/v2/bookings")
CHECKOUT_URL = "https://alquilatucancha.com/checkout/bookings/{booking_id}?is_beelup=false"
AUTH_TOKEN = os.environ.get("AUTH_TOKEN")
REQUEST_TIMEOUT = _number("REQUEST_TIMEOUT", "10", float)

COMMON_HEADERS: Dict[str, str] = {
    "User-Agent": os.environ.get(
        "SCRAPER_USER_AGENT",
        (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/129.0.0.0 Safari/537.36"
        ),
    ),
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": os.environ.get("SCRAPER_ACCEPT_LANGUAGE", "es-AR,es;q=0.9,en;q=0.8"),
    "Referer": "https://alquilatucancha.com/",
    "Origin": "https://alquilatucancha.com",
}

# --- Monitoring ---
START_TIME = os.environ.get("START_TIME", "16:30")
END_TIME = os.environ.get("END_TIME", "20:00")
INTERVAL_MINUTES = _number("INTERVAL_MINUTES", "1")
HEARTBEAT_HOURS = _number("HEARTBEAT_HOURS", "6", float)
SHIFT_DAYS = _number("SHIFT_DAYS", "0")
DEFAULT_DURATION_MINUTES = _number("DEFAULT_DURATION_MINUTES", "90")
# Pause between consecutive Telegram messages of one tick
NOTIFICATION_DELAY_SECONDS = _number("NOTIFICATION_DELAY_SECONDS", "0.1", float)

# --- Auto booking ---
AUTO_BOOKING_ENABLED = os.environ.get("AUTO_BOOKING_ENABLED", "").strip().lower() == "true"
AUTO_BOOKING_DAY = os.environ.get("AUTO_BOOKING_DAY")
AUTO_BOOKING_TIME = os.environ.get("AUTO_BOOKING_TIME")

# --- Customer details used for bookings ---
BOOKING_NAME = os.environ.get("BOOKING_NAME")
BOOKING_EMAIL = os.environ.get("BOOKING_EMAIL")
BOOKING_PHONE = os.environ.get("BOOKING_PHONE")
BOOKING_SPORT_ID = _number("BOOKING_SPORT_ID", "7")

# --- Telegram ---
TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN")
TELEGRAM_CHAT_ID = os.environ.get("TELEGRAM_CHAT_ID")


def require_telegram():
    """Raises ConfigurationError unless the bot token and chat id are set."""
    missing = [
        name
        for name, value in (("TELEGRAM_BOT_TOKEN", TELEGRAM_BOT_TOKEN), ("TELEGRAM_CHAT_ID", TELEGRAM_CHAT_ID))
        if not value
    ]
    if missing:
        raise ConfigurationError(f"{', '.join(missing)} environment variable(s) required")


def time_range() -> TimeRange:
    try:
        return TimeRange(start=START_TIME, end=END_TIME)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid START_TIME/END_TIME ({START_TIME}-{END_TIME}): {e}") from e


def auto_booking_rule() -> AutoBookingRule | None:
    """Returns the configured auto-booking rule, or None when auto booking is off."""
    if not AUTO_BOOKING_ENABLED:
        return None
    if not AUTO_BOOKING_DAY or not AUTO_BOOKING_TIME:
        logger.warning("AUTO_BOOKING_ENABLED is set but AUTO_BOOKING_DAY/AUTO_BOOKING_TIME are missing.")
        return None
    try:
        return AutoBookingRule.parse(AUTO_BOOKING_DAY, AUTO_BOOKING_TIME)
    except (ValueError, ValidationError) as e:
        raise ConfigurationError(
            f"Invalid auto booking rule ({AUTO_BOOKING_DAY} {AUTO_BOOKING_TIME}): {e}"
        ) from e


def customer_info() -> CustomerInfo:
    return CustomerInfo(
        name=BOOKING_NAME,
        email=BOOKING_EMAIL,
        phone=BOOKING_PHONE,
        sport_id=BOOKING_SPORT_ID,
    )


def validate():
    """Checks every setting needed before monitoring may start."""
    require_telegram()
    if INVALID_SETTINGS:
        raise ConfigurationError(f"Invalid numeric setting(s): {', '.join(INVALID_SETTINGS)}")
    time_range()
    auto_booking_rule()
    if INTERVAL_MINUTES < 1:
        raise ConfigurationError(f"INTERVAL_MINUTES must be at least 1, got {INTERVAL_MINUTES}")
