"""
Timezone utility functions for the F1 Predictions application
"""

from datetime import datetime, timezone

import pytz
from flask import current_app


def get_app_timezone():
    """Get the application's configured timezone"""
    try:
        timezone_name = current_app.config.get("TIMEZONE", "UTC")
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        # Fallback to UTC if timezone is invalid
        return pytz.UTC


def get_utc_time():
    """Get current time in UTC"""
    return datetime.now(timezone.utc)


def ensure_utc(dt):
    """Return an aware UTC datetime; naive values are assumed to be UTC"""
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_datetime(value):
    """Parse an ISO-8601 string (or pass through a datetime) into aware UTC"""
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    return ensure_utc(datetime.fromisoformat(text))


def isoformat(dt):
    """Serialize a datetime as ISO-8601 UTC, or None"""
    dt = ensure_utc(dt)
    return dt.isoformat() if dt else None


def convert_to_app_timezone(dt):
    """Convert a datetime to the application's timezone"""
    if dt is None:
        return None

    return ensure_utc(dt).astimezone(get_app_timezone())


def month_key(dt):
    """Return ("YYYY-MM", "Month YYYY") for a datetime in the app timezone"""
    local = convert_to_app_timezone(dt)
    return local.strftime("%Y-%m"), local.strftime("%B %Y")
