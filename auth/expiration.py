from __future__ import annotations

from datetime import datetime, timedelta, timezone

EXPIRATION_FORMAT = "%Y-%m-%dT%H:%M:%S"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_expiration(now: datetime, expires_in_seconds: int) -> str:
    """Render ``now + expires_in_seconds`` as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware.")
    expires = (now + timedelta(seconds=expires_in_seconds)).astimezone(timezone.utc)
    return f"{expires.strftime(EXPIRATION_FORMAT)}.{expires.microsecond // 1000:03d}Z"


def parse_expiration(value: str) -> datetime:
    if not value.endswith("Z"):
        raise ValueError(f"Expiration must be a UTC timestamp ending in 'Z': {value!r}")
    parsed = datetime.strptime(value[:-1], f"{EXPIRATION_FORMAT}.%f")
    return parsed.replace(tzinfo=timezone.utc)
