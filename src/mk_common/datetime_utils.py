"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def expires_after(seconds: int, now: datetime | None = None) -> datetime:
    """Return the instant `seconds` after `now` (defaults to utc_now())."""
    return (now or utc_now()) + timedelta(seconds=seconds)
