from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Make a naive datetime timezone-aware (UTC). Already-aware datetimes pass through.

    MongoDB hands back naive datetimes; compare against utcnow() only after
    wrapping them with ensure_utc().
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """None-safe UTC conversion for API response boundaries."""
    if dt is None:
        return None
    return ensure_utc(dt)


def month_start(now: datetime) -> datetime:
    """First instant (UTC) of the calendar month containing ``now``."""
    now = ensure_utc(now)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
