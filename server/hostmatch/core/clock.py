"""Time helpers shared by models and services."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current time as naive UTC, matching how timestamps are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
