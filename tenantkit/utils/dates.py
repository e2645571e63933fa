"""Date helpers shared by models and services."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_unix(timestamp):
    """Convert a provider unix timestamp to a naive UTC datetime."""
    if timestamp is None:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).replace(tzinfo=None)


def isoformat(value):
    return value.isoformat() if value else None
