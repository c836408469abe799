"""
UTC datetime helpers.

Every timestamp the sync engine stores or compares (token expiry, watch
expiration, message internal dates, sync windows) is timezone-aware UTC.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current UTC datetime with timezone info."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Normalize a datetime to aware UTC.

    Naive values are assumed to already be UTC (rows read back from drivers
    that drop tzinfo); aware values are converted.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def from_timestamp_ms_utc(timestamp_ms: int | str) -> datetime:
    """
    Create a UTC-aware datetime from a millisecond Unix timestamp.

    Gmail reports ``internalDate`` and watch ``expiration`` as millisecond
    strings, so string input is accepted.

    Args:
        timestamp_ms: Unix timestamp in milliseconds (int or numeric string)

    Returns:
        UTC-aware datetime
    """
    return datetime.fromtimestamp(int(timestamp_ms) / 1000, tz=UTC)


def to_epoch_seconds(dt: datetime) -> int:
    """Return whole seconds since the epoch (Gmail ``after:`` queries).

    Naive values are read as UTC, matching ``ensure_utc``.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp())
