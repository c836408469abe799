"""Shared utilities: datetime and generators."""

from mailsync.shared.utils.datetime import (
    ensure_utc,
    from_timestamp_ms_utc,
    to_epoch_seconds,
    utc_now,
)
from mailsync.shared.utils.generators import generate_cuid

__all__ = [
    "ensure_utc",
    "from_timestamp_ms_utc",
    "generate_cuid",
    "to_epoch_seconds",
    "utc_now",
]
