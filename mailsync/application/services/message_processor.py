"""Default message processor used until an extraction pipeline is wired in."""

from __future__ import annotations

from mailsync.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class NullMessageProcessor:
    """Accepts every stored message and produces no records."""

    async def process_one(self, stored_message_id: str) -> list[str]:
        logger.debug("No processor configured; skipping stored message %s", stored_message_id)
        return []
