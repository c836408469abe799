"""Access-token freshness for linked mailboxes.

Refreshes when the stored token expires within a buffer, persists the new
access token and any rotated refresh token, and resets the connection when
the grant itself is gone (revoked or expired refresh token).
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from mailsync.application.dtos.connection import ConnectionResult
from mailsync.application.interfaces.repositories import IConnectionRepository
from mailsync.application.interfaces.services import ICredentialRefresher
from mailsync.application.services.error_handler import is_invalid_grant_error
from mailsync.core.constants import MAX_STORED_ERROR_LENGTH, RECONNECT_MESSAGE
from mailsync.domain.exceptions import CredentialRefreshError, InvalidGrantError
from mailsync.shared.telemetry.logging import get_logger
from mailsync.shared.utils.datetime import ensure_utc, utc_now

logger = get_logger(__name__)


class CredentialService:
    def __init__(
        self,
        connection_repo: IConnectionRepository,
        refresher: ICredentialRefresher,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.connection_repo = connection_repo
        self.refresher = refresher
        self._clock = clock

    def needs_refresh(self, connection: ConnectionResult, buffer: timedelta) -> bool:
        """True when there is no usable token or it expires within buffer."""
        if not connection.access_token or connection.token_expiry is None:
            return True
        return ensure_utc(connection.token_expiry) <= self._clock() + buffer

    async def ensure_fresh_token(
        self, connection: ConnectionResult, buffer: timedelta = timedelta(0)
    ) -> str:
        """Return a usable access token, refreshing first when needed.

        Raises:
            InvalidGrantError: The user must reconnect; the connection has been reset.
            CredentialRefreshError: Refresh failed for another reason; state unchanged.
        """
        if not self.needs_refresh(connection, buffer):
            return connection.access_token  # type: ignore[return-value]
        return await self.refresh(connection)

    async def refresh(self, connection: ConnectionResult) -> str:
        """Run the refresh grant and persist the result."""
        if not connection.refresh_token:
            await self._reset(connection, "No refresh token stored")
            raise InvalidGrantError(RECONNECT_MESSAGE)

        logger.info("Refreshing access token for connection %s", connection.id)
        try:
            credential = await self.refresher.refresh(connection.refresh_token)
        except Exception as e:
            if is_invalid_grant_error(e):
                await self._reset(connection, str(e))
                raise InvalidGrantError(RECONNECT_MESSAGE) from e
            if isinstance(e, CredentialRefreshError):
                raise
            raise CredentialRefreshError(f"Token refresh failed: {e}") from e

        rotated = (
            credential.refresh_token
            if credential.refresh_token and credential.refresh_token != connection.refresh_token
            else None
        )
        await self.connection_repo.update_credentials(
            connection.id,
            access_token=credential.access_token,
            token_expiry=credential.expires_at,
            refresh_token=rotated,
        )
        if rotated:
            logger.info("Stored rotated refresh token for connection %s", connection.id)
        return credential.access_token

    async def _reset(self, connection: ConnectionResult, reason: str) -> None:
        logger.warning(
            "Refresh grant rejected for connection %s (%s); marking invalid",
            connection.id,
            reason,
        )
        await self.connection_repo.reset_credentials(
            connection.id, f"{RECONNECT_MESSAGE} ({reason})"[:MAX_STORED_ERROR_LENGTH]
        )
