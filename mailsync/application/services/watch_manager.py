"""Push-notification watch lifecycle: setup, renewal, stop and expiry lookups.

The provider has no renew primitive; a watch is renewed by registering it
again, which returns a fresh cursor and expiration.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from mailsync.application.dtos.connection import ConnectionResult, WatchSubscriptionResult
from mailsync.application.dtos.sync import WatchRenewalResult, WatchSetupResult, WatchStopResult
from mailsync.application.interfaces.repositories import (
    IConnectionRepository,
    IWatchSubscriptionRepository,
)
from mailsync.application.interfaces.services import IMailboxClientFactory
from mailsync.application.services.credential_service import CredentialService
from mailsync.application.services.error_handler import ErrorHandler
from mailsync.application.services.performance_monitor import PerformanceMonitor
from mailsync.core.constants import MAX_STORED_ERROR_LENGTH
from mailsync.domain.enums import WatchStatus
from mailsync.domain.exceptions import InvalidGrantError, ResourceNotFoundException
from mailsync.shared.telemetry.logging import get_logger
from mailsync.shared.utils.datetime import utc_now

logger = get_logger(__name__)

WATCH_SETUP_OPERATION = "watch-setup"


class WatchManager:
    def __init__(
        self,
        connection_repo: IConnectionRepository,
        subscription_repo: IWatchSubscriptionRepository,
        credential_service: CredentialService,
        client_factory: IMailboxClientFactory,
        performance_monitor: PerformanceMonitor,
        error_handler: ErrorHandler,
        topic: str,
        label_ids: list[str] | None = None,
        renewal_lookahead: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.connection_repo = connection_repo
        self.subscription_repo = subscription_repo
        self.credential_service = credential_service
        self.client_factory = client_factory
        self.performance_monitor = performance_monitor
        self.error_handler = error_handler
        self.topic = topic
        self.label_ids = label_ids or ["INBOX"]
        self.renewal_lookahead = renewal_lookahead
        self._clock = clock

    async def setup_watch(self, connection_id: str) -> WatchSetupResult:
        """Register push notifications for a connection. Never raises."""
        try:
            return await self.performance_monitor.track_operation(
                WATCH_SETUP_OPERATION,
                lambda: self._setup_watch(connection_id),
                {"connection_id": connection_id},
            )
        except InvalidGrantError as e:
            await self._record_watch_error(connection_id, e.message)
            return WatchSetupResult(success=False, error=e.message, requires_reconnect=True)
        except Exception as e:
            error = self.error_handler.format_error(e)
            logger.error("Watch setup failed for connection %s: %s", connection_id, error)
            await self._record_watch_error(connection_id, error)
            return WatchSetupResult(success=False, error=error)

    async def _setup_watch(self, connection_id: str) -> WatchSetupResult:
        connection = await self._require_connection(connection_id)
        # Refresh only once expired; registration itself is a single call.
        access_token = await self.credential_service.ensure_fresh_token(connection)
        client = self.client_factory.for_access_token(access_token)

        registration = await self.error_handler.with_retry(
            lambda: client.watch(self.topic, self.label_ids),
            operation_name="users.watch",
        )
        now = self._clock()
        await self.subscription_repo.upsert_active(
            user_id=connection.user_id,
            connection_id=connection.id,
            history_id=registration.history_id,
            expiration=registration.expiration,
            renewed_at=now,
        )
        await self.connection_repo.mark_watch_enabled(
            connection.id, history_id=registration.history_id, setup_at=now
        )
        logger.info(
            "Watch active for connection %s: history_id=%s expires=%s",
            connection.id,
            registration.history_id,
            registration.expiration.isoformat(),
        )
        return WatchSetupResult(
            success=True,
            history_id=registration.history_id,
            expiration=registration.expiration.isoformat(),
        )

    async def register_or_renew(self, subscription_id: str) -> WatchRenewalResult:
        """Renew a subscription by re-registering the watch. Never raises."""
        subscription = await self.subscription_repo.get_by_id(subscription_id)
        if subscription is None:
            return WatchRenewalResult(
                subscription_id=subscription_id,
                connection_id=None,
                success=False,
                error=f"Subscription not found: {subscription_id}",
            )
        await self.subscription_repo.set_status(subscription_id, WatchStatus.RENEWING)
        result = await self.setup_watch(subscription.connection_id)
        if result.success:
            # setup_watch upserts the row back to active with renewal_attempts reset.
            return WatchRenewalResult(
                subscription_id=subscription_id,
                connection_id=subscription.connection_id,
                success=True,
            )
        await self.subscription_repo.set_status(
            subscription_id,
            WatchStatus.FAILED,
            last_error=(result.error or "Watch renewal failed")[:MAX_STORED_ERROR_LENGTH],
            increment_attempts=True,
        )
        logger.warning(
            "Watch renewal failed for subscription %s: %s", subscription_id, result.error
        )
        return WatchRenewalResult(
            subscription_id=subscription_id,
            connection_id=subscription.connection_id,
            success=False,
            error=result.error,
        )

    renew_watch = register_or_renew

    async def stop_watch(self, connection_id: str) -> WatchStopResult:
        """Stop push notifications. Already-stopped connections succeed without a provider call."""
        try:
            connection = await self._require_connection(connection_id)
            if not connection.watch_enabled:
                await self.subscription_repo.mark_expired_for_connection(connection_id)
                return WatchStopResult(
                    connection_id=connection_id, success=True, already_stopped=True
                )
            access_token = await self.credential_service.ensure_fresh_token(connection)
            client = self.client_factory.for_access_token(access_token)
            await self.error_handler.with_retry(client.stop, operation_name="users.stop")
            await self.subscription_repo.mark_expired_for_connection(connection_id)
            await self.connection_repo.mark_watch_disabled(connection_id)
            logger.info("Watch stopped for connection %s", connection_id)
            return WatchStopResult(connection_id=connection_id, success=True)
        except InvalidGrantError as e:
            return WatchStopResult(connection_id=connection_id, success=False, error=e.message)
        except Exception as e:
            error = self.error_handler.format_error(e)
            logger.error("Stopping watch failed for connection %s: %s", connection_id, error)
            return WatchStopResult(connection_id=connection_id, success=False, error=error)

    async def get_watch_status(self, connection_id: str) -> WatchSubscriptionResult | None:
        return await self.subscription_repo.get_by_connection_id(connection_id)

    async def find_expiring_soon(
        self, now: datetime | None = None
    ) -> list[WatchSubscriptionResult]:
        """Active subscriptions expiring within the renewal lookahead (24h by default)."""
        cutoff = (now or self._clock()) + self.renewal_lookahead
        return await self.subscription_repo.list_active_expiring_before(cutoff)

    async def _require_connection(self, connection_id: str) -> ConnectionResult:
        connection = await self.connection_repo.get_by_id(connection_id)
        if connection is None:
            raise ResourceNotFoundException("mailbox_connection", connection_id)
        return connection

    async def _record_watch_error(self, connection_id: str, error: str) -> None:
        try:
            await self.connection_repo.set_watch_error(
                connection_id, error[:MAX_STORED_ERROR_LENGTH]
            )
        except Exception:
            logger.exception("Could not store watch error for connection %s", connection_id)

