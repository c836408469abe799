"""Gmail push notifications (Cloud Pub/Sub push subscription).

Pub/Sub is configured with ``?token=<PUBSUB_WEBHOOK_TOKEN>`` on the push URL.
Notifications for unknown mailboxes are acknowledged so they are not
redelivered.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from mailsync.api.v1.dependencies import get_push_parser, get_sync_services
from mailsync.application.services.push_notifications import PushNotificationParser
from mailsync.infrastructure.services.sync_factory import SyncServices
from mailsync.schemas.sync import WebhookAckResponse
from mailsync.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/gmail", response_model=WebhookAckResponse)
async def gmail_push_notification(
    payload: Annotated[dict[str, Any], Body()],
    services: Annotated[SyncServices, Depends(get_sync_services)],
    parser: Annotated[PushNotificationParser, Depends(get_push_parser)],
    token: Annotated[str | None, Query()] = None,
) -> WebhookAckResponse:
    """Run a history sync for the mailbox named in the notification."""
    if not parser.verify_token(token):
        raise HTTPException(status_code=401, detail="Invalid or missing webhook token")
    notification = parser.parse(payload)
    logger.info(
        "Push notification for %s (historyId=%s)",
        notification.email_address,
        notification.history_id,
    )

    connection = await services.connection_repo.get_by_email_address(
        notification.email_address
    )
    if connection is None:
        logger.warning("No active connection for %s; acknowledging", notification.email_address)
        return WebhookAckResponse(detail="No active connection for mailbox")

    if not connection.last_history_id:
        # No cursor yet: a full sync establishes one on the next watch setup.
        sync = await services.sync_executor.execute_auto_sync(connection)
        return WebhookAckResponse(
            connection_id=connection.id,
            detail="; ".join(sync.errors) or None,
            new_messages=sync.emails_synced,
            processed_transactions=sync.transactions_processed,
            used_full_sync=True,
        )

    result = await services.history_sync.sync_from_history(
        connection.id, connection.last_history_id
    )
    if not result.success:
        logger.error("History sync failed for connection %s: %s", connection.id, result.error)
    return WebhookAckResponse(
        connection_id=connection.id,
        detail=result.error,
        new_messages=result.new_messages,
        processed_transactions=result.processed_transactions,
        new_history_id=result.new_history_id,
        used_full_sync=result.used_full_sync,
    )
