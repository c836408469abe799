"""Decoding of Pub/Sub push envelopes for mailbox change notifications.

Pub/Sub posts ``{"message": {"data": <base64 JSON>, "attributes": {...},
"messageId": ...}, "subscription": ...}``. The mailbox address and history id
are read from attributes when present, otherwise from the decoded data.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
from dataclasses import dataclass
from typing import Any

from mailsync.domain.exceptions import InvalidPushNotificationError
from mailsync.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PushNotification:
    email_address: str
    history_id: str
    message_id: str | None = None


class PushNotificationParser:
    def __init__(self, webhook_token: str | None = None) -> None:
        self.webhook_token = webhook_token or None

    def verify_token(self, token: str | None) -> bool:
        """Compare the token appended to the push URL; accepted when none is configured."""
        if self.webhook_token is None:
            logger.warning("PUBSUB_WEBHOOK_TOKEN not set; push notifications are not verified")
            return True
        if not token:
            return False
        return hmac.compare_digest(token.encode(), self.webhook_token.encode())

    @staticmethod
    def validate_envelope(body: Any) -> bool:
        if not isinstance(body, dict):
            return False
        message = body.get("message")
        if not isinstance(message, dict):
            return False
        return bool(message.get("data") or message.get("attributes"))

    def parse(self, body: Any) -> PushNotification:
        if not self.validate_envelope(body):
            raise InvalidPushNotificationError("Push envelope has no message data or attributes")
        message = body["message"]
        attributes = message.get("attributes") or {}
        payload = _decode_data(message.get("data")) if message.get("data") else {}

        email_address = attributes.get("emailAddress") or payload.get("emailAddress")
        history_id = attributes.get("historyId") or payload.get("historyId")
        if not email_address or history_id in (None, ""):
            raise InvalidPushNotificationError("Push notification missing emailAddress or historyId")
        return PushNotification(
            email_address=str(email_address).strip().lower(),
            history_id=str(history_id),
            message_id=message.get("messageId") or message.get("message_id") or attributes.get("messageId"),
        )


def _decode_data(data: Any) -> dict[str, Any]:
    if not isinstance(data, str):
        raise InvalidPushNotificationError("Push message data must be a base64 string")
    try:
        normalized = data.strip().translate(str.maketrans("-_", "+/"))
        decoded = base64.b64decode(normalized + "=" * (-len(normalized) % 4))
        payload = json.loads(decoded.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidPushNotificationError(f"Push message data is not base64 JSON: {e}") from e
    if not isinstance(payload, dict):
        raise InvalidPushNotificationError("Push message data must decode to a JSON object")
    return payload
