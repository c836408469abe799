"""PushNotificationParser unit tests."""

import base64
import json

import pytest

from mailsync.application.services.push_notifications import PushNotificationParser
from mailsync.domain.exceptions import InvalidPushNotificationError


def _envelope(payload: dict, urlsafe: bool = False, **message) -> dict:
    raw = json.dumps(payload).encode()
    encoded = base64.urlsafe_b64encode(raw) if urlsafe else base64.b64encode(raw)
    return {
        "message": {"data": encoded.decode().rstrip("="), "messageId": "pm-1", **message},
        "subscription": "projects/p/subscriptions/s",
    }


def test_parses_base64_json_data() -> None:
    parser = PushNotificationParser()
    notification = parser.parse(_envelope({"emailAddress": "Owner@Example.com", "historyId": 1234}))
    assert notification.email_address == "owner@example.com"
    assert notification.history_id == "1234"
    assert notification.message_id == "pm-1"


def test_parses_urlsafe_data() -> None:
    parser = PushNotificationParser()
    payload = {"emailAddress": "a@example.com", "historyId": "9", "pad": "??>>"}
    assert parser.parse(_envelope(payload, urlsafe=True)).history_id == "9"


def test_attributes_take_precedence() -> None:
    parser = PushNotificationParser()
    body = {"message": {"attributes": {"emailAddress": "x@example.com", "historyId": "5"}}}
    notification = parser.parse(body)
    assert (notification.email_address, notification.history_id) == ("x@example.com", "5")


@pytest.mark.parametrize(
    "body",
    [
        None,
        {},
        {"message": "nope"},
        {"message": {}},
        {"message": {"data": "!!!not-base64!!!"}},
        {"message": {"data": base64.b64encode(b"[1, 2]").decode()}},
        {"message": {"attributes": {"emailAddress": "a@example.com"}}},
    ],
)
def test_rejects_malformed_envelopes(body) -> None:
    with pytest.raises(InvalidPushNotificationError):
        PushNotificationParser().parse(body)


def test_token_verification() -> None:
    assert PushNotificationParser().verify_token(None)
    parser = PushNotificationParser("s3cret")
    assert parser.verify_token("s3cret")
    assert not parser.verify_token("wrong")
    assert not parser.verify_token(None)
