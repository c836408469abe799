"""Gmail integration: API client, message decoding, OAuth refresh."""

from mailsync.infrastructure.external.gmail.client import (
    GmailClientFactory,
    GmailMailboxClient,
    translate_http_error,
)
from mailsync.infrastructure.external.gmail.message_parser import parse_gmail_message
from mailsync.infrastructure.external.gmail.oauth import GoogleCredentialRefresher

__all__ = [
    "GmailClientFactory",
    "GmailMailboxClient",
    "GoogleCredentialRefresher",
    "parse_gmail_message",
    "translate_http_error",
]
