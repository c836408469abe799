"""Decode Gmail API message resources (format=full) into FetchedMessage."""

from __future__ import annotations

import base64
import binascii
import re
from email.utils import getaddresses
from html import unescape
from typing import Any

from mailsync.application.dtos.provider import FetchedMessage
from mailsync.shared.telemetry.logging import get_logger
from mailsync.shared.utils.datetime import from_timestamp_ms_utc

logger = get_logger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_BLOCK_RE = re.compile(r"<\s*(br|/p|/div|/tr|/li)\s*/?>", re.IGNORECASE)
_STRIP_RE = re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)


def decode_base64url(data: str) -> str:
    """Decode Gmail's unpadded base64url body data to text."""
    try:
        raw = base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))
    except (binascii.Error, ValueError):
        logger.debug("Undecodable body part skipped")
        return ""
    return raw.decode("utf-8", errors="replace")


def html_to_text(html: str) -> str:
    text = _STRIP_RE.sub("", html)
    text = _BLOCK_RE.sub("\n", text)
    text = unescape(_TAG_RE.sub("", text))
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def _find_part(payload: dict[str, Any], mime_type: str) -> str | None:
    """Depth-first search for the first body of mime_type, skipping attachments."""
    if payload.get("mimeType") == mime_type and not payload.get("filename"):
        data = (payload.get("body") or {}).get("data")
        if data:
            return decode_base64url(data)
    for part in payload.get("parts") or []:
        found = _find_part(part, mime_type)
        if found:
            return found
    return None


def extract_plain_body(payload: dict[str, Any]) -> str | None:
    """text/plain body, else text/html converted to text."""
    plain = _find_part(payload, "text/plain")
    if plain:
        return plain.strip()
    html = _find_part(payload, "text/html")
    if html:
        return html_to_text(html)
    return None


def parse_headers(payload: dict[str, Any]) -> dict[str, str]:
    """Header name (lower-cased) to value; first occurrence wins."""
    headers: dict[str, str] = {}
    for header in payload.get("headers") or []:
        name = (header.get("name") or "").lower()
        if name and name not in headers:
            headers[name] = header.get("value") or ""
    return headers


def parse_gmail_message(msg: dict[str, Any]) -> FetchedMessage:
    payload = msg.get("payload") or {}
    headers = parse_headers(payload)
    internal_date = msg.get("internalDate")
    recipients = [addr for _, addr in getaddresses([headers.get("to", "")]) if addr]
    return FetchedMessage(
        message_id=msg["id"],
        thread_id=msg.get("threadId"),
        from_address=headers.get("from") or None,
        to_addresses=recipients,
        subject=headers.get("subject") or None,
        snippet=unescape(msg["snippet"]) if msg.get("snippet") else None,
        internal_date=from_timestamp_ms_utc(internal_date) if internal_date else None,
        plain_body=extract_plain_body(payload),
        label_ids=list(msg.get("labelIds") or []),
    )
