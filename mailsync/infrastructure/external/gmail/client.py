"""Gmail API client for one mailbox (googleapiclient, requests run in threads)."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from mailsync.application.dtos.provider import (
    FetchedMessage,
    HistoryPage,
    MessageListPage,
    WatchRegistration,
)
from mailsync.domain.exceptions import HistoryGapError, MailboxProviderError
from mailsync.infrastructure.external.gmail.message_parser import parse_gmail_message
from mailsync.shared.telemetry.logging import get_logger
from mailsync.shared.utils.datetime import from_timestamp_ms_utc

logger = get_logger(__name__)

HISTORY_TYPES = ["messageAdded"]
REQUEST_TIMEOUT_SECONDS = 60


def _error_details(e: HttpError) -> tuple[str, str | None]:
    """Message and first reason from a Gmail error body."""
    message = str(e)
    reason: str | None = None
    try:
        body = json.loads(e.content.decode("utf-8")) if e.content else {}
    except (UnicodeDecodeError, ValueError):
        body = {}
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        message = error.get("message") or message
        errors = error.get("errors") or []
        if errors and isinstance(errors[0], dict):
            reason = errors[0].get("reason")
    return message, reason


def translate_http_error(e: HttpError) -> MailboxProviderError:
    """Map googleapiclient HttpError to MailboxProviderError (status, reason, Retry-After)."""
    status = getattr(e.resp, "status", None)
    message, reason = _error_details(e)
    retry_after_raw = e.resp.get("retry-after") if hasattr(e.resp, "get") else None
    try:
        retry_after = float(retry_after_raw) if retry_after_raw is not None else None
    except ValueError:
        retry_after = None
    return MailboxProviderError(
        message,
        status_code=int(status) if status is not None else None,
        reason=reason,
        retry_after=retry_after,
    )


class GmailMailboxClient:
    """Implements IMailboxClient for the authenticated user ("me").

    The discovery service is built once per client, off the event loop. Each
    request executes on its own AuthorizedHttp over a fresh httplib2.Http;
    httplib2.Http is not thread-safe and fetches run concurrently in worker
    threads.
    """

    def __init__(self, access_token: str, service: Any = None) -> None:
        self._credentials = Credentials(token=access_token)
        self._service = service
        self._service_lock = asyncio.Lock()

    async def _get_service(self) -> Any:
        async with self._service_lock:
            if self._service is None:
                self._service = await asyncio.to_thread(
                    build, "gmail", "v1", credentials=self._credentials, cache_discovery=False
                )
        return self._service

    def _new_http(self) -> AuthorizedHttp:
        return AuthorizedHttp(self._credentials, http=httplib2.Http(timeout=REQUEST_TIMEOUT_SECONDS))

    def _run(self, request: Any) -> dict[str, Any]:
        return request.execute(http=self._new_http())

    async def _execute(self, request: Any) -> dict[str, Any]:
        try:
            return await asyncio.to_thread(self._run, request)
        except HttpError as e:
            raise translate_http_error(e) from e

    async def list_messages(
        self, query: str, page_size: int = 50, page_token: str | None = None
    ) -> MessageListPage:
        params: dict[str, Any] = {"userId": "me", "q": query, "maxResults": page_size}
        if page_token:
            params["pageToken"] = page_token
        service = await self._get_service()
        result = await self._execute(service.users().messages().list(**params))
        return MessageListPage(
            message_ids=[m["id"] for m in result.get("messages", []) if m.get("id")],
            next_page_token=result.get("nextPageToken"),
            result_size_estimate=result.get("resultSizeEstimate"),
        )

    async def get_message(self, message_id: str) -> FetchedMessage:
        service = await self._get_service()
        request = service.users().messages().get(userId="me", id=message_id, format="full")
        return parse_gmail_message(await self._execute(request))

    async def list_history(
        self,
        start_history_id: str,
        page_token: str | None = None,
        label_id: str | None = "INBOX",
        page_size: int = 100,
    ) -> HistoryPage:
        """Raises HistoryGapError when Gmail no longer has history for start_history_id."""
        params: dict[str, Any] = {
            "userId": "me",
            "startHistoryId": start_history_id,
            "historyTypes": HISTORY_TYPES,
            "maxResults": page_size,
        }
        if label_id:
            params["labelId"] = label_id
        if page_token:
            params["pageToken"] = page_token
        service = await self._get_service()
        request = service.users().history().list(**params)
        try:
            result = await asyncio.to_thread(self._run, request)
        except HttpError as e:
            if e.resp.status in (404, 410):
                raise HistoryGapError(start_history_id, status_code=e.resp.status) from e
            raise translate_http_error(e) from e
        history_id = result.get("historyId")
        return HistoryPage(
            records=result.get("history", []),
            next_page_token=result.get("nextPageToken"),
            history_id=str(history_id) if history_id else None,
        )

    async def get_profile_history_id(self) -> str:
        service = await self._get_service()
        profile = await self._execute(service.users().getProfile(userId="me"))
        history_id = profile.get("historyId")
        if not history_id:
            raise MailboxProviderError("Gmail profile did not return historyId")
        return str(history_id)

    async def watch(self, topic: str, label_ids: list[str]) -> WatchRegistration:
        body = {"topicName": topic, "labelIds": label_ids}
        service = await self._get_service()
        response = await self._execute(service.users().watch(userId="me", body=body))
        logger.debug("Gmail watch registered: historyId=%s", response.get("historyId"))
        return WatchRegistration(
            history_id=str(response["historyId"]),
            expiration=from_timestamp_ms_utc(response["expiration"]),
        )

    async def stop(self) -> None:
        service = await self._get_service()
        await self._execute(service.users().stop(userId="me"))


class GmailClientFactory:
    """Implements IMailboxClientFactory."""

    def for_access_token(self, access_token: str) -> GmailMailboxClient:
        return GmailMailboxClient(access_token)
