"""Retry with exponential backoff, plus classification of provider failures.

Status codes are read from MailboxProviderError.status_code, googleapiclient
HttpError.resp.status, or httpx.HTTPStatusError.response.status_code, so the
handler works on translated and raw vendor errors alike.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from mailsync.core.constants import (
    GENERIC_RETRY_DELAY_SECONDS,
    QUOTA_EXCEEDED_DEFAULT_DELAY_SECONDS,
    RATE_LIMIT_DEFAULT_DELAY_SECONDS,
)
from mailsync.domain.enums import ErrorCategory
from mailsync.domain.exceptions import HistoryGapError, InvalidGrantError
from mailsync.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

NON_RETRYABLE_STATUS_CODES = frozenset({400, 401, 403, 404})
RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})
QUOTA_REASONS = frozenset({"quotaExceeded", "dailyLimitExceeded"})
INVALID_GRANT_MARKERS = (
    "invalid_grant",
    "Invalid Credentials",
    "Token has been expired or revoked",
)


@dataclass(frozen=True)
class RetryOptions:
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0


def get_status_code(error: BaseException) -> int | None:
    """HTTP status carried by error, if any."""
    status = getattr(error, "status_code", None)
    if status is None:
        resp = getattr(error, "resp", None)
        status = getattr(resp, "status", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _error_reason(error: BaseException) -> str | None:
    reason = getattr(error, "reason", None)
    return reason if isinstance(reason, str) else None


def _error_message(error: BaseException) -> str:
    message = getattr(error, "message", None)
    return message if isinstance(message, str) and message else str(error)


def is_invalid_grant_error(error: BaseException) -> bool:
    """True when a refresh failure means the user must reconnect."""
    if isinstance(error, InvalidGrantError):
        return True
    if getattr(error, "error_code", None) == "invalid_grant":
        return True
    json_body = getattr(getattr(error, "response", None), "json", None)
    if callable(json_body):
        try:
            body = json_body()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error") == "invalid_grant":
            return True
    message = _error_message(error)
    return any(marker in message for marker in INVALID_GRANT_MARKERS)


class ErrorHandler:
    """Wraps provider calls in bounded retries and classifies their failures."""

    def __init__(
        self,
        defaults: RetryOptions | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.defaults = defaults or RetryOptions()
        self._sleep = sleep

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        options: RetryOptions | None = None,
        operation_name: str | None = None,
    ) -> T:
        """Run operation up to max_retries + 1 times.

        Non-retryable errors are re-raised on the first failure; otherwise the
        last error is re-raised once attempts are exhausted.
        """
        opts = options or self.defaults
        name = operation_name or getattr(operation, "__name__", "operation")

        def log_retry(retry_state: RetryCallState) -> None:
            logger.info(
                "%s failed (attempt %s/%s), retrying in %.2fs: %s",
                name,
                retry_state.attempt_number,
                opts.max_retries + 1,
                retry_state.next_action.sleep if retry_state.next_action else 0.0,
                self.format_error(retry_state.outcome.exception()),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(opts.max_retries + 1),
            wait=lambda retry_state: self.compute_delay(retry_state.attempt_number - 1, opts),
            retry=retry_if_exception(lambda e: not self.is_non_retryable_error(e)),
            sleep=self._sleep,
            before_sleep=log_retry,
            reraise=True,
        )
        try:
            return await retrying(operation)
        except Exception as e:
            if self.is_non_retryable_error(e):
                logger.debug("%s failed with non-retryable error: %s", name, self.format_error(e))
            else:
                logger.warning("%s failed after retries: %s", name, self.format_error(e))
            raise

    @staticmethod
    def compute_delay(attempt: int, options: RetryOptions) -> float:
        """Backoff before retry number attempt + 1, capped at max_delay."""
        return min(options.max_delay, options.initial_delay * options.backoff_multiplier**attempt)

    def is_non_retryable_error(self, error: BaseException) -> bool:
        """Client errors (400/401/403/404) are final, except 403 rate-limit or quota responses."""
        status = get_status_code(error)
        if status not in NON_RETRYABLE_STATUS_CODES:
            return False
        return not (self.is_rate_limit_error(error) or self.is_quota_exceeded_error(error))

    def is_rate_limit_error(self, error: BaseException) -> bool:
        if get_status_code(error) == 429:
            return True
        if _error_reason(error) in RATE_LIMIT_REASONS:
            return True
        return "rate limit" in _error_message(error).lower()

    def is_quota_exceeded_error(self, error: BaseException) -> bool:
        if get_status_code(error) != 403:
            return False
        if _error_reason(error) in QUOTA_REASONS:
            return True
        return "quota" in _error_message(error).lower()

    def get_retry_delay(self, error: BaseException) -> float:
        """Seconds to wait before coming back: Retry-After, else per-class default."""
        retry_after = _retry_after_seconds(error)
        if retry_after is not None:
            return retry_after
        if self.is_rate_limit_error(error):
            return RATE_LIMIT_DEFAULT_DELAY_SECONDS
        if self.is_quota_exceeded_error(error):
            return QUOTA_EXCEEDED_DEFAULT_DELAY_SECONDS
        return GENERIC_RETRY_DELAY_SECONDS

    def classify(self, error: BaseException) -> ErrorCategory:
        if isinstance(error, HistoryGapError):
            return ErrorCategory.HISTORY_GAP
        if is_invalid_grant_error(error):
            return ErrorCategory.INVALID_GRANT
        if self.is_quota_exceeded_error(error):
            return ErrorCategory.QUOTA_EXCEEDED
        if self.is_rate_limit_error(error):
            return ErrorCategory.RATE_LIMITED
        if self.is_non_retryable_error(error):
            return ErrorCategory.FATAL
        return ErrorCategory.TRANSIENT

    @staticmethod
    def format_error(error: BaseException) -> str:
        """Render as "[code] message" for logs and stored error columns."""
        code = get_status_code(error) or getattr(error, "error_code", None) or "UNKNOWN"
        return f"[{code}] {_error_message(error)}"


def _retry_after_seconds(error: BaseException) -> float | None:
    value: Any = getattr(error, "retry_after", None)
    if value is None:
        headers = getattr(getattr(error, "response", None), "headers", None)
        if headers is None:
            headers = getattr(error, "resp", None)
        if headers is not None and hasattr(headers, "get"):
            value = headers.get("retry-after") or headers.get("Retry-After")
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None
