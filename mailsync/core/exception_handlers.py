"""Exception handlers for the trigger API.

Every error body has the same shape: {"error": <code>, "message": <text>,
"details": {...}}. Domain errors carry their own code; the table below gives
the HTTP status for each.
"""

import logging
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mailsync.core.config import get_settings
from mailsync.domain.exceptions import MailSyncException

logger = logging.getLogger(__name__)

ERROR_CODE_STATUS: dict[str, HTTPStatus] = {
    "RESOURCE_NOT_FOUND": HTTPStatus.NOT_FOUND,
    "INVALID_PUSH_NOTIFICATION": HTTPStatus.BAD_REQUEST,
    # User must reconnect; retrying the same request cannot succeed.
    "INVALID_GRANT": HTTPStatus.CONFLICT,
    "HISTORY_GAP": HTTPStatus.CONFLICT,
    "CREDENTIAL_REFRESH_ERROR": HTTPStatus.BAD_GATEWAY,
    "PROVIDER_ERROR": HTTPStatus.BAD_GATEWAY,
    "SERVICE_UNAVAILABLE": HTTPStatus.SERVICE_UNAVAILABLE,
}


def _error_body(code: str, message: Any, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": code, "message": message}
    if details is not None:
        body["details"] = details
    return body


async def _mailsync_exception_handler(request: Request, exc: MailSyncException) -> JSONResponse:
    status = ERROR_CODE_STATUS.get(exc.error_code, HTTPStatus.BAD_REQUEST)
    if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.warning("%s %s failed: [%s] %s", request.method, request.url.path, exc.error_code, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())


async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
        content=_error_body("VALIDATION_ERROR", "Request validation failed", exc.errors()),
    )


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body("HTTP_ERROR", exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """500 with the exception text only in debug mode."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    message = str(exc) if get_settings().debug else "Internal server error"
    return JSONResponse(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        content=_error_body("INTERNAL_ERROR", message),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MailSyncException, _mailsync_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
