"""Google OAuth refresh-token grant over httpx."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import httpx

from mailsync.application.dtos.provider import RefreshedCredential
from mailsync.domain.exceptions import CredentialRefreshError, InvalidGrantError
from mailsync.shared.telemetry.logging import get_logger
from mailsync.shared.utils.datetime import utc_now

logger = get_logger(__name__)

GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
DEFAULT_EXPIRES_IN = 3600


class GoogleCredentialRefresher:
    """Implements ICredentialRefresher against Google's token endpoint.

    Pass a shared httpx.AsyncClient (created in the app lifespan) to reuse
    connections; otherwise a client is opened per refresh.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_endpoint: str = GOOGLE_TOKEN_ENDPOINT,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_endpoint = token_endpoint
        self._http_client = http_client
        self._timeout = timeout

    async def refresh(self, refresh_token: str) -> RefreshedCredential:
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.token_endpoint, data=data, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self.token_endpoint, data=data)
        except httpx.HTTPError as e:
            raise CredentialRefreshError(f"Token endpoint unreachable: {e}") from e

        if response.status_code != 200:
            error, description = _parse_error(response)
            logger.error(
                "Google token refresh failed: status=%d error=%s",
                response.status_code,
                error,
            )
            if error == "invalid_grant":
                raise InvalidGrantError(
                    f"invalid_grant: {description or 'Token has been expired or revoked.'}"
                )
            raise CredentialRefreshError(
                f"Token refresh failed with status {response.status_code}: {error or 'unknown'}",
                status_code=response.status_code,
            )

        try:
            token_data: dict[str, Any] = response.json()
            access_token = token_data["access_token"]
        except (ValueError, KeyError) as e:
            raise CredentialRefreshError("Token endpoint returned no access_token") from e
        expires_in = int(token_data.get("expires_in") or DEFAULT_EXPIRES_IN)
        return RefreshedCredential(
            access_token=access_token,
            expires_at=utc_now() + timedelta(seconds=expires_in),
            refresh_token=token_data.get("refresh_token"),
        )


def _parse_error(response: httpx.Response) -> tuple[str | None, str | None]:
    try:
        body = response.json()
    except ValueError:
        return None, None
    if not isinstance(body, dict):
        return None, None
    return body.get("error"), body.get("error_description")
