"""GoogleCredentialRefresher unit tests over httpx.MockTransport."""

import httpx
import pytest

from mailsync.domain.exceptions import CredentialRefreshError, InvalidGrantError
from mailsync.infrastructure.external.gmail.oauth import GoogleCredentialRefresher


def _refresher(handler) -> GoogleCredentialRefresher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleCredentialRefresher("cid", "secret", http_client=client)


@pytest.mark.asyncio
async def test_successful_refresh() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = request.content.decode()
        return httpx.Response(200, json={"access_token": "new", "expires_in": 120})

    credential = await _refresher(handler).refresh("r1")

    assert credential.access_token == "new"
    assert credential.refresh_token is None
    assert "grant_type=refresh_token" in seen["body"]
    assert "refresh_token=r1" in seen["body"]


@pytest.mark.asyncio
async def test_invalid_grant() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400, json={"error": "invalid_grant", "error_description": "Token has been expired or revoked."}
        )

    with pytest.raises(InvalidGrantError):
        await _refresher(handler).refresh("r1")


@pytest.mark.asyncio
async def test_other_failures() -> None:
    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="oops")

    with pytest.raises(CredentialRefreshError) as exc_info:
        await _refresher(server_error).refresh("r1")
    assert not isinstance(exc_info.value, InvalidGrantError)
    assert exc_info.value.status_code == 500

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(CredentialRefreshError):
        await _refresher(unreachable).refresh("r1")
