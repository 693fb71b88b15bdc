from __future__ import annotations

import httpx
import pytest

from offboardly.core.errors import AuthenticationError
from offboardly.services.crypto.credentials import DirectoryCredentials
from offboardly.services.directory.token import acquire_token, token_endpoint


AUTHORITY = "https://login.microsoftonline.com"
SCOPE = "https://graph.microsoft.com/.default"


def _credentials(secret: str | None = "s3cret") -> DirectoryCredentials:
    return DirectoryCredentials(client_id="app-1", tenant_id="dir-1", client_secret=secret)


def test_token_endpoint_targets_directory_tenant() -> None:
    assert token_endpoint(AUTHORITY + "/", "dir-1") == f"{AUTHORITY}/dir-1/oauth2/v2.0/token"


@pytest.mark.asyncio
async def test_client_credentials_exchange(directory, http_client) -> None:
    token = await acquire_token(_credentials(), http_client=http_client, authority=AUTHORITY, scope=SCOPE)
    assert token == "token-123"
    assert directory.calls == [("POST", "/dir-1/oauth2/v2.0/token")]
    assert directory.token_requests == [
        {
            "client_id": "app-1",
            "client_secret": "s3cret",
            "scope": SCOPE,
            "grant_type": "client_credentials",
        }
    ]


@pytest.mark.asyncio
async def test_missing_secret_fails_without_network(directory, http_client) -> None:
    with pytest.raises(AuthenticationError, match="Client secret required"):
        await acquire_token(_credentials(secret=None), http_client=http_client, authority=AUTHORITY, scope=SCOPE)
    assert directory.calls == []


@pytest.mark.asyncio
async def test_provider_error_description_is_surfaced(directory, http_client) -> None:
    directory.token_status = 401
    directory.token_body = {
        "error": "invalid_client",
        "error_description": "AADSTS7000215: Invalid client secret provided.",
    }
    with pytest.raises(AuthenticationError) as excinfo:
        await acquire_token(_credentials(), http_client=http_client, authority=AUTHORITY, scope=SCOPE)
    assert excinfo.value.message == "AADSTS7000215: Invalid client secret provided."
    assert excinfo.value.error_code == "invalid_client"


@pytest.mark.asyncio
async def test_provider_error_without_description_uses_code(directory, http_client) -> None:
    directory.token_status = 400
    directory.token_body = {"error": "unauthorized_client"}
    with pytest.raises(AuthenticationError, match="unauthorized_client"):
        await acquire_token(_credentials(), http_client=http_client, authority=AUTHORITY, scope=SCOPE)


@pytest.mark.asyncio
async def test_response_without_token_is_rejected(directory, http_client) -> None:
    directory.token_body = {"token_type": "Bearer"}
    with pytest.raises(AuthenticationError, match="did not include an access token"):
        await acquire_token(_credentials(), http_client=http_client, authority=AUTHORITY, scope=SCOPE)


@pytest.mark.asyncio
async def test_network_failure_is_an_authentication_error() -> None:
    def _boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(_boom)) as client:
        with pytest.raises(AuthenticationError):
            await acquire_token(_credentials(), http_client=client, authority=AUTHORITY, scope=SCOPE)
