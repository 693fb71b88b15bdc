from __future__ import annotations

import logging
from typing import Any

import httpx

from offboardly.core.errors import AuthenticationError
from offboardly.services.crypto.credentials import DirectoryCredentials


logger = logging.getLogger(__name__)

_DEFAULT_ERROR = "Failed to acquire directory access token"


def token_endpoint(authority: str, directory_tenant_id: str) -> str:
    return f"{authority.rstrip('/')}/{directory_tenant_id}/oauth2/v2.0/token"


def _provider_error(response: httpx.Response) -> tuple[str, str | None]:
    # Prefer the provider's machine-readable description when the body carries one.
    try:
        body: Any = response.json()
    except ValueError:
        return f"{_DEFAULT_ERROR} ({response.status_code})", None
    if not isinstance(body, dict):
        return f"{_DEFAULT_ERROR} ({response.status_code})", None
    code = body.get("error")
    message = body.get("error_description") or code or f"{_DEFAULT_ERROR} ({response.status_code})"
    return str(message), str(code) if code else None


async def acquire_token(
    credentials: DirectoryCredentials,
    *,
    http_client: httpx.AsyncClient,
    authority: str,
    scope: str,
) -> str:
    # One client-credentials exchange; no retry, failures abort the record.
    if not credentials.client_secret:
        raise AuthenticationError("Client secret required for app-only directory access")
    url = token_endpoint(authority, credentials.tenant_id)
    form = {
        "client_id": credentials.client_id,
        "client_secret": credentials.client_secret,
        "scope": scope,
        "grant_type": "client_credentials",
    }
    try:
        response = await http_client.post(url, data=form)
    except httpx.HTTPError as exc:
        logger.warning("directory_token_request_failed tenant=%s error=%s", credentials.tenant_id, type(exc).__name__)
        raise AuthenticationError(f"{_DEFAULT_ERROR}: {exc}") from exc
    if response.status_code >= 400:
        message, code = _provider_error(response)
        logger.warning(
            "directory_token_rejected tenant=%s status=%s error_code=%s",
            credentials.tenant_id,
            response.status_code,
            code,
        )
        raise AuthenticationError(message, error_code=code)
    try:
        token = response.json().get("access_token")
    except (ValueError, AttributeError) as exc:
        raise AuthenticationError("Token endpoint returned an unreadable response") from exc
    if not token:
        raise AuthenticationError("Token endpoint response did not include an access token")
    return str(token)
