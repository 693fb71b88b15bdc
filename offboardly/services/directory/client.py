from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from offboardly.core.errors import ActionExecutionError


logger = logging.getLogger(__name__)

# Upper bound on membership pages so a malformed nextLink chain cannot loop forever.
_MAX_PAGES = 50


def _quote_key(value: str) -> str:
    return quote(value, safe="@.")


def _escape_odata(value: str) -> str:
    return value.replace("'", "''")


def _error_from_response(response: httpx.Response) -> ActionExecutionError:
    # Surface the provider's message when present, otherwise the HTTP status line.
    message = f"{response.status_code} {response.reason_phrase}".strip()
    code: str | None = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
        message = error.get("message") or message
        code = error.get("code")
    return ActionExecutionError(message, status_code=response.status_code, error_code=code)


class DirectoryClient:
    """Thin bearer-token client over the directory REST API."""

    def __init__(self, http_client: httpx.AsyncClient, *, access_token: str, base_url: str) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {access_token}"}

    def _url(self, path_or_url: str) -> str:
        if path_or_url.startswith("http://") or path_or_url.startswith("https://"):
            return path_or_url
        return f"{self._base_url}{path_or_url}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        allow_not_found: bool = False,
    ) -> Any:
        try:
            response = await self._http.request(
                method,
                self._url(path),
                params=params,
                json=json,
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            raise ActionExecutionError(f"Directory request failed: {type(exc).__name__}") from exc
        if allow_not_found and response.status_code == 404:
            return None
        if response.status_code >= 400:
            error = _error_from_response(response)
            logger.info(
                "directory_call_failed method=%s status=%s error_code=%s",
                method,
                response.status_code,
                error.error_code,
            )
            raise error
        if response.status_code == 204 or not response.content:
            return None
        if "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    async def disable_user(self, user_key: str) -> None:
        await self.request("PATCH", f"/users/{_quote_key(user_key)}", json={"accountEnabled": False})

    async def revoke_sign_in_sessions(self, user_key: str) -> None:
        await self.request("POST", f"/users/{_quote_key(user_key)}/revokeSignInSessions")

    async def get_user_id(self, user_key: str) -> str | None:
        body = await self.request(
            "GET",
            f"/users/{_quote_key(user_key)}",
            params={"$select": "id"},
            allow_not_found=True,
        )
        if isinstance(body, dict) and body.get("id"):
            return str(body["id"])
        return None

    async def find_user_id_by_mail(self, email: str) -> str | None:
        body = await self.request(
            "GET",
            "/users",
            params={"$filter": f"mail eq '{_escape_odata(email)}'", "$select": "id"},
        )
        values = body.get("value") if isinstance(body, dict) else None
        if values:
            return str(values[0].get("id")) if values[0].get("id") else None
        return None

    async def list_group_memberships(self, object_id: str) -> list[dict[str, Any]]:
        # Follow @odata.nextLink and keep only group entries (roles and units are skipped).
        groups: list[dict[str, Any]] = []
        next_path: str | None = f"/users/{_quote_key(object_id)}/memberOf"
        params: dict[str, str] | None = {"$select": "id,displayName"}
        pages = 0
        while next_path and pages < _MAX_PAGES:
            body = await self.request("GET", next_path, params=params)
            pages += 1
            params = None
            if not isinstance(body, dict):
                break
            for entry in body.get("value") or []:
                odata_type = str(entry.get("@odata.type") or "").lower()
                if "group" in odata_type and entry.get("id"):
                    groups.append(entry)
            next_path = body.get("@odata.nextLink")
        return groups

    async def remove_group_member(self, group_id: str, object_id: str) -> None:
        await self.request(
            "DELETE",
            f"/groups/{_quote_key(group_id)}/members/{_quote_key(object_id)}/$ref",
        )
