"""Async HTTP client for the remote task tracker (Asana REST API)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import TaskSyncSettings

logger = logging.getLogger(__name__)

SECTION_FIELDS = "name"
TASK_FIELDS = (
    "name,notes,completed,completed_at,assignee.name,assignee.gid,start_on,due_on,due_at,"
    "num_subtasks,permalink_url"
)
SUBTASK_FIELDS = "name,notes,completed,completed_at,assignee.name,assignee.gid,start_on,due_on"


class TrackerAPIError(RuntimeError):
    """Base class for errors returned by the tracker API."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TrackerAuthError(TrackerAPIError):
    """Raised when the tracker rejects the credential (revoked, expired, invalid grant)."""


class TrackerNotFoundError(TrackerAPIError):
    """Raised when a requested tracker object does not exist."""


@dataclass(slots=True)
class Page:
    """One page of a paginated list endpoint."""

    items: list[dict[str, Any]]
    next_cursor: str | None = None


@dataclass(slots=True)
class TokenGrant:
    """Tokens issued by the refresh exchange."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or f"Tracker API error: {response.status_code}"
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            message = errors[0].get("message")
            if message:
                return str(message)
        description = body.get("error_description") or body.get("error")
        if description:
            return str(description)
    return f"Tracker API error: {response.status_code}"


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError as exc:
        raise TrackerAPIError(
            "Tracker returned a non-JSON response", status_code=response.status_code
        ) from exc
    if not isinstance(body, dict):
        raise TrackerAPIError("Tracker returned an unexpected response body", status_code=response.status_code)
    return body


def _raise_for_status(response: httpx.Response, *, token_exchange: bool = False) -> None:
    if response.is_success:
        return
    message = _error_message(response)
    status = response.status_code
    auth_statuses = {400, 401, 403} if token_exchange else {401, 403}
    if status in auth_statuses:
        raise TrackerAuthError(message, status_code=status)
    if status == 404:
        raise TrackerNotFoundError(message, status_code=status)
    raise TrackerAPIError(message, status_code=status)


class TrackerClient:
    """Thin wrapper over the tracker endpoints used by the sync engine."""

    def __init__(
        self,
        *,
        base_url: str = "https://app.asana.com/api/1.0",
        token_url: str = "https://app.asana.com/-/oauth_token",
        client_id: str | None = None,
        client_secret: str | None = None,
        page_size: int = 100,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._page_size = page_size
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: TaskSyncSettings) -> "TrackerClient":
        return cls(
            base_url=settings.tracker_base_url,
            token_url=settings.tracker_token_url,
            client_id=settings.tracker_client_id,
            client_secret=settings.tracker_client_secret,
            page_size=settings.page_size,
            timeout=settings.request_timeout,
        )

    @property
    def page_size(self) -> int:
        return self._page_size

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _get(self, token: str, path: str, params: dict[str, Any]) -> dict[str, Any]:
        async with self._http() as client:
            response = await client.get(
                f"{self._base_url}{path}",
                params=params,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
        _raise_for_status(response)
        return _json_body(response)

    async def _list(self, token: str, path: str, fields: str, cursor: str | None) -> Page:
        params: dict[str, Any] = {"limit": self._page_size, "opt_fields": fields}
        if cursor:
            params["offset"] = cursor
        body = await self._get(token, path, params)
        next_page = body.get("next_page") or {}
        return Page(items=list(body.get("data") or []), next_cursor=next_page.get("offset") or None)

    async def list_sections(self, token: str, project_gid: str, *, cursor: str | None = None) -> Page:
        return await self._list(token, f"/projects/{project_gid}/sections", SECTION_FIELDS, cursor)

    async def list_tasks(self, token: str, section_gid: str, *, cursor: str | None = None) -> Page:
        return await self._list(token, f"/sections/{section_gid}/tasks", TASK_FIELDS, cursor)

    async def list_subtasks(self, token: str, task_gid: str, *, cursor: str | None = None) -> Page:
        return await self._list(token, f"/tasks/{task_gid}/subtasks", SUBTASK_FIELDS, cursor)

    async def get_user(self, token: str, user_gid: str) -> dict[str, Any]:
        body = await self._get(token, f"/users/{user_gid}", {"opt_fields": "email,name"})
        return body.get("data") or {}

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        form = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        if self._client_id:
            form["client_id"] = self._client_id
        if self._client_secret:
            form["client_secret"] = self._client_secret

        async with self._http() as client:
            response = await client.post(self._token_url, data=form)
        _raise_for_status(response, token_exchange=True)

        body = _json_body(response)
        access_token = body.get("access_token")
        if not access_token:
            raise TrackerAPIError("Token endpoint returned no access_token", status_code=response.status_code)
        logger.debug("Refreshed tracker access token", extra={"expires_in": body.get("expires_in")})
        return TokenGrant(
            access_token=access_token,
            refresh_token=body.get("refresh_token"),
            expires_in=body.get("expires_in"),
        )


__all__ = [
    "Page",
    "TokenGrant",
    "TrackerAPIError",
    "TrackerAuthError",
    "TrackerClient",
    "TrackerNotFoundError",
]
