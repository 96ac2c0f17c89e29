"""Resolve tracker user identifiers to email addresses."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

import httpx

from ..tracker.client import TrackerAPIError

logger = logging.getLogger(__name__)


class UserClientProtocol(Protocol):
    async def get_user(self, token: str, user_gid: str) -> dict[str, Any]:
        ...


class AssigneeResolver:
    """Per-run assignee lookup with memoization.

    Create one instance per sync run; the instance's cache is discarded with it.
    """

    def __init__(self, client: UserClientProtocol) -> None:
        self._client = client
        self._cache: dict[str, str | None] = {}
        self.failed_ids: list[str] = []

    @property
    def lookups(self) -> int:
        return len(self._cache)

    async def resolve_all(self, assignee_ids: Iterable[str], token: str) -> dict[str, str]:
        """Return ``{user gid: email}`` for every id that could be resolved."""

        unique_ids = list(dict.fromkeys(gid for gid in assignee_ids if gid))
        addresses: dict[str, str] = {}
        for gid in unique_ids:
            if gid not in self._cache:
                self._cache[gid] = await self._lookup(gid, token)
            email = self._cache[gid]
            if email:
                addresses[gid] = email
        return addresses

    async def _lookup(self, gid: str, token: str) -> str | None:
        try:
            user = await self._client.get_user(token, gid)
        except (TrackerAPIError, httpx.HTTPError) as exc:
            self.failed_ids.append(gid)
            logger.warning(
                "Assignee lookup failed",
                extra={"assignee_gid": gid, "error": str(exc)},
            )
            return None
        email = user.get("email") if isinstance(user, dict) else None
        return str(email) if email else None


__all__ = ["AssigneeResolver", "UserClientProtocol"]
