"""Tracker credential lookup and refresh."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

import httpx

from ..storage.models import Credential
from ..tracker.client import TokenGrant, TrackerAPIError, TrackerAuthError

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_WINDOW = timedelta(hours=1)


class CredentialStoreProtocol(Protocol):
    def get_credential(self, owner_id: str) -> Credential | None:
        ...

    def save_credential(self, credential: Credential) -> Credential:
        ...

    def delete_credential(self, owner_id: str) -> None:
        ...


class TokenClientProtocol(Protocol):
    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        ...


class CredentialManager:
    """Hands out usable access tokens, refreshing stale ones.

    A token older than ``freshness_window`` is exchanged before use. When the
    tracker rejects the refresh token the stored credential is removed so the
    owner has to reconnect; any other failure keeps it for a later attempt.
    """

    def __init__(
        self,
        store: CredentialStoreProtocol,
        client: TokenClientProtocol,
        *,
        freshness_window: timedelta = DEFAULT_FRESHNESS_WINDOW,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._freshness_window = freshness_window
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def freshness_window(self) -> timedelta:
        return self._freshness_window

    def connect(
        self,
        owner_id: str,
        access_token: str,
        refresh_token: str | None = None,
    ) -> Credential:
        credential = Credential(
            owner_id=owner_id,
            access_token=access_token,
            refresh_token=refresh_token,
            obtained_at=self._clock(),
        )
        self._store.save_credential(credential)
        logger.info("Stored tracker credential", extra={"owner_id": owner_id})
        return credential

    def disconnect(self, owner_id: str) -> None:
        self._store.delete_credential(owner_id)
        logger.info("Removed tracker credential", extra={"owner_id": owner_id})

    def is_connected(self, owner_id: str) -> bool:
        return self._store.get_credential(owner_id) is not None

    async def get_valid_token(self, owner_id: str) -> str | None:
        """Return an access token for ``owner_id`` or ``None`` when none is usable."""

        credential = self._store.get_credential(owner_id)
        if credential is None:
            return None

        now = self._clock()
        if credential.age_seconds(now) <= self._freshness_window.total_seconds():
            return credential.access_token

        if not credential.refresh_token:
            logger.warning(
                "Tracker credential is stale and has no refresh token",
                extra={"owner_id": owner_id, "age_seconds": credential.age_seconds(now)},
            )
            return credential.access_token

        try:
            grant = await self._client.refresh_token(credential.refresh_token)
        except TrackerAuthError as exc:
            self._store.delete_credential(owner_id)
            logger.warning(
                "Tracker rejected refresh token; credential removed",
                extra={"owner_id": owner_id, "status_code": exc.status_code, "error": str(exc)},
            )
            return None
        except (TrackerAPIError, httpx.HTTPError) as exc:
            logger.warning(
                "Tracker token refresh failed; credential kept for retry",
                extra={"owner_id": owner_id, "error": str(exc)},
            )
            return None

        refreshed = Credential(
            owner_id=owner_id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token or credential.refresh_token,
            obtained_at=self._clock(),
        )
        self._store.save_credential(refreshed)
        logger.info("Refreshed tracker credential", extra={"owner_id": owner_id})
        return refreshed.access_token


__all__ = ["CredentialManager", "CredentialStoreProtocol", "DEFAULT_FRESHNESS_WINDOW"]
