"""Remote task tracker access: HTTP client, payload schemas and tree walking."""

from .client import (
    Page,
    TokenGrant,
    TrackerAPIError,
    TrackerAuthError,
    TrackerClient,
    TrackerNotFoundError,
)
from .fetcher import RemoteTreeFetcher, collect_pages
from .models import EnrichmentStatus, RemoteSection, RemoteSnapshot, RemoteSubtask, RemoteTask

__all__ = [
    "EnrichmentStatus",
    "Page",
    "RemoteSection",
    "RemoteSnapshot",
    "RemoteSubtask",
    "RemoteTask",
    "RemoteTreeFetcher",
    "TokenGrant",
    "TrackerAPIError",
    "TrackerAuthError",
    "TrackerClient",
    "TrackerNotFoundError",
    "collect_pages",
]
