"""Walk a tracker project's section → task → subtask tree."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Protocol

import httpx
from pydantic import ValidationError

from .client import Page, TrackerAPIError
from .models import EnrichmentStatus, RemoteSection, RemoteSnapshot, RemoteSubtask, RemoteTask

logger = logging.getLogger(__name__)

PageFetcher = Callable[[str | None], Awaitable[Page]]


class TreeClientProtocol(Protocol):
    """Subset of the tracker client needed to walk a project."""

    async def list_sections(self, token: str, project_gid: str, *, cursor: str | None = None) -> Page:
        ...

    async def list_tasks(self, token: str, section_gid: str, *, cursor: str | None = None) -> Page:
        ...

    async def list_subtasks(self, token: str, task_gid: str, *, cursor: str | None = None) -> Page:
        ...


async def collect_pages(fetch_page: PageFetcher) -> list[dict[str, Any]]:
    """Request pages until the server stops returning a cursor.

    Items are accumulated in server order. A cursor the server has already
    handed out is treated as an API error instead of looping forever.
    """

    items: list[dict[str, Any]] = []
    seen_cursors: set[str] = set()
    cursor: str | None = None
    while True:
        page = await fetch_page(cursor)
        items.extend(page.items)
        if not page.next_cursor:
            return items
        if page.next_cursor in seen_cursors:
            raise TrackerAPIError(f"Tracker repeated pagination cursor {page.next_cursor!r}")
        seen_cursors.add(page.next_cursor)
        cursor = page.next_cursor


class RemoteTreeFetcher:
    """Build an in-memory snapshot of a tracker project."""

    def __init__(self, client: TreeClientProtocol) -> None:
        self._client = client

    async def fetch_tree(self, project_gid: str, token: str) -> RemoteSnapshot:
        """Fetch every section, task and subtask of ``project_gid``.

        Section and task failures propagate. Subtask failures only degrade
        the affected task.
        """

        raw_sections = await collect_pages(
            lambda cursor: self._client.list_sections(token, project_gid, cursor=cursor)
        )

        sections: list[RemoteSection] = []
        for raw_section in raw_sections:
            section_gid = raw_section["gid"]
            raw_tasks = await collect_pages(
                lambda cursor, gid=section_gid: self._client.list_tasks(token, gid, cursor=cursor)
            )
            tasks = [await self._build_task(raw_task, token) for raw_task in raw_tasks]
            sections.append(
                RemoteSection(gid=section_gid, name=raw_section.get("name") or "", tasks=tasks)
            )

        snapshot = RemoteSnapshot(project_gid=project_gid, sections=sections)
        logger.info(
            "Fetched tracker project",
            extra={
                "project_gid": project_gid,
                "sections": len(sections),
                "tasks": snapshot.task_count,
                "degraded_tasks": len(snapshot.degraded_parents),
            },
        )
        return snapshot

    async def _build_task(self, raw_task: dict[str, Any], token: str) -> RemoteTask:
        payload = dict(raw_task)
        if int(payload.get("num_subtasks") or 0) > 0:
            subtasks, error = await self._fetch_subtasks(payload["gid"], token)
            payload["subtasks"] = subtasks
            if error is not None:
                payload["subtask_enrichment"] = EnrichmentStatus.DEGRADED
                payload["enrichment_error"] = error
        return RemoteTask.model_validate(payload)

    async def _fetch_subtasks(
        self, task_gid: str, token: str
    ) -> tuple[list[RemoteSubtask], str | None]:
        try:
            raw_subtasks = await collect_pages(
                lambda cursor: self._client.list_subtasks(token, task_gid, cursor=cursor)
            )
            return [RemoteSubtask.model_validate(item) for item in raw_subtasks], None
        except (TrackerAPIError, httpx.HTTPError, ValidationError) as exc:
            logger.warning(
                "Subtask fetch failed; continuing without subtasks",
                extra={"task_gid": task_gid, "error": str(exc)},
            )
            return [], str(exc)


__all__ = ["PageFetcher", "RemoteTreeFetcher", "TreeClientProtocol", "collect_pages"]
