from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from tasksync_mcp.storage import ChromaStore
from tasksync_mcp.tracker import Page, TokenGrant, TrackerAPIError, TrackerNotFoundError

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _matches(metadata: dict[str, Any], where: dict[str, Any] | None) -> bool:
    if not where:
        return True
    if "$and" in where:
        return all(_matches(metadata, clause) for clause in where["$and"])
    return all(metadata.get(key) == value for key, value in where.items())


class StubCollection:
    def __init__(self) -> None:
        self.records: dict[str, tuple[str, dict[str, Any]]] = {}

    def upsert(self, *, ids, documents, metadatas) -> None:  # type: ignore[override]
        for record_id, document, metadata in zip(ids, documents, metadatas):
            self.records[record_id] = (document, dict(metadata))

    def get(self, *, ids=None, where=None, limit=None):  # type: ignore[override]
        selected = [
            (record_id, document, metadata)
            for record_id, (document, metadata) in self.records.items()
            if (ids is None or record_id in ids) and _matches(metadata, where)
        ]
        if limit is not None:
            selected = selected[:limit]
        return {
            "ids": [item[0] for item in selected],
            "documents": [item[1] for item in selected],
            "metadatas": [item[2] for item in selected],
        }

    def delete(self, *, ids) -> None:  # type: ignore[override]
        for record_id in ids:
            self.records.pop(record_id, None)


class StubChromaClient:
    def __init__(self) -> None:
        self.collections: dict[str, StubCollection] = {}

    def get_or_create_collection(self, name: str) -> StubCollection:
        return self.collections.setdefault(name, StubCollection())


def make_task(gid: str, name: str, *, subtasks: list[dict[str, Any]] | None = None, **fields: Any) -> dict[str, Any]:
    task = {
        "gid": gid,
        "name": name,
        "notes": fields.pop("notes", ""),
        "completed": fields.pop("completed", False),
        "num_subtasks": len(subtasks or []),
        "permalink_url": f"https://tracker.example/task/{gid}",
    }
    task.update(fields)
    if subtasks is not None:
        task["_subtasks"] = subtasks
    return task


class StubTracker:
    """In-memory tracker serving paginated responses and recording calls."""

    def __init__(self, page_size: int = 100) -> None:
        self.page_size = page_size
        self.sections: dict[str, list[dict[str, Any]]] = {}
        self.tasks: dict[str, list[dict[str, Any]]] = {}
        self.subtasks: dict[str, list[dict[str, Any]]] = {}
        self.users: dict[str, dict[str, Any]] = {}
        self.failing_subtasks: set[str] = set()
        self.failing_users: set[str] = set()
        self.failing_sections: set[str] = set()
        self.calls: list[tuple[str, str, str | None]] = []
        self.refresh_calls: list[str] = []
        self.refresh_error: Exception | None = None

    def add_section(self, project_gid: str, gid: str, name: str, tasks: list[dict[str, Any]]) -> None:
        self.sections.setdefault(project_gid, []).append({"gid": gid, "name": name})
        self.tasks[gid] = []
        for task in tasks:
            task = dict(task)
            subtasks = task.pop("_subtasks", None)
            if subtasks is not None:
                self.subtasks[task["gid"]] = subtasks
            self.tasks[gid].append(task)

    def _page(self, items: list[dict[str, Any]], cursor: str | None) -> Page:
        start = int(cursor or 0)
        chunk = items[start : start + self.page_size]
        end = start + len(chunk)
        return Page(
            items=[dict(item) for item in chunk],
            next_cursor=str(end) if end < len(items) else None,
        )

    def calls_for(self, kind: str) -> list[tuple[str, str, str | None]]:
        return [call for call in self.calls if call[0] == kind]

    async def list_sections(self, token: str, project_gid: str, *, cursor: str | None = None) -> Page:
        self.calls.append(("sections", project_gid, cursor))
        if project_gid not in self.sections:
            raise TrackerNotFoundError("Unknown object: project", status_code=404)
        return self._page(self.sections[project_gid], cursor)

    async def list_tasks(self, token: str, section_gid: str, *, cursor: str | None = None) -> Page:
        self.calls.append(("tasks", section_gid, cursor))
        if section_gid in self.failing_sections:
            raise TrackerAPIError("Server error", status_code=500)
        return self._page(self.tasks.get(section_gid, []), cursor)

    async def list_subtasks(self, token: str, task_gid: str, *, cursor: str | None = None) -> Page:
        self.calls.append(("subtasks", task_gid, cursor))
        if task_gid in self.failing_subtasks:
            raise TrackerAPIError("Server error", status_code=503)
        return self._page(self.subtasks.get(task_gid, []), cursor)

    async def get_user(self, token: str, user_gid: str) -> dict[str, Any]:
        self.calls.append(("user", user_gid, None))
        if user_gid in self.failing_users:
            raise TrackerAPIError("Not authorized to view email", status_code=403)
        return self.users.get(user_gid, {})

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        if self.refresh_error is not None:
            raise self.refresh_error
        return TokenGrant(access_token=f"fresh-{len(self.refresh_calls)}", refresh_token="rotated")


@pytest.fixture
def chroma_client() -> StubChromaClient:
    return StubChromaClient()


@pytest.fixture
def store(tmp_path: Path, chroma_client: StubChromaClient) -> ChromaStore:
    return ChromaStore(tmp_path, client_factory=lambda: chroma_client)


@pytest.fixture
def tracker() -> StubTracker:
    return StubTracker()
