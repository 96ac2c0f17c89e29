from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from conftest import NOW, StubTracker, make_task
from tasksync_mcp.processes import ProcessRegistry
from tasksync_mcp.storage import ChromaStore, LocalTaskRecord
from tasksync_mcp.sync import AssigneeResolver, CredentialManager, SyncOrchestrator
from tasksync_mcp.tools import register_tools
from tasksync_mcp.tracker import RemoteTreeFetcher


class StubTool:
    def __init__(self, fn, name):
        self.fn = fn
        self.name = name


class StubServer:
    def __init__(self) -> None:
        self._tools: dict[str, StubTool] = {}

    def tool(self, *args, **kwargs):
        provided_name = None
        if args and isinstance(args[0], str):
            provided_name = args[0]
        provided_name = kwargs.get("name", provided_name)

        def decorator(fn):
            tool_name = provided_name or fn.__name__
            tool = StubTool(fn, tool_name)
            self._tools[tool_name] = tool
            return tool

        return decorator


@pytest.fixture
def handles(tmp_path: Path, store: ChromaStore, tracker: StubTracker):
    (tmp_path / "processes.yml").write_text(
        'processes:\n  - id: "1"\n    name: Planning\n    project_gid: proj-1\n  - id: "2"\n    name: Loose\n',
        encoding="utf-8",
    )
    registry = ProcessRegistry([tmp_path])
    tracker.add_section(
        "proj-1",
        "s1",
        "Execute",
        [make_task("t1", "Book venue"), make_task("t2", "[ADLI: Integration] How It Connects")],
    )
    credentials = CredentialManager(store, tracker, clock=lambda: NOW)
    orchestrator = SyncOrchestrator(
        store=store,
        processes=registry,
        credentials=credentials,
        fetcher=RemoteTreeFetcher(tracker),
        resolver_factory=lambda: AssigneeResolver(tracker),
        clock=lambda: NOW,
    )
    server = StubServer()
    return register_tools(
        server,  # type: ignore[arg-type]
        processes=registry,
        store=store,
        credentials=credentials,
        orchestrator=orchestrator,
    )


def test_sync_process_requires_connection(handles) -> None:
    result = asyncio.run(handles.sync_process.fn(process_id="1", owner_id="user-1"))  # type: ignore[attr-defined]

    assert result["error"] == "not_connected"
    assert handles.recent_runs[-1] == result


def test_connect_then_sync_and_list(handles, store: ChromaStore) -> None:
    connected = handles.connect_tracker.fn("user-1", "token", "refresh")  # type: ignore[attr-defined]
    assert connected["connected"] is True
    assert handles.connection_status.fn("user-1")["connected"] is True  # type: ignore[attr-defined]
    store.upsert_task(LocalTaskRecord(process_id="1", title="Hub note"))

    result = asyncio.run(handles.sync_process.fn(process_id="1", owner_id="user-1"))  # type: ignore[attr-defined]
    assert result["imported"] == 1
    assert result["synced_at"] == NOW.isoformat()

    listing = handles.list_process_tasks.fn("1", origin="remote")  # type: ignore[attr-defined]
    assert [task["title"] for task in listing["tasks"]] == ["Book venue"]
    assert listing["tasks"][0]["phase"] == "execute"
    assert len(handles.list_process_tasks.fn("1")["tasks"]) == 2  # type: ignore[attr-defined]


def test_list_process_tasks_rejects_unknown_origin(handles) -> None:
    with pytest.raises(ValueError):
        handles.list_process_tasks.fn("1", origin="imported")  # type: ignore[attr-defined]


def test_sync_all_reports_summary(handles) -> None:
    handles.connect_tracker.fn("user-1", "token")  # type: ignore[attr-defined]

    payload = asyncio.run(handles.sync_all.fn(owner_id="user-1"))  # type: ignore[attr-defined]

    assert payload["summary"] == {"total": 1, "synced": 1, "failed": 0}


def test_disconnect_and_list_processes(handles) -> None:
    handles.connect_tracker.fn("user-1", "token")  # type: ignore[attr-defined]
    assert handles.disconnect_tracker.fn("user-1") == {"owner_id": "user-1", "connected": False}  # type: ignore[attr-defined]
    assert handles.connection_status.fn("user-1")["connected"] is False  # type: ignore[attr-defined]

    catalog = handles.list_processes.fn()  # type: ignore[attr-defined]
    assert {entry["id"]: entry["linked"] for entry in catalog} == {"1": True, "2": False}


def test_tools_without_storage_raise() -> None:
    handles = register_tools(
        StubServer(),  # type: ignore[arg-type]
        processes=ProcessRegistry([]),
        store=None,
        credentials=None,
        orchestrator=None,
    )

    with pytest.raises(RuntimeError):
        asyncio.run(handles.sync_process.fn(process_id="1", owner_id="user-1"))  # type: ignore[attr-defined]
    with pytest.raises(RuntimeError):
        handles.connection_status.fn("user-1")  # type: ignore[attr-defined]
