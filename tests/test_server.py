from __future__ import annotations

from pathlib import Path

from conftest import StubTracker
from tasksync_mcp.config import TaskSyncSettings
from tasksync_mcp.server import create_server
from tasksync_mcp.storage import ChromaStore, ChromaUnavailableError


def _settings(tmp_path: Path) -> TaskSyncSettings:
    (tmp_path / "processes.yml").write_text(
        'processes:\n  - id: "1"\n    name: Planning\n    project_gid: proj-1\n',
        encoding="utf-8",
    )
    return TaskSyncSettings(
        _env_file=None,
        CHROMA_PERSIST_PATH=str(tmp_path / "chroma"),
        TASKSYNC_PROCESS_PATHS=str(tmp_path),
    )


def test_create_server_wires_orchestrator(tmp_path: Path, store: ChromaStore, tracker: StubTracker) -> None:
    server = create_server(_settings(tmp_path), tracker_client=tracker, chroma_store=store)  # type: ignore[arg-type]

    assert getattr(server, "chroma_metadata")["available"] is True
    assert getattr(server, "orchestrator") is not None
    assert getattr(server, "process_registry").get("1").linked
    assert getattr(server, "tool_handles").recent_runs == []


def test_create_server_without_chroma(tmp_path: Path, tracker: StubTracker) -> None:
    class BrokenStore:
        def ping(self) -> None:
            raise ChromaUnavailableError("chromadb is not installed")

    server = create_server(_settings(tmp_path), tracker_client=tracker, chroma_store=BrokenStore())  # type: ignore[arg-type]

    metadata = getattr(server, "chroma_metadata")
    assert metadata["available"] is False
    assert "not installed" in metadata["error"]
    assert getattr(server, "orchestrator") is None
