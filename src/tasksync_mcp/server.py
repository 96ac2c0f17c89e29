"""FastMCP server bootstrap for the task sync service."""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .config import TaskSyncSettings, get_settings
from .processes import ProcessRegistry, ProcessRegistryError
from .storage import ChromaStore, ChromaUnavailableError
from .sync import AssigneeResolver, CredentialManager, SyncOrchestrator
from .tools import register_tools
from .tracker import RemoteTreeFetcher, TrackerClient


def configure_logging(level: str) -> None:
    """Configure root logging for the task sync server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def build_orchestrator(
    settings: TaskSyncSettings,
    store: ChromaStore,
    processes: ProcessRegistry,
    client: TrackerClient,
) -> tuple[CredentialManager, SyncOrchestrator]:
    """Assemble the credential manager and sync orchestrator around one store."""

    credentials = CredentialManager(
        store,
        client,
        freshness_window=timedelta(seconds=settings.token_freshness_seconds),
    )
    orchestrator = SyncOrchestrator(
        store=store,
        processes=processes,
        credentials=credentials,
        fetcher=RemoteTreeFetcher(client),
        resolver_factory=lambda: AssigneeResolver(client),
        sync_all_delay=settings.sync_all_delay_seconds,
    )
    return credentials, orchestrator


def create_server(
    settings: Optional[TaskSyncSettings] = None,
    tracker_client: TrackerClient | None = None,
    chroma_store: ChromaStore | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with the sync tools and status resource."""

    settings = settings or get_settings()
    processes = ProcessRegistry(settings.process_paths)
    client = tracker_client or TrackerClient.from_settings(settings)

    chroma_metadata = {
        "available": False,
        "path": str(settings.chroma_persist_path),
        "collections": ["process_tasks", "tracker_credentials"],
        "error": None,
    }

    try:
        store = chroma_store or ChromaStore(settings.chroma_persist_path)
        store.ping()
        chroma_metadata["available"] = True
    except ChromaUnavailableError as exc:
        chroma_metadata["error"] = str(exc)
        store = None

    credentials: CredentialManager | None = None
    orchestrator: SyncOrchestrator | None = None
    if store is not None:
        credentials, orchestrator = build_orchestrator(settings, store, processes, client)

    server = FastMCP(
        name="Task Sync MCP",
        version=__version__,
        instructions=(
            "Task Sync mirrors tasks from linked tracker projects into hub processes. "
            "Connect a tracker account, then use sync_process or sync_all to reconcile tasks."
        ),
    )

    handles = register_tools(
        server,
        processes=processes,
        store=store,
        credentials=credentials,
        orchestrator=orchestrator,
    )

    @server.resource(
        "resource://tasksync/status",
        name="tasksync_status",
        title="Task Sync Status",
        description="Provides the current runtime status for the task sync server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        try:
            process_map = processes.load_all()
            linked = sorted(pid for pid, process in process_map.items() if process.linked)
            process_error: str | None = None
        except ProcessRegistryError as exc:
            process_map = {}
            linked = []
            process_error = str(exc)

        outcome_counts: dict[str, int] = {}
        for run in handles.recent_runs:
            outcome = run.get("error") or "ok"
            outcome_counts[outcome] = outcome_counts.get(outcome, 0) + 1

        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "processes": {
                "count": len(process_map),
                "linked": linked,
                "error": process_error,
            },
            "tracker": {
                "base_url": settings.tracker_base_url,
                "page_size": settings.page_size,
                "token_freshness_seconds": settings.token_freshness_seconds,
            },
            "storage": {"chroma": chroma_metadata},
            "runs": {
                "recent": handles.recent_runs[-5:],
                "by_outcome": outcome_counts,
            },
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    setattr(server, "process_registry", processes)
    setattr(server, "tracker_client", client)
    setattr(server, "chroma_store", store)
    setattr(server, "chroma_metadata", chroma_metadata)
    setattr(server, "orchestrator", orchestrator)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the task sync MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching task sync MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "chroma_available": getattr(server, "chroma_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
