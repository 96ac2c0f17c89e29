"""Tool registration for the task sync MCP server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP

from ..processes import ProcessRegistry, ProcessRegistryError
from ..storage import ChromaStore, TaskOrigin
from ..sync import CredentialManager, SyncOrchestrator


@dataclass(slots=True)
class ToolHandles:
    sync_process: Any
    sync_all: Any
    connection_status: Any
    connect_tracker: Any
    disconnect_tracker: Any
    list_process_tasks: Any
    list_processes: Any
    recent_runs: list[dict[str, Any]]


def register_tools(
    server: FastMCP,
    *,
    processes: ProcessRegistry,
    store: ChromaStore | None,
    credentials: CredentialManager | None,
    orchestrator: SyncOrchestrator | None,
) -> ToolHandles:
    """Register the task sync tools on the server."""

    recent_runs: list[dict[str, Any]] = []

    def _require_orchestrator() -> SyncOrchestrator:
        if orchestrator is None:
            raise RuntimeError("Task storage is unavailable; enable persistence before syncing")
        return orchestrator

    def _require_credentials() -> CredentialManager:
        if credentials is None:
            raise RuntimeError("Credential storage is unavailable; enable persistence first")
        return credentials

    def _require_store() -> ChromaStore:
        if store is None:
            raise RuntimeError("Chroma store is unavailable; enable persistence before using this tool")
        return store

    def _remember(payload: dict[str, Any]) -> None:
        recent_runs.append(payload)
        del recent_runs[:-20]

    async def _sync_process(
        process_id: str,
        owner_id: str,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Sync one process's tasks from its linked tracker project."""

        result = await _require_orchestrator().run_sync(process_id, owner_id=owner_id)
        payload = result.to_dict()
        _remember(payload)

        if result.ok:
            _emit_log(
                context,
                "info",
                "Synced process tasks",
                extra={
                    "process_id": process_id,
                    "imported": payload["imported"],
                    "updated": payload["updated"],
                    "removed": payload["removed"],
                },
            )
        else:
            _emit_log(
                context,
                "warning",
                "Process sync failed",
                extra={"process_id": process_id, "error": payload["error"]},
            )
        return payload

    async def _sync_all(owner_id: str, context: Context | None = None) -> dict[str, Any]:
        """Sync every linked process."""

        report = await _require_orchestrator().sync_all(owner_id=owner_id)
        payload = report.to_dict()
        for entry in payload.get("results", []):
            _remember(entry)
        _emit_log(
            context,
            "info",
            "Sync-all finished",
            extra={"summary": payload.get("summary"), "error": payload.get("error")},
        )
        return payload

    tool_sync_process = server.tool(
        name="sync_process",
        description=(
            "Import all tasks from the tracker project linked to a process. Updates known "
            "tasks, inserts new ones and removes tracker tasks that no longer exist. Returns "
            "imported/updated/removed counts or a tagged error (not_connected, not_linked, error)."
        ),
    )(_sync_process)

    tool_sync_all = server.tool(
        name="sync_all",
        description="Sync every process linked to a tracker project, one after another.",
    )(_sync_all)

    def _connection_status(owner_id: str, context: Context | None = None) -> dict[str, Any]:
        """Report whether a tracker credential is stored for the owner."""

        connected = _require_credentials().is_connected(owner_id)
        _emit_log(context, "debug", "Connection status", extra={"owner_id": owner_id, "connected": connected})
        return {"owner_id": owner_id, "connected": connected}

    def _connect_tracker(
        owner_id: str,
        access_token: str,
        refresh_token: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Store tracker tokens obtained from the OAuth callback."""

        credential = _require_credentials().connect(owner_id, access_token, refresh_token)
        _emit_log(context, "info", "Tracker connected", extra={"owner_id": owner_id})
        return {
            "owner_id": owner_id,
            "connected": True,
            "obtained_at": credential.obtained_at.isoformat(),
        }

    def _disconnect_tracker(owner_id: str, context: Context | None = None) -> dict[str, Any]:
        """Forget the owner's tracker credential."""

        _require_credentials().disconnect(owner_id)
        _emit_log(context, "warning", "Tracker disconnected", extra={"owner_id": owner_id})
        return {"owner_id": owner_id, "connected": False}

    tool_status = server.tool(
        name="connection_status",
        description="Check whether a user has connected the task tracker.",
    )(_connection_status)

    tool_connect = server.tool(
        name="connect_tracker",
        description="Store tracker OAuth tokens for a user after authorization.",
    )(_connect_tracker)

    tool_disconnect = server.tool(
        name="disconnect_tracker",
        description="Remove a user's stored tracker tokens.",
    )(_disconnect_tracker)

    def _list_process_tasks(
        process_id: str,
        origin: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """List stored tasks for a process, optionally filtered by origin."""

        try:
            origin_filter = TaskOrigin(origin) if origin else None
        except ValueError as exc:
            valid = sorted(item.value for item in TaskOrigin)
            raise ValueError(f"Invalid origin '{origin}'. Must be one of {valid}") from exc

        records = _require_store().list_tasks(process_id, origin=origin_filter)
        payload = [record.model_dump(mode="json") for record in records]
        _emit_log(
            context,
            "debug",
            "Listed process tasks",
            extra={"process_id": process_id, "count": len(payload)},
        )
        return {"process_id": process_id, "tasks": payload}

    def _list_processes(context: Context | None = None) -> list[dict[str, Any]]:
        """List known processes and their tracker links."""

        try:
            process_map = processes.load_all()
        except ProcessRegistryError as exc:
            _emit_log(context, "error", "Process registry failed to load", extra={"error": str(exc)})
            raise
        catalog = [
            {
                "id": process.id,
                "name": process.name,
                "project_gid": process.project_gid,
                "linked": process.linked,
            }
            for process in process_map.values()
        ]
        _emit_log(context, "debug", "Listing processes", extra={"count": len(catalog)})
        return catalog

    tool_list_tasks = server.tool(
        name="list_process_tasks",
        description="List a process's stored tasks (origin: remote, local or managed).",
    )(_list_process_tasks)

    tool_list_processes = server.tool(
        name="list_processes",
        description="List hub processes with their linked tracker projects.",
    )(_list_processes)

    return ToolHandles(
        sync_process=tool_sync_process,
        sync_all=tool_sync_all,
        connection_status=tool_status,
        connect_tracker=tool_connect,
        disconnect_tracker=tool_disconnect,
        list_process_tasks=tool_list_tasks,
        list_processes=tool_list_processes,
        recent_runs=recent_runs,
    )


__all__ = ["register_tools", "ToolHandles"]

logger = logging.getLogger(__name__)


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)
