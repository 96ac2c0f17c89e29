"""Task sync diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json

from tasksync_mcp.config import TaskSyncSettings
from tasksync_mcp.processes import ProcessRegistry, ProcessRegistryError
from tasksync_mcp.server import build_orchestrator, configure_logging
from tasksync_mcp.storage import ChromaStore, ChromaUnavailableError, TaskOrigin
from tasksync_mcp.tracker import TrackerClient


def load_store(settings: TaskSyncSettings) -> ChromaStore:
    try:
        store = ChromaStore(settings.chroma_persist_path)
        store.ping()
        return store
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)


def load_processes(settings: TaskSyncSettings) -> ProcessRegistry:
    return ProcessRegistry(settings.process_paths)


def cmd_tasks(args: argparse.Namespace) -> None:
    settings = TaskSyncSettings()
    store = load_store(settings)
    origin = TaskOrigin(args.origin) if args.origin else None
    records = store.list_tasks(args.process_id, origin=origin)
    if args.json:
        print(json.dumps([record.model_dump(mode="json") for record in records], indent=2))
    else:
        for record in records:
            marker = "  - " if record.is_subtask else "- "
            print(
                f"{marker}{record.title} [{record.status.value}] "
                f"({record.origin.value}, {record.phase.value}) -> {record.remote_id or '-'}"
            )


def cmd_processes(args: argparse.Namespace) -> None:
    settings = TaskSyncSettings()
    try:
        process_map = load_processes(settings).load_all()
    except ProcessRegistryError as exc:
        print(f"Process registry invalid: {exc}")
        raise SystemExit(1)
    payload = [
        {"id": process.id, "name": process.name, "project_gid": process.project_gid}
        for process in process_map.values()
    ]
    print(json.dumps(payload, indent=2))


def cmd_metrics(args: argparse.Namespace) -> None:
    settings = TaskSyncSettings()
    store = load_store(settings)
    records = store.list_tasks(args.process_id)

    origin_counts: dict[str, int] = {}
    phase_counts: dict[str, int] = {}
    completed = 0
    subtasks = 0
    last_synced = None
    for record in records:
        origin_counts[record.origin.value] = origin_counts.get(record.origin.value, 0) + 1
        phase_counts[record.phase.value] = phase_counts.get(record.phase.value, 0) + 1
        completed += int(record.completed)
        subtasks += int(record.is_subtask)
        if record.last_synced_at and (last_synced is None or record.last_synced_at > last_synced):
            last_synced = record.last_synced_at

    metrics = {
        "tasks_total": len(records),
        "origin_counts": origin_counts,
        "phase_counts": phase_counts,
        "completed": completed,
        "subtasks": subtasks,
        "last_synced_at": last_synced.isoformat() if last_synced else None,
    }
    print(json.dumps(metrics, indent=2))


def cmd_sync(args: argparse.Namespace) -> None:
    settings = TaskSyncSettings()
    configure_logging(settings.log_level)
    store = load_store(settings)
    _, orchestrator = build_orchestrator(
        settings, store, load_processes(settings), TrackerClient.from_settings(settings)
    )
    if args.all:
        result = asyncio.run(orchestrator.sync_all(owner_id=args.owner))
    elif args.process_id:
        result = asyncio.run(orchestrator.run_sync(args.process_id, owner_id=args.owner))
    else:
        print("Provide --process-id or --all")
        raise SystemExit(2)

    print(json.dumps(result.to_dict(), indent=2))
    if not result.ok:
        raise SystemExit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Task sync diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_tasks = sub.add_parser("tasks", help="List stored tasks")
    p_tasks.add_argument("--process-id")
    p_tasks.add_argument("--origin", choices=[origin.value for origin in TaskOrigin])
    p_tasks.add_argument("--json", action="store_true", help="Output JSON")
    p_tasks.set_defaults(func=cmd_tasks)

    p_processes = sub.add_parser("processes", help="List registered processes")
    p_processes.set_defaults(func=cmd_processes)

    p_metrics = sub.add_parser("metrics", help="Show task counts by origin and phase")
    p_metrics.add_argument("--process-id")
    p_metrics.set_defaults(func=cmd_metrics)

    p_sync = sub.add_parser("sync", help="Run a tracker sync")
    p_sync.add_argument("--owner", required=True, help="User whose tracker credential is used")
    p_sync.add_argument("--process-id")
    p_sync.add_argument("--all", action="store_true", help="Sync every linked process")
    p_sync.set_defaults(func=cmd_sync)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
