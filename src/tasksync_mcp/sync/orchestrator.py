"""Wire credential, fetch, classification, assignee and reconcile steps into sync runs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

from ..processes import ProcessLink, ProcessRegistryError
from ..storage.models import LocalTaskRecord, TaskOrigin
from ..tracker.client import TrackerAuthError, TrackerNotFoundError
from ..tracker.fetcher import RemoteTreeFetcher
from ..tracker.models import RemoteSnapshot
from .assignees import AssigneeResolver
from .classifier import is_managed, managed_dimension, map_section_to_phase
from .credentials import CredentialManager
from .models import ReconcileOutcome, SyncAllReport, SyncErrorKind, SyncFailure, SyncItem, SyncResult
from .reconciler import Reconciler, TaskStoreProtocol

logger = logging.getLogger(__name__)

NOT_CONNECTED_MESSAGE = "Tracker not connected. Connect the tracker in settings."
NOT_LINKED_MESSAGE = "This process is not linked to a tracker project."
PROJECT_MISSING_MESSAGE = "The linked tracker project no longer exists."


class ProcessLookupProtocol(Protocol):
    def get(self, process_id: str) -> ProcessLink | None:
        ...

    def linked(self) -> list[ProcessLink]:
        ...


class SyncStoreProtocol(TaskStoreProtocol, Protocol):
    def list_tasks(
        self,
        process_id: str | None = None,
        *,
        origin: TaskOrigin | None = None,
    ) -> list[LocalTaskRecord]:
        ...


def flatten_snapshot(snapshot: RemoteSnapshot) -> list[SyncItem]:
    """Flatten sections, tasks and subtasks into reconcilable items.

    Managed titles are skipped one item at a time: a managed task's ordinary
    subtasks are still returned, and a managed subtask is dropped even when
    its parent is kept.
    """

    items: list[SyncItem] = []
    for section in snapshot.sections:
        phase = map_section_to_phase(section.name)
        for task in section.tasks:
            if is_managed(task.name):
                logger.debug(
                    "Skipping managed task",
                    extra={"remote_id": task.gid, "dimension": managed_dimension(task.name)},
                )
            else:
                items.append(
                    SyncItem(task=task, section_name=section.name, section_gid=section.gid, phase=phase)
                )
            for subtask in task.subtasks:
                if is_managed(subtask.name):
                    continue
                items.append(
                    SyncItem(
                        task=subtask,
                        section_name=section.name,
                        section_gid=section.gid,
                        phase=phase,
                        parent_gid=task.gid,
                    )
                )
    return items


class SyncOrchestrator:
    """Run tracker syncs for hub processes.

    Runs for different processes proceed independently. Runs for the same
    process take a per-process lock around the reconcile phase so each sees
    a consistent set of existing rows.
    """

    def __init__(
        self,
        *,
        store: SyncStoreProtocol,
        processes: ProcessLookupProtocol,
        credentials: CredentialManager,
        fetcher: RemoteTreeFetcher,
        resolver_factory: Callable[[], AssigneeResolver],
        clock: Callable[[], datetime] | None = None,
        sync_all_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._processes = processes
        self._credentials = credentials
        self._fetcher = fetcher
        self._resolver_factory = resolver_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._reconciler = Reconciler(store, clock=self._clock)
        self._sync_all_delay = sync_all_delay
        self._sleep = sleep
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, process_id: str) -> asyncio.Lock:
        lock = self._locks.get(process_id)
        if lock is None:
            lock = self._locks[process_id] = asyncio.Lock()
        return lock

    async def run_sync(self, process_id: str, *, owner_id: str) -> SyncResult | SyncFailure:
        """Sync one process using ``owner_id``'s tracker credential."""

        process_id = str(process_id)
        try:
            process = self._processes.get(process_id)
        except ProcessRegistryError as exc:
            return SyncFailure(SyncErrorKind.ERROR, str(exc), process_id)
        if process is None:
            return SyncFailure(SyncErrorKind.ERROR, f"Process '{process_id}' not found", process_id)
        if not process.linked:
            return SyncFailure(SyncErrorKind.NOT_LINKED, NOT_LINKED_MESSAGE, process_id)

        token = await self._credentials.get_valid_token(owner_id)
        if token is None:
            return SyncFailure(SyncErrorKind.NOT_CONNECTED, NOT_CONNECTED_MESSAGE, process_id)

        return await self._sync_linked(process, token)

    async def sync_all(self, *, owner_id: str) -> SyncAllReport | SyncFailure:
        """Sync every linked process in turn, pausing between them."""

        token = await self._credentials.get_valid_token(owner_id)
        if token is None:
            return SyncFailure(SyncErrorKind.NOT_CONNECTED, NOT_CONNECTED_MESSAGE)

        try:
            processes = self._processes.linked()
        except ProcessRegistryError as exc:
            return SyncFailure(SyncErrorKind.ERROR, str(exc))

        report = SyncAllReport()
        for index, process in enumerate(processes):
            report.results.append(await self._sync_linked(process, token))
            if index < len(processes) - 1 and self._sync_all_delay > 0:
                await self._sleep(self._sync_all_delay)

        logger.info(
            "Synced all linked processes",
            extra={"total": len(processes), "synced": report.synced, "failed": report.failed},
        )
        return report

    async def _sync_linked(self, process: ProcessLink, token: str) -> SyncResult | SyncFailure:
        if not process.project_gid:
            return SyncFailure(SyncErrorKind.NOT_LINKED, NOT_LINKED_MESSAGE, process.id)
        try:
            snapshot = await self._fetcher.fetch_tree(process.project_gid, token)
        except TrackerNotFoundError:
            logger.warning(
                "Linked tracker project is missing",
                extra={"process_id": process.id, "project_gid": process.project_gid},
            )
            return SyncFailure(SyncErrorKind.NOT_LINKED, PROJECT_MISSING_MESSAGE, process.id)
        except TrackerAuthError as exc:
            return SyncFailure(SyncErrorKind.NOT_CONNECTED, str(exc) or NOT_CONNECTED_MESSAGE, process.id)
        except Exception as exc:
            logger.exception("Tracker fetch failed", extra={"process_id": process.id})
            return SyncFailure(SyncErrorKind.ERROR, str(exc) or type(exc).__name__, process.id)

        try:
            return await self._apply(process, snapshot, token)
        except Exception as exc:
            logger.exception("Task reconciliation failed", extra={"process_id": process.id})
            return SyncFailure(SyncErrorKind.ERROR, str(exc) or type(exc).__name__, process.id)

    async def _apply(self, process: ProcessLink, snapshot: RemoteSnapshot, token: str) -> SyncResult:
        items = flatten_snapshot(snapshot)

        resolver = self._resolver_factory()
        emails = await resolver.resolve_all(
            (item.task.assignee_gid for item in items if item.task.assignee_gid), token
        )
        items = [
            replace(item, assignee_email=emails.get(item.task.assignee_gid or ""))
            for item in items
        ]

        synced_at = self._clock()
        degraded = snapshot.degraded_parents
        async with self._lock_for(process.id):
            # Store calls block; run them off the event loop while holding the lock.
            outcome = await asyncio.to_thread(
                self._reconcile_rows, process.id, items, degraded, synced_at
            )

        return SyncResult(
            process_id=process.id,
            process_name=process.name,
            imported=outcome.imported,
            updated=outcome.updated,
            removed=outcome.removed,
            total=outcome.total,
            synced_at=synced_at,
            retained=outcome.retained,
            degraded_tasks=tuple(sorted(degraded)),
        )

    def _reconcile_rows(
        self,
        process_id: str,
        items: list[SyncItem],
        degraded: frozenset[str],
        synced_at: datetime,
    ) -> ReconcileOutcome:
        existing = self._store.list_tasks(process_id, origin=TaskOrigin.REMOTE)
        return self._reconciler.reconcile(
            process_id,
            items,
            existing,
            protected_parents=degraded,
            synced_at=synced_at,
        )


__all__ = ["SyncOrchestrator", "flatten_snapshot"]
