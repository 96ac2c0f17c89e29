"""Apply a remote snapshot to the local remote-sourced task rows."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Protocol

from ..storage.models import LocalTaskRecord, TaskOrigin, TaskStatus
from .models import ReconcileOutcome, SyncItem

logger = logging.getLogger(__name__)


class TaskStoreProtocol(Protocol):
    def upsert_task(self, record: LocalTaskRecord) -> LocalTaskRecord:
        ...

    def delete_task(self, record_id: str) -> None:
        ...


def _synced_fields(item: SyncItem, synced_at: datetime) -> dict[str, Any]:
    """Fields owned by the tracker; overwritten on every sync."""

    task = item.task
    return {
        "title": task.name,
        "description": task.notes or None,
        "phase": item.phase,
        "status": TaskStatus.COMPLETED if task.completed else TaskStatus.ACTIVE,
        "assignee_name": task.assignee_name,
        "assignee_email": item.assignee_email,
        "assignee_remote_id": task.assignee_gid,
        "start_date": task.start_on,
        "due_date": task.due_on,
        "completed": task.completed,
        "completed_at": task.completed_at,
        "section_name": item.section_name,
        "section_id": item.section_gid,
        "parent_remote_id": item.parent_gid,
        "is_subtask": item.is_subtask,
        "remote_url": task.permalink_url,
        "last_synced_at": synced_at,
    }


class Reconciler:
    """Insert, update and delete rows so local remote-sourced tasks mirror the tracker.

    Only rows with ``origin == TaskOrigin.REMOTE`` take part; locally authored
    and managed rows are left alone. Every upsert is written before any
    deletion, so a failure part way through never removes rows.
    """

    def __init__(
        self,
        store: TaskStoreProtocol,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def reconcile(
        self,
        process_id: str,
        items: Iterable[SyncItem],
        existing_rows: Iterable[LocalTaskRecord],
        *,
        protected_parents: frozenset[str] = frozenset(),
        synced_at: datetime | None = None,
    ) -> ReconcileOutcome:
        now = synced_at or self._clock()
        outcome = ReconcileOutcome()

        existing: dict[str, LocalTaskRecord] = {}
        duplicates: list[LocalTaskRecord] = []
        for row in existing_rows:
            if row.origin is not TaskOrigin.REMOTE or not row.remote_id or row.process_id != process_id:
                continue
            if row.remote_id in existing:
                duplicates.append(row)
                continue
            existing[row.remote_id] = row

        seen: set[str] = set()
        for item in items:
            remote_id = item.remote_id
            if remote_id in seen:
                logger.debug(
                    "Skipping repeated remote item",
                    extra={"process_id": process_id, "remote_id": remote_id},
                )
                continue
            seen.add(remote_id)

            fields = _synced_fields(item, now)
            current = existing.get(remote_id)
            if current is None:
                self._store.upsert_task(
                    LocalTaskRecord(
                        process_id=process_id,
                        origin=TaskOrigin.REMOTE,
                        remote_id=remote_id,
                        created_at=now,
                        **fields,
                    )
                )
                outcome.imported += 1
            else:
                self._store.upsert_task(current.model_copy(update=fields))
                outcome.updated += 1

        for row in duplicates:
            # Restores the one-row-per-remote-id invariant.
            self._store.delete_task(row.id)
            outcome.removed += 1

        for remote_id, row in existing.items():
            if remote_id in seen:
                continue
            if row.parent_remote_id and row.parent_remote_id in protected_parents:
                outcome.retained += 1
                continue
            self._store.delete_task(row.id)
            outcome.removed += 1

        logger.info(
            "Reconciled process tasks",
            extra={
                "process_id": process_id,
                "imported": outcome.imported,
                "updated": outcome.updated,
                "removed": outcome.removed,
                "retained": outcome.retained,
            },
        )
        return outcome


__all__ = ["Reconciler", "TaskStoreProtocol"]
