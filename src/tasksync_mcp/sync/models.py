"""Result and payload types for sync runs."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..storage.models import Phase
from ..tracker.models import RemoteSubtask


class SyncErrorKind(str, Enum):
    NOT_CONNECTED = "not_connected"
    NOT_LINKED = "not_linked"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class SyncItem:
    """A remote task or subtask, flattened with the context the reconciler needs."""

    task: RemoteSubtask
    section_name: str
    section_gid: str
    phase: Phase
    parent_gid: str | None = None
    assignee_email: str | None = None

    @property
    def remote_id(self) -> str:
        return self.task.gid

    @property
    def is_subtask(self) -> bool:
        return self.parent_gid is not None


@dataclass(slots=True)
class ReconcileOutcome:
    imported: int = 0
    updated: int = 0
    removed: int = 0
    retained: int = 0

    @property
    def total(self) -> int:
        return self.imported + self.updated


@dataclass(slots=True)
class SyncResult:
    """Counts produced by one successful sync run."""

    process_id: str
    process_name: str
    imported: int
    updated: int
    removed: int
    total: int
    synced_at: datetime
    retained: int = 0
    degraded_tasks: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["synced_at"] = self.synced_at.isoformat()
        payload["degraded_tasks"] = list(self.degraded_tasks)
        return payload


@dataclass(slots=True)
class SyncFailure:
    """A sync run that could not complete."""

    kind: SyncErrorKind
    message: str
    process_id: str | None = None

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind.value, "message": self.message, "process_id": self.process_id}


@dataclass(slots=True)
class SyncAllReport:
    results: list[SyncResult | SyncFailure] = field(default_factory=list)

    @property
    def synced(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.ok)

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [result.to_dict() for result in self.results],
            "summary": {"total": len(self.results), "synced": self.synced, "failed": self.failed},
        }


__all__ = [
    "ReconcileOutcome",
    "SyncAllReport",
    "SyncErrorKind",
    "SyncFailure",
    "SyncItem",
    "SyncResult",
]
