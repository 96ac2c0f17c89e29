"""Data models for persisted task and credential records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class TaskOrigin(str, Enum):
    """Where a local task record came from."""

    REMOTE = "remote"
    LOCAL = "local"
    MANAGED = "managed"


class Phase(str, Enum):
    """Plan-do-check-act classification of a task, derived from its section."""

    PLAN = "plan"
    EXECUTE = "execute"
    EVALUATE = "evaluate"
    IMPROVE = "improve"


class TaskStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocalTaskRecord(BaseModel):
    """A task row owned by a hub process."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    process_id: str
    title: str
    description: str | None = None
    phase: Phase = Phase.PLAN
    origin: TaskOrigin = TaskOrigin.LOCAL
    status: TaskStatus = TaskStatus.ACTIVE
    assignee_name: str | None = None
    assignee_email: str | None = None
    assignee_remote_id: str | None = None
    start_date: str | None = None
    due_date: str | None = None
    completed: bool = False
    completed_at: str | None = None
    section_name: str | None = None
    section_id: str | None = None
    parent_remote_id: str | None = None
    is_subtask: bool = False
    remote_id: str | None = None
    remote_url: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    last_synced_at: datetime | None = None


class Credential(BaseModel):
    """Tracker OAuth tokens held on behalf of a hub user."""

    owner_id: str
    access_token: str
    refresh_token: str | None = None
    obtained_at: datetime = Field(default_factory=_utcnow)

    def age_seconds(self, now: datetime) -> float:
        return (now - self.obtained_at).total_seconds()


__all__ = ["Credential", "LocalTaskRecord", "Phase", "TaskOrigin", "TaskStatus"]
