"""Schemas for payloads returned by the remote task tracker."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class EnrichmentStatus(str, Enum):
    """Outcome of a best-effort nested fetch."""

    COMPLETE = "complete"
    DEGRADED = "degraded"


def _flatten_assignee(data: Any) -> Any:
    """Lift the nested ``assignee`` object into flat ``assignee_*`` keys."""

    if not isinstance(data, dict):
        return data
    payload = dict(data)
    assignee = payload.pop("assignee", None)
    if isinstance(assignee, dict):
        payload.setdefault("assignee_gid", assignee.get("gid"))
        payload.setdefault("assignee_name", assignee.get("name"))
    if payload.get("notes") is None:
        payload["notes"] = ""
    if not payload.get("due_on") and payload.get("due_at"):
        payload["due_on"] = payload["due_at"]
    return payload


class RemoteSubtask(BaseModel):
    """A subtask nested under a top-level tracker task."""

    model_config = {"extra": "ignore", "frozen": True}

    gid: str
    name: str = ""
    notes: str = ""
    completed: bool = False
    completed_at: str | None = None
    assignee_gid: str | None = None
    assignee_name: str | None = None
    start_on: str | None = None
    due_on: str | None = None
    permalink_url: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        return _flatten_assignee(data)


class RemoteTask(RemoteSubtask):
    """A top-level tracker task, with the subtasks fetched for it."""

    num_subtasks: int = 0
    subtasks: list[RemoteSubtask] = Field(default_factory=list)
    subtask_enrichment: EnrichmentStatus = EnrichmentStatus.COMPLETE
    enrichment_error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.subtask_enrichment is EnrichmentStatus.DEGRADED


class RemoteSection(BaseModel):
    """A named group of tasks within a tracker project."""

    model_config = {"extra": "ignore"}

    gid: str
    name: str = ""
    tasks: list[RemoteTask] = Field(default_factory=list)


class RemoteSnapshot(BaseModel):
    """Everything fetched for one project during a sync run."""

    project_gid: str
    sections: list[RemoteSection] = Field(default_factory=list)

    @property
    def degraded_parents(self) -> frozenset[str]:
        return frozenset(
            task.gid for section in self.sections for task in section.tasks if task.degraded
        )

    @property
    def task_count(self) -> int:
        return sum(len(section.tasks) for section in self.sections)


__all__ = [
    "EnrichmentStatus",
    "RemoteSection",
    "RemoteSnapshot",
    "RemoteSubtask",
    "RemoteTask",
]
