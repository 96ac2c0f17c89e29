"""Process definitions linking hub processes to tracker projects."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class ProcessLink(BaseModel):
    """A documented process and the tracker project it is linked to."""

    id: str = Field(..., description="Stable identifier of the process in the hub.")
    name: str = Field(..., description="Display name of the process.")
    project_gid: str | None = Field(
        default=None,
        description="Identifier of the linked tracker project; unset when the process is not linked.",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Arbitrary metadata, such as owner or category.",
    )

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        normalized = str(value).strip() if value is not None else ""
        if not normalized:
            raise ValueError("Process id must not be empty")
        return normalized

    @field_validator("project_gid", mode="before")
    @classmethod
    def _normalize_project(cls, value: Any) -> str | None:
        if value is None:
            return None
        normalized = str(value).strip()
        return normalized or None

    @property
    def linked(self) -> bool:
        return self.project_gid is not None


__all__ = ["ProcessLink"]
