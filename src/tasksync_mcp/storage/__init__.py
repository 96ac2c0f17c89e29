"""Storage abstractions for the task sync service."""

from .chroma import ChromaStore, ChromaUnavailableError, build_where
from .models import Credential, LocalTaskRecord, Phase, TaskOrigin, TaskStatus

__all__ = [
    "ChromaStore",
    "ChromaUnavailableError",
    "Credential",
    "LocalTaskRecord",
    "Phase",
    "TaskOrigin",
    "TaskStatus",
    "build_where",
]
