"""Task reconciliation engine."""

from .assignees import AssigneeResolver
from .classifier import MANAGED_TASK_PATTERNS, is_managed, managed_dimension, map_section_to_phase
from .credentials import CredentialManager
from .models import (
    ReconcileOutcome,
    SyncAllReport,
    SyncErrorKind,
    SyncFailure,
    SyncItem,
    SyncResult,
)
from .orchestrator import SyncOrchestrator, flatten_snapshot
from .reconciler import Reconciler

__all__ = [
    "AssigneeResolver",
    "CredentialManager",
    "MANAGED_TASK_PATTERNS",
    "ReconcileOutcome",
    "Reconciler",
    "SyncAllReport",
    "SyncErrorKind",
    "SyncFailure",
    "SyncItem",
    "SyncOrchestrator",
    "SyncResult",
    "flatten_snapshot",
    "is_managed",
    "managed_dimension",
    "map_section_to_phase",
]
