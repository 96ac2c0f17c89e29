"""Managed-item detection and section-to-phase mapping."""

from __future__ import annotations

from ..storage.models import Phase

# Title prefixes reserved for the ADLI documentation tasks the hub writes itself.
MANAGED_TASK_PATTERNS: dict[str, str] = {
    "[adli: approach]": "approach",
    "[adli: deployment]": "deployment",
    "[adli: learning]": "learning",
    "[adli: integration]": "integration",
}

_SECTION_PHASES: dict[str, Phase] = {phase.value: phase for phase in Phase}


def managed_dimension(title: str | None) -> str | None:
    """Return the ADLI dimension a managed title belongs to, else ``None``."""

    lowered = (title or "").strip().lower()
    for pattern, dimension in MANAGED_TASK_PATTERNS.items():
        if lowered.startswith(pattern):
            return dimension
    return None


def is_managed(title: str | None) -> bool:
    """Whether a task title marks an internally managed documentation task."""

    return managed_dimension(title) is not None


def map_section_to_phase(section_name: str | None) -> Phase:
    """Map a section display name to a phase; unknown names fall back to plan."""

    return _SECTION_PHASES.get((section_name or "").strip().lower(), Phase.PLAN)


__all__ = ["MANAGED_TASK_PATTERNS", "is_managed", "managed_dimension", "map_section_to_phase"]
