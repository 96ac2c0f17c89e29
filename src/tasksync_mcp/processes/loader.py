"""Process registry loading utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import yaml
from pydantic import ValidationError

from .models import ProcessLink


class ProcessRegistryError(RuntimeError):
    """Raised when one or more process files cannot be parsed."""


def _documents(document: Any) -> list[Any]:
    # A file may hold a single process or a ``processes:`` list.
    if isinstance(document, dict) and "processes" in document:
        entries = document["processes"] or []
        if not isinstance(entries, list):
            raise TypeError("'processes' must be a list")
        return entries
    if isinstance(document, list):
        return document
    return [document]


class ProcessRegistry:
    """Loads process links from YAML files on disk."""

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        paths = [Path(path) for path in (search_paths or [])]
        self._search_paths: list[Path] = [path for path in paths if path.exists()]

    @property
    def search_paths(self) -> list[Path]:
        """Return the normalized search paths."""

        return list(self._search_paths)

    def load_all(self) -> dict[str, ProcessLink]:
        """Load processes from all configured search paths.

        Later search paths override earlier ones when process ids collide.
        """

        if not self._search_paths:
            return {}

        processes: dict[str, ProcessLink] = {}
        errors: list[str] = []

        for base in self._search_paths:
            for path in sorted(base.glob("*.yml")) + sorted(base.glob("*.yaml")):
                try:
                    document = yaml.safe_load(path.read_text(encoding="utf-8"))
                except yaml.YAMLError as exc:  # pragma: no cover - library type
                    errors.append(f"Failed to parse YAML in {path}: {exc}")
                    continue

                if document is None:
                    continue

                try:
                    entries = _documents(document)
                except TypeError as exc:
                    errors.append(f"Invalid process file {path}: {exc}")
                    continue

                for entry in entries:
                    try:
                        process = ProcessLink.model_validate(entry)
                    except ValidationError as exc:
                        errors.append(f"Process validation error in {path}: {exc}")
                        continue
                    processes[process.id] = process

        if errors:
            raise ProcessRegistryError("; ".join(errors))

        return processes

    def get(self, process_id: str) -> ProcessLink | None:
        """Return a single process by id, or ``None`` when it is unknown."""

        return self.load_all().get(str(process_id))

    def linked(self) -> list[ProcessLink]:
        """Return every process with a tracker project, ordered by name."""

        return sorted(
            (process for process in self.load_all().values() if process.linked),
            key=lambda process: process.name.lower(),
        )


def load_processes(search_paths: Iterable[Path] | None = None) -> dict[str, ProcessLink]:
    """Convenience wrapper for loading processes from the provided paths."""

    return ProcessRegistry(search_paths).load_all()


__all__ = ["ProcessLink", "ProcessRegistry", "ProcessRegistryError", "load_processes"]
