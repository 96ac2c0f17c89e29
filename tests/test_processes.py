from pathlib import Path
import textwrap

import pytest

from tasksync_mcp.processes import ProcessRegistry, ProcessRegistryError, load_processes


def write_process(path: Path, *, name: str, project: str | None = "proj-1") -> None:
    project_line = f"project_gid: {project}" if project else ""
    path.write_text(
        textwrap.dedent(
            """
            id: sample
            name: {name}
            {project_line}
            """
        ).strip().format(name=name, project_line=project_line),
        encoding="utf-8",
    )


def test_registry_merges_paths(tmp_path: Path) -> None:
    base = tmp_path / "base"
    base.mkdir()
    override = tmp_path / "override"
    override.mkdir()
    write_process(base / "sample.yml", name="Base")
    write_process(override / "sample.yml", name="Override")

    registry = ProcessRegistry([base, override])
    processes = registry.load_all()

    assert processes["sample"].name == "Override"


def test_registry_reads_process_lists(tmp_path: Path) -> None:
    (tmp_path / "all.yaml").write_text(
        textwrap.dedent(
            """
            processes:
              - id: 7
                name: Zeta Review
                project_gid: "123"
              - id: 8
                name: alpha intake
                project_gid: "  "
              - id: 9
                name: Beta Audit
                project_gid: "456"
            """
        ),
        encoding="utf-8",
    )

    registry = ProcessRegistry([tmp_path])

    assert registry.get("7").project_gid == "123"
    assert registry.get("8").linked is False
    assert registry.get("missing") is None
    assert [process.id for process in registry.linked()] == ["9", "7"]


def test_registry_handles_missing_paths(tmp_path: Path) -> None:
    assert load_processes([tmp_path / "nope"]) == {}


def test_registry_reports_validation_error(tmp_path: Path) -> None:
    (tmp_path / "broken.yml").write_text("id: ''\nname: Broken\n", encoding="utf-8")

    with pytest.raises(ProcessRegistryError):
        ProcessRegistry([tmp_path]).load_all()
