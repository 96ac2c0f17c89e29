from __future__ import annotations

import pytest

from tasksync_mcp.storage import Phase
from tasksync_mcp.sync import is_managed, managed_dimension, map_section_to_phase


@pytest.mark.parametrize(
    "title",
    [
        "[ADLI: Approach] anything",
        "[adli: approach] How We Do It",
        "   [ADLI: Deployment] rollout",
        "[Adli: Learning] doc",
        "[ADLI: Integration]",
    ],
)
def test_bracketed_prefixes_are_managed(title: str) -> None:
    assert is_managed(title)


@pytest.mark.parametrize(
    "title",
    [
        "ADLI: Approach",
        "Review [ADLI: Approach] notes",
        "[ADLI: Results] summary",
        "",
        None,
    ],
)
def test_other_titles_are_not_managed(title) -> None:
    assert not is_managed(title)


def test_managed_dimension() -> None:
    assert managed_dimension("[ADLI: Learning] How We Improve") == "learning"
    assert managed_dimension("Plain task") is None


@pytest.mark.parametrize(
    ("section", "phase"),
    [
        ("Plan", Phase.PLAN),
        ("EXECUTE", Phase.EXECUTE),
        (" evaluate ", Phase.EVALUATE),
        ("Improve", Phase.IMPROVE),
        ("Backlog", Phase.PLAN),
        ("Planning", Phase.PLAN),
        ("", Phase.PLAN),
    ],
)
def test_section_to_phase(section: str, phase: Phase) -> None:
    assert map_section_to_phase(section) is phase
