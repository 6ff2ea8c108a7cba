"""Tests for project line resolution."""

from __future__ import annotations

import pytest

from iteration_mcp.core import Project, ProjectNotFoundError, resolve_project_id

PROJECTS = [Project(id=1, name="Core"), Project(id=2, name="Growth")]


def test_numeric_token_matches_id() -> None:
    assert resolve_project_id("2", PROJECTS) == 2


def test_name_match_falls_back_to_case_insensitive() -> None:
    assert resolve_project_id("growth", PROJECTS) == 2


def test_unknown_numeric_token_lists_every_project() -> None:
    with pytest.raises(ProjectNotFoundError) as excinfo:
        resolve_project_id("9", PROJECTS)

    assert excinfo.value.available == ["Core(1)", "Growth(2)"]
    assert "Core(1)" in str(excinfo.value)
    assert "Growth(2)" in str(excinfo.value)


def test_numeric_token_never_matches_by_name() -> None:
    projects = [Project(id=5, name="Team 12")]
    with pytest.raises(ProjectNotFoundError):
        resolve_project_id("12", projects)


def test_exact_match_beats_earlier_substring_match() -> None:
    projects = [Project(id=1, name="Growth Platform"), Project(id=2, name="Growth")]
    assert resolve_project_id("Growth", projects) == 2


def test_substring_tiers_prefer_listed_order() -> None:
    projects = [Project(id=3, name="Core Services"), Project(id=4, name="Core Tools")]
    assert resolve_project_id("Core", projects) == 3


def test_token_containing_project_name_matches() -> None:
    assert resolve_project_id("Core team backlog", PROJECTS) == 1


def test_case_sensitive_match_wins_over_folded_match() -> None:
    projects = [Project(id=1, name="ops"), Project(id=2, name="OPS")]
    assert resolve_project_id("OPS", projects) == 2


def test_blank_token_is_rejected() -> None:
    with pytest.raises(ProjectNotFoundError):
        resolve_project_id("  ", PROJECTS)


def test_zero_is_treated_as_a_name() -> None:
    projects = [Project(id=7, name="Release 0")]
    assert resolve_project_id("0", projects) == 7
