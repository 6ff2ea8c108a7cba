"""Tests for the local personnel cache."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from iteration_mcp.core import PersonnelCache, User
from iteration_mcp.core.cache import default_cache_path

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


def test_missing_file_returns_defaults(tmp_path: Path) -> None:
    cache = PersonnelCache(tmp_path / "cache.json")
    assert cache.get_recent_participants() == []
    assert cache.get_project_lines() == []
    assert cache.get_users() == []


def test_recent_personnel_is_most_recent_first_and_capped(tmp_path: Path) -> None:
    cache = PersonnelCache(tmp_path / "cache.json")
    cache.record_recent_personnel([1, 2, 3], [9])
    cache.record_recent_personnel([4, 5, 1, 6], [8, 9])

    assert cache.get_recent_participants() == [4, 5, 1, 6, 2]
    assert cache.get_recent_reviewers() == [8, 9]


def test_project_line_becomes_default(tmp_path: Path) -> None:
    cache = PersonnelCache(tmp_path / "cache.json")
    cache.record_project_line("Core")
    cache.record_project_line("Growth")
    cache.record_project_line("Core")

    assert cache.get_project_lines() == ["Core", "Growth"]
    assert cache.get_default_project_line() == "Core"


def test_file_is_written_as_indented_json(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "cache.json"
    PersonnelCache(path, clock=lambda: NOW).record_project_line("Core")

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["defaultProjectLine"] == "Core"
    assert data["lastUpdated"] == NOW.isoformat()
    assert path.read_text(encoding="utf-8").endswith("}\n")


def test_corrupt_file_is_deleted(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")

    assert PersonnelCache(path).get_recent_reviewers() == []
    assert not path.exists()


def test_users_expire_after_a_day(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    PersonnelCache(path, clock=lambda: NOW).store_users([User(id=1, name="Ana")])

    fresh = PersonnelCache(path, clock=lambda: NOW + timedelta(hours=23))
    stale = PersonnelCache(path, clock=lambda: NOW + timedelta(hours=25))

    assert fresh.get_users() == [User(id=1, name="Ana")]
    assert stale.get_users() == []
    assert stale.get_users(allow_stale=True) == [User(id=1, name="Ana")]


def test_cache_path_override(tmp_path: Path) -> None:
    target = tmp_path / "custom.json"
    assert default_cache_path({"ITERATION_MCP_CACHE": str(target)}) == target
