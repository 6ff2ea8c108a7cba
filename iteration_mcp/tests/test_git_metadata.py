"""Tests for git-derived project metadata and effort estimation."""

from __future__ import annotations

import json
import os
import shutil
import subprocess
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from iteration_mcp.core.git_metadata import (
    DEFAULT_WORK_DAYS,
    GitMetadataResolver,
    estimate_work_days,
    humanize_directory_name,
    parse_key_value,
    project_name_from_url,
    read_declared_project,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@dataclass
class FakeHistory:
    first: datetime | None = None
    branch_first: datetime | None = None
    merge_base: datetime | None = None
    commits: int = 0

    def first_commit_time(self, ref: str | None = None) -> datetime | None:
        return self.first if ref is None else self.branch_first

    def merge_base_time(self) -> datetime | None:
        return self.merge_base

    def commits_since(self, days: int) -> int:
        return self.commits


class BrokenHistory(FakeHistory):
    def first_commit_time(self, ref: str | None = None) -> datetime | None:
        raise RuntimeError("corrupt object")


def test_mainline_counts_days_since_first_commit() -> None:
    history = FakeHistory(first=NOW - timedelta(days=10))
    assert estimate_work_days(history, "main", NOW) == 10


def test_partial_days_round_up() -> None:
    history = FakeHistory(first=NOW - timedelta(days=2, hours=1))
    assert estimate_work_days(history, "master", NOW) == 3


def test_feature_branch_is_clamped_to_thirty_days() -> None:
    history = FakeHistory(merge_base=NOW - timedelta(days=45))
    assert estimate_work_days(history, "feat/login", NOW) == 30


def test_feature_branch_is_at_least_one_day() -> None:
    history = FakeHistory(merge_base=NOW)
    assert estimate_work_days(history, "feat/login", NOW) == 1


def test_feature_branch_falls_back_to_branch_start() -> None:
    history = FakeHistory(branch_first=NOW - timedelta(days=5))
    assert estimate_work_days(history, "feat/login", NOW) == 5


def test_feature_branch_uses_recent_activity_floor() -> None:
    assert estimate_work_days(FakeHistory(commits=0), "feat/login", NOW) == 3
    assert estimate_work_days(FakeHistory(commits=14), "feat/login", NOW) == 5


def test_mainline_without_history_uses_recent_activity() -> None:
    assert estimate_work_days(FakeHistory(commits=12), "main", NOW) == 4


def test_mainline_without_any_signal_uses_default() -> None:
    assert estimate_work_days(FakeHistory(), "main", NOW) == DEFAULT_WORK_DAYS


def test_detached_head_counts_from_first_commit() -> None:
    history = FakeHistory(first=NOW - timedelta(days=45))
    assert estimate_work_days(history, None, NOW) == 45
    assert estimate_work_days(history, "", NOW) == 45
    assert estimate_work_days(history, "main", NOW) == 45


def test_failures_fall_back_to_default() -> None:
    assert estimate_work_days(BrokenHistory(), "main", NOW) == DEFAULT_WORK_DAYS


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://gitlab.example.com/team/widget-service.git", "widget-service"),
        ("git@github.com:acme/widget.git", "widget"),
        ("https://gitlab.example.com/team/widget/", "widget"),
    ],
)
def test_project_name_from_url(url: str, expected: str) -> None:
    assert project_name_from_url(url) == expected


def test_humanize_directory_name() -> None:
    assert humanize_directory_name("my-cool-app") == "My Cool App"


def test_key_value_parser_splits_on_first_equals() -> None:
    text = "# comment\ngit_project_url = https://x/y.git?a=b\n\nbroken line\n"
    assert parse_key_value(text) == {"git_project_url": "https://x/y.git?a=b"}


def test_declared_url_without_name_derives_name(tmp_path: Path) -> None:
    (tmp_path / "iteration-mcp.config").write_text(
        "git_project_url=https://gitlab.example.com/team/billing.git\n",
        encoding="utf-8",
    )
    assert read_declared_project(tmp_path) == (
        "https://gitlab.example.com/team/billing.git",
        "billing",
    )


def test_unusable_config_files_are_skipped(tmp_path: Path) -> None:
    (tmp_path / "iteration-mcp.config").write_text("# nothing here\n", encoding="utf-8")
    (tmp_path / "git_info.config.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "git_info.config.yaml").write_text(
        "git_project_url: https://x/team/ledger.git\ngit_project_name: Ledger\n",
        encoding="utf-8",
    )
    assert read_declared_project(tmp_path) == ("https://x/team/ledger.git", "Ledger")


def test_missing_directory_yields_empty_snapshot(tmp_path: Path) -> None:
    snapshot = GitMetadataResolver().resolve(tmp_path / "absent")
    assert snapshot.to_dict() == {
        "projectUrl": None,
        "projectName": None,
        "branch": None,
        "estimatedDays": None,
    }


# -----------------------------------------------------------------------------
# real repositories
# -----------------------------------------------------------------------------

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def _git(repo: Path, *args: str, date: str | None = None) -> None:
    env = dict(os.environ)
    if date:
        env["GIT_AUTHOR_DATE"] = date
        env["GIT_COMMITTER_DATE"] = date
    subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=repo,
        env=env,
        check=True,
        capture_output=True,
        text=True,
    )


def _init_repo(repo: Path) -> None:
    repo.mkdir(parents=True, exist_ok=True)
    _git(repo, "init")
    _git(repo, "symbolic-ref", "HEAD", "refs/heads/main")


def _at(moment: datetime) -> GitMetadataResolver:
    return GitMetadataResolver(clock=lambda: moment)


@requires_git
def test_plain_directory_yields_empty_snapshot(tmp_path: Path) -> None:
    assert GitMetadataResolver().resolve(tmp_path).branch is None


@requires_git
def test_main_branch_with_remote(tmp_path: Path) -> None:
    repo = tmp_path / "checkout"
    _init_repo(repo)
    _git(repo, "remote", "add", "origin", "git@github.com:acme/widget-service.git")
    _git(repo, "commit", "--allow-empty", "-m", "init", date="2025-01-01T00:00:00+00:00")

    snapshot = _at(datetime(2025, 1, 10, 23, 0, tzinfo=timezone.utc)).resolve(repo)

    assert snapshot.project_url == "git@github.com:acme/widget-service.git"
    assert snapshot.project_name == "widget-service"
    assert snapshot.branch == "main"
    assert snapshot.estimated_days == 10


@requires_git
def test_feature_branch_diverged_long_ago(tmp_path: Path) -> None:
    repo = tmp_path / "checkout"
    _init_repo(repo)
    _git(repo, "commit", "--allow-empty", "-m", "init", date="2025-01-01T00:00:00+00:00")
    _git(repo, "checkout", "-b", "feat/search")
    _git(repo, "commit", "--allow-empty", "-m", "wip", date="2025-01-05T00:00:00+00:00")

    snapshot = _at(datetime(2025, 2, 15, tzinfo=timezone.utc)).resolve(repo)

    assert snapshot.branch == "feat/search"
    assert snapshot.estimated_days == 30


@requires_git
def test_declared_config_wins_over_remote(tmp_path: Path) -> None:
    repo = tmp_path / "checkout"
    _init_repo(repo)
    _git(repo, "remote", "add", "origin", "https://gitlab.example.com/team/remote.git")
    (repo / "git_info.config.json").write_text(
        json.dumps(
            {
                "git_project_url": "https://gitlab.example.com/team/declared.git",
                "git_project_name": "Declared",
            }
        ),
        encoding="utf-8",
    )

    snapshot = GitMetadataResolver().resolve(repo)

    assert snapshot.project_url == "https://gitlab.example.com/team/declared.git"
    assert snapshot.project_name == "Declared"


@requires_git
def test_directory_name_is_last_resort(tmp_path: Path) -> None:
    repo = tmp_path / "my-cool-app"
    _init_repo(repo)

    snapshot = GitMetadataResolver().resolve(repo)

    assert snapshot.project_url is None
    assert snapshot.project_name == "My Cool App"
    assert snapshot.estimated_days == 7
