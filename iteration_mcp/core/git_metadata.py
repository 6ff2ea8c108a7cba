"""Derive project identity, branch and effort estimates from a git workspace."""

from __future__ import annotations

import json
import logging
import math
import re
import shutil
import subprocess  # nosec B404 - only fixed git subcommands are executed
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Sequence, Tuple

import yaml  # type: ignore[import-not-found]

from .best_effort import best_effort
from .models import GitSnapshot

logger = logging.getLogger("iteration_mcp.git")

MAINLINE_BRANCHES: Tuple[str, ...] = ("main", "master")
DEFAULT_WORK_DAYS = 7
RECENT_WINDOW_DAYS = 30
MIN_FEATURE_DAYS = 1
MAX_FEATURE_DAYS = 30
SECONDS_PER_DAY = 24 * 60 * 60


# -----------------------------------------------------------------------------
# git plumbing
# -----------------------------------------------------------------------------


def _resolve_command(cmd: Sequence[str]) -> list[str]:
    executable = shutil.which(cmd[0])
    if executable:
        return [executable, *cmd[1:]]
    return list(cmd)


def run_git(args: Sequence[str], cwd: Path) -> subprocess.CompletedProcess[str]:
    return subprocess.run(  # nosec B603 - argv is built from fixed subcommands
        _resolve_command(["git", *args]),
        cwd=cwd,
        text=True,
        capture_output=True,
        check=False,
    )


def git_output(args: Sequence[str], cwd: Path) -> Optional[str]:
    """Stripped stdout of a git command, or None when it fails to run or exits non-zero."""
    try:
        completed = run_git(args, cwd)
    except OSError as exc:
        logger.debug("git_unavailable", extra={"git_args": list(args), "error": str(exc)})
        return None
    if completed.returncode != 0:
        logger.debug(
            "git_command_failed",
            extra={
                "git_args": list(args),
                "exit_code": completed.returncode,
                "stderr": completed.stderr.strip(),
            },
        )
        return None
    return completed.stdout.strip()


def parse_git_timestamp(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    value = raw.strip().splitlines()[0].strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class GitHistory(Protocol):
    """Read-only view of commit history used by the estimation strategies."""

    def first_commit_time(self, ref: Optional[str] = None) -> Optional[datetime]: ...

    def merge_base_time(self) -> Optional[datetime]: ...

    def commits_since(self, days: int) -> int: ...


class GitCommandHistory:
    """GitHistory backed by the git CLI."""

    def __init__(self, workspace: Path, mainlines: Sequence[str] = MAINLINE_BRANCHES):
        self.workspace = workspace
        self.mainlines = tuple(mainlines)

    def first_commit_time(self, ref: Optional[str] = None) -> Optional[datetime]:
        args = ["log", "--reverse", "--format=%aI"]
        if ref:
            args.append(ref)
        return parse_git_timestamp(git_output(args, self.workspace))

    def merge_base_time(self) -> Optional[datetime]:
        for mainline in self.mainlines:
            sha = git_output(["merge-base", mainline, "HEAD"], self.workspace)
            if not sha:
                continue
            stamp = git_output(["show", "-s", "--format=%aI", sha], self.workspace)
            return parse_git_timestamp(stamp)
        return None

    def commits_since(self, days: int) -> int:
        output = git_output(
            ["log", f"--since={days} days ago", "--oneline"], self.workspace
        )
        if not output:
            return 0
        return sum(1 for line in output.splitlines() if line.strip())


# -----------------------------------------------------------------------------
# effort estimation
# -----------------------------------------------------------------------------

Strategy = Callable[[GitHistory, Optional[str], datetime], Optional[int]]


def days_between(now: datetime, then: datetime) -> int:
    return math.ceil((now - then).total_seconds() / SECONDS_PER_DAY)


def _clamp(days: int) -> int:
    return min(max(days, MIN_FEATURE_DAYS), MAX_FEATURE_DAYS)


def since_project_start(
    history: GitHistory, branch: Optional[str], now: datetime
) -> Optional[int]:
    first = history.first_commit_time()
    if first is None:
        return None
    return max(days_between(now, first), 1)


def from_recent_activity(
    history: GitHistory, branch: Optional[str], now: datetime
) -> Optional[int]:
    count = history.commits_since(RECENT_WINDOW_DAYS)
    if count <= 0:
        return None
    return max(math.ceil(count / 3), 3)


def since_merge_base(
    history: GitHistory, branch: Optional[str], now: datetime
) -> Optional[int]:
    diverged = history.merge_base_time()
    if diverged is None:
        return None
    return _clamp(days_between(now, diverged))


def since_branch_start(
    history: GitHistory, branch: Optional[str], now: datetime
) -> Optional[int]:
    first = history.first_commit_time(branch or "HEAD")
    if first is None:
        return None
    return _clamp(days_between(now, first))


def from_recent_activity_floor(
    history: GitHistory, branch: Optional[str], now: datetime
) -> Optional[int]:
    count = history.commits_since(RECENT_WINDOW_DAYS)
    return max(math.ceil(count / 3), 3)


MAINLINE_STRATEGIES: Tuple[Strategy, ...] = (since_project_start, from_recent_activity)
FEATURE_STRATEGIES: Tuple[Strategy, ...] = (
    since_merge_base,
    since_branch_start,
    from_recent_activity_floor,
)


def estimate_work_days(
    history: GitHistory, branch: Optional[str], now: Optional[datetime] = None
) -> int:
    """Estimate effort in days for ``branch``; the first strategy with an answer wins."""
    now = now or datetime.now(timezone.utc)
    mainline = not branch or branch in MAINLINE_BRANCHES
    strategies = MAINLINE_STRATEGIES if mainline else FEATURE_STRATEGIES
    try:
        for strategy in strategies:
            days = strategy(history, branch, now)
            if days is not None:
                logger.debug(
                    "work_days_estimated",
                    extra={"branch": branch, "strategy": strategy.__name__, "days": days},
                )
                return days
    except Exception as exc:  # noqa: BLE001 - any failure falls back to the default
        logger.warning(
            "work_days_estimate_failed",
            extra={"branch": branch, "error": f"{type(exc).__name__}: {exc}"},
        )
    return DEFAULT_WORK_DAYS


# -----------------------------------------------------------------------------
# project identity
# -----------------------------------------------------------------------------

URL_KEY = "git_project_url"
NAME_KEY = "git_project_name"


def parse_key_value(text: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key, value = key.strip(), value.strip()
        if key and value:
            data[key] = value
    return data


def _require_mapping(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError("project config must be a mapping")
    return data


def parse_json(text: str) -> Dict[str, Any]:
    return _require_mapping(json.loads(text))


def parse_yaml(text: str) -> Dict[str, Any]:
    return _require_mapping(yaml.safe_load(text) or {})


CONFIG_PARSERS: Tuple[Tuple[str, Callable[[str], Dict[str, Any]]], ...] = (
    ("iteration-mcp.config", parse_key_value),
    ("git_info.config.json", parse_json),
    ("git_info.config.yaml", parse_yaml),
    ("git_info.config.yml", parse_yaml),
)


def project_name_from_url(url: str) -> Optional[str]:
    tail = re.split(r"[/:]", url.strip().rstrip("/"))[-1]
    if tail.endswith(".git"):
        tail = tail[: -len(".git")]
    return tail or None


def humanize_directory_name(name: str) -> str:
    spaced = name.replace("-", " ")
    return re.sub(r"\b\w", lambda match: match.group(0).upper(), spaced)


def read_declared_project(workspace: Path) -> Optional[Tuple[Optional[str], Optional[str]]]:
    """(url, name) from the first usable project config file in ``workspace``."""
    for filename, parser in CONFIG_PARSERS:
        path = workspace / filename
        if not path.is_file():
            continue
        try:
            data = parser(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, yaml.YAMLError) as exc:
            logger.warning(
                "project_config_unreadable", extra={"path": str(path), "error": str(exc)}
            )
            continue
        url = _as_text(data.get(URL_KEY))
        name = _as_text(data.get(NAME_KEY))
        if not url and not name:
            continue
        if url and not name:
            name = project_name_from_url(url)
        logger.info("project_config_loaded", extra={"path": str(path)})
        return url, name
    return None


def read_remote_project(workspace: Path) -> Optional[Tuple[str, Optional[str]]]:
    url = git_output(["remote", "get-url", "origin"], workspace)
    if not url:
        return None
    return url, project_name_from_url(url)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# -----------------------------------------------------------------------------
# resolver
# -----------------------------------------------------------------------------


class GitMetadataResolver:
    """Build a GitSnapshot for a workspace; failures degrade fields to None."""

    def __init__(
        self,
        history_factory: Callable[[Path], GitHistory] = GitCommandHistory,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.history_factory = history_factory
        self.clock = clock

    def is_repository(self, workspace: Path) -> bool:
        if not workspace.is_dir():
            return False
        return git_output(["rev-parse", "--git-dir"], workspace) is not None

    def resolve(self, workspace: Path | str) -> GitSnapshot:
        path = Path(workspace)
        if not best_effort("git.detect", self.is_repository, path, default=False):
            logger.info("workspace_not_git", extra={"workspace": str(path)})
            return GitSnapshot()

        identity = best_effort("git.identity", self._identity, path) or (None, None)
        branch = best_effort("git.branch", self._branch, path)
        estimated = best_effort(
            "git.estimate",
            estimate_work_days,
            self.history_factory(path),
            branch,
            self.clock(),
            default=DEFAULT_WORK_DAYS,
        )
        snapshot = GitSnapshot(
            project_url=identity[0],
            project_name=identity[1],
            branch=branch,
            estimated_days=estimated,
        )
        logger.info(
            "git_snapshot_resolved",
            extra={"workspace": str(path), "snapshot": snapshot.to_dict()},
        )
        return snapshot

    def _identity(self, workspace: Path) -> Tuple[Optional[str], Optional[str]]:
        declared = read_declared_project(workspace)
        if declared is not None:
            return declared
        remote = read_remote_project(workspace)
        if remote is not None:
            return remote
        return None, humanize_directory_name(workspace.resolve().name)

    def _branch(self, workspace: Path) -> Optional[str]:
        return git_output(["branch", "--show-current"], workspace) or None
