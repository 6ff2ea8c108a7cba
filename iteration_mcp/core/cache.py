"""Local JSON cache of project lines, users and recently used personnel."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .best_effort import best_effort
from .models import IterationRecord, User

logger = logging.getLogger("iteration_mcp.cache")

CACHE_ENV = "ITERATION_MCP_CACHE"
DEFAULT_CACHE_PATH = Path.home() / ".iteration-mcp-cache.json"
RECENT_LIMIT = 5
USERS_TTL = timedelta(hours=24)


def default_cache_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if environ is None else environ
    override = env.get(CACHE_ENV)
    if override:
        return Path(os.path.expanduser(override))
    return DEFAULT_CACHE_PATH


def _default_payload() -> Dict[str, Any]:
    return {
        "projectLines": [],
        "defaultProjectLine": None,
        "users": [],
        "usersUpdated": None,
        "recentParticipants": [],
        "recentReviewers": [],
        "lastUpdated": None,
    }


def _most_recent_first(new_ids: Iterable[int], existing: Iterable[int]) -> List[int]:
    merged: List[int] = []
    for value in [*new_ids, *existing]:
        if value not in merged:
            merged.append(value)
    return merged[:RECENT_LIMIT]


def _int_list(values: Any) -> List[int]:
    result: List[int] = []
    for value in values or []:
        try:
            result.append(int(value))
        except (TypeError, ValueError):
            continue
    return result


class PersonnelCache:
    """Read-modify-write store; reads never raise and writes are best-effort."""

    def __init__(
        self,
        path: Optional[Path] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.path = path or default_cache_path()
        self.clock = clock

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------

    def load(self) -> Dict[str, Any]:
        payload = _default_payload()
        if not self.path.exists():
            return payload
        try:
            text = self.path.read_text(encoding="utf-8")
            if not text.strip():
                return payload
            data = json.loads(text)
            if not isinstance(data, dict):
                raise ValueError("cache root must be an object")
        except (OSError, ValueError) as exc:
            logger.warning(
                "cache_corrupt", extra={"path": str(self.path), "error": str(exc)}
            )
            best_effort("cache.discard", self.path.unlink, missing_ok=True)
            return payload
        payload.update(data)
        return payload

    def save(self, payload: Dict[str, Any]) -> None:
        payload["lastUpdated"] = self.clock().isoformat()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")

    def _update(self, action: str, mutate: Callable[[Dict[str, Any]], None]) -> None:
        def apply() -> None:
            payload = self.load()
            mutate(payload)
            self.save(payload)

        best_effort(action, apply)

    # ------------------------------------------------------------------
    # recent personnel
    # ------------------------------------------------------------------

    def get_recent_participants(self) -> List[int]:
        return _int_list(self.load().get("recentParticipants"))

    def get_recent_reviewers(self) -> List[int]:
        return _int_list(self.load().get("recentReviewers"))

    def record_recent_personnel(
        self, participant_ids: Iterable[int], reviewer_ids: Iterable[int]
    ) -> None:
        participants = _int_list(participant_ids)
        reviewers = _int_list(reviewer_ids)

        def mutate(payload: Dict[str, Any]) -> None:
            payload["recentParticipants"] = _most_recent_first(
                participants, _int_list(payload.get("recentParticipants"))
            )
            payload["recentReviewers"] = _most_recent_first(
                reviewers, _int_list(payload.get("recentReviewers"))
            )

        self._update("cache.record_recent_personnel", mutate)

    # ------------------------------------------------------------------
    # project lines
    # ------------------------------------------------------------------

    def get_project_lines(self) -> List[str]:
        return [str(line) for line in self.load().get("projectLines") or []]

    def get_default_project_line(self) -> Optional[str]:
        value = self.load().get("defaultProjectLine")
        return str(value) if value else None

    def record_project_line(self, name: str) -> None:
        def mutate(payload: Dict[str, Any]) -> None:
            lines = list(payload.get("projectLines") or [])
            if name not in lines:
                lines.append(name)
            payload["projectLines"] = lines
            payload["defaultProjectLine"] = name

        self._update("cache.record_project_line", mutate)

    def record_submission(self, record: IterationRecord) -> None:
        self.record_project_line(record.basic_info.project_line)
        self.record_recent_personnel(
            record.project_info.participant_ids, record.project_info.reviewer_ids
        )

    # ------------------------------------------------------------------
    # users
    # ------------------------------------------------------------------

    def get_users(self, *, allow_stale: bool = False) -> List[User]:
        """Cached users; empty once older than a day unless ``allow_stale``."""
        payload = self.load()
        if not allow_stale and self._users_expired(payload.get("usersUpdated")):
            return []
        users: List[User] = []
        for item in payload.get("users") or []:
            if isinstance(item, dict) and item.get("id") is not None:
                users.append(User(id=int(item["id"]), name=str(item.get("name") or "")))
        return users

    def store_users(self, users: Iterable[User]) -> None:
        serialised = [user.to_dict() for user in users]

        def mutate(payload: Dict[str, Any]) -> None:
            payload["users"] = serialised
            payload["usersUpdated"] = self.clock().isoformat()

        self._update("cache.store_users", mutate)

    def _users_expired(self, stamp: Any) -> bool:
        if not stamp:
            return True
        try:
            updated = datetime.fromisoformat(str(stamp))
        except ValueError:
            return True
        if updated.tzinfo is None:
            updated = updated.replace(tzinfo=timezone.utc)
        return self.clock() - updated > USERS_TTL
