"""Step-by-step collection of an iteration record.

The session is an immutable tagged union. Every transition function takes the
current state plus the step payload and returns a :class:`Transition` holding
the next state and the output for the caller; the input state is never
modified, so a failed step leaves the caller holding the state it had before.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

from .best_effort import best_effort
from .cache import PersonnelCache
from .client import RemoteService
from .errors import IncompleteSessionError, StepValidationError
from .git_metadata import GitMetadataResolver
from .models import (
    BasicInfo,
    decode_payload,
    GitSnapshot,
    IterationRecord,
    ModuleSet,
    Project,
    ProjectInfo,
    SubmissionResult,
    User,
    parse_step_payload,
)

logger = logging.getLogger("iteration_mcp.workflow")

STEP_START = "start"
STEP_BASIC_INFO = "basic_info"
STEP_PROJECT_INFO = "project_info"
STEP_MODULES = "modules"
STEPS = (STEP_START, STEP_BASIC_INFO, STEP_PROJECT_INFO, STEP_MODULES)

Payload = Union[Mapping[str, Any], str, None]


# -----------------------------------------------------------------------------
# states
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class StartHints:
    projects: List[Project] = field(default_factory=list)
    users: List[User] = field(default_factory=list)
    recent_participants: List[int] = field(default_factory=list)
    recent_reviewers: List[int] = field(default_factory=list)
    project_lines: List[str] = field(default_factory=list)
    default_project_line: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projects": [{"id": p.id, "name": p.name} for p in self.projects],
            "users": [user.to_dict() for user in self.users],
            "recentParticipants": list(self.recent_participants),
            "recentReviewers": list(self.recent_reviewers),
            "projectLines": list(self.project_lines),
            "defaultProjectLine": self.default_project_line,
        }


@dataclass(frozen=True)
class Idle:
    name = "idle"


@dataclass(frozen=True)
class Started:
    hints: StartHints = field(default_factory=StartHints)
    name = "started"


@dataclass(frozen=True)
class BasicInfoSet:
    basic_info: BasicInfo
    name = "basic_info_set"


@dataclass(frozen=True)
class ProjectInfoSet:
    basic_info: BasicInfo
    project_info: ProjectInfo
    name = "project_info_set"


@dataclass(frozen=True)
class ReadyToSubmit:
    record: IterationRecord
    name = "ready_to_submit"


@dataclass(frozen=True)
class Submitted:
    result: SubmissionResult
    name = "submitted"


SessionState = Union[Idle, Started, BasicInfoSet, ProjectInfoSet, ReadyToSubmit, Submitted]


@dataclass(frozen=True)
class Transition:
    state: SessionState
    output: Dict[str, Any]


class Submitter(Protocol):
    def submit(self, record: IterationRecord) -> SubmissionResult: ...


# -----------------------------------------------------------------------------
# helpers
# -----------------------------------------------------------------------------


def _stored_basic_info(state: SessionState) -> Optional[BasicInfo]:
    if isinstance(state, (BasicInfoSet, ProjectInfoSet)):
        return state.basic_info
    if isinstance(state, ReadyToSubmit):
        return state.record.basic_info
    return None


def _stored_project_info(state: SessionState) -> Optional[ProjectInfo]:
    if isinstance(state, ProjectInfoSet):
        return state.project_info
    if isinstance(state, ReadyToSubmit):
        return state.record.project_info
    return None


def _ok(step: str, next_step: Optional[str], message: str, **extra: Any) -> Dict[str, Any]:
    return {
        "status": "ok",
        "step": step,
        "nextStep": next_step,
        "message": message,
        **extra,
    }


# -----------------------------------------------------------------------------
# transitions
# -----------------------------------------------------------------------------


def start(
    state: SessionState,
    remote: Optional[RemoteService] = None,
    cache: Optional[PersonnelCache] = None,
) -> Transition:
    """Reset the session from any state and gather display hints."""
    projects: List[Project] = []
    users: List[User] = []
    participants: List[int] = []
    reviewers: List[int] = []
    project_lines: List[str] = []
    default_line: Optional[str] = None

    if remote is not None:
        projects = best_effort("hints.projects", remote.list_projects, default=[]) or []
        users = best_effort("hints.users", remote.list_users, default=[]) or []
    if cache is not None:
        if users:
            cache.store_users(users)
        else:
            users = best_effort("hints.cached_users", cache.get_users, allow_stale=True) or []
        participants = best_effort("hints.participants", cache.get_recent_participants) or []
        reviewers = best_effort("hints.reviewers", cache.get_recent_reviewers) or []
        project_lines = best_effort("hints.project_lines", cache.get_project_lines) or []
        default_line = best_effort("hints.default_project_line", cache.get_default_project_line)

    hints = StartHints(
        projects=projects,
        users=users,
        recent_participants=participants,
        recent_reviewers=reviewers,
        project_lines=project_lines,
        default_project_line=default_line,
    )
    logger.info(
        "session_started",
        extra={"previous_state": state.name, "projects": len(projects), "users": len(users)},
    )
    output = _ok(
        STEP_START,
        STEP_BASIC_INFO,
        "Session reset. Provide projectLine, iterationName and onlineTime.",
        requiredFields=list(BasicInfo.required_keys),
        hints=hints.to_dict(),
    )
    return Transition(Started(hints=hints), output)


def submit_basic_info(
    state: SessionState,
    payload: Payload,
    resolver: GitMetadataResolver,
    workspace: Path,
    cache: Optional[PersonnelCache] = None,
) -> Transition:
    """Store basic info; later-step data is discarded."""
    if isinstance(state, Submitted):
        raise IncompleteSessionError(
            "The previous iteration was already submitted; run the start step first."
        )
    basic_info = parse_step_payload(BasicInfo, payload, STEP_BASIC_INFO)

    snapshot = best_effort("git.resolve", resolver.resolve, workspace, default=GitSnapshot())
    suggestions: Dict[str, Any] = {
        "gitUrl": snapshot.project_url,
        "gitProjectName": snapshot.project_name,
        "branch": snapshot.branch,
        "estimatedDays": snapshot.estimated_days,
    }
    if cache is not None:
        suggestions["participantIds"] = (
            best_effort("hints.participants", cache.get_recent_participants) or []
        )
        suggestions["reviewerIds"] = (
            best_effort("hints.reviewers", cache.get_recent_reviewers) or []
        )
        suggestions["projectLines"] = (
            best_effort("hints.project_lines", cache.get_project_lines) or []
        )
        suggestions["defaultProjectLine"] = best_effort(
            "hints.default_project_line", cache.get_default_project_line
        )

    logger.info(
        "basic_info_recorded",
        extra={"project_line": basic_info.project_line, "workspace": str(workspace)},
    )
    output = _ok(
        STEP_BASIC_INFO,
        STEP_PROJECT_INFO,
        "Basic info saved. Confirm or edit the suggested project info.",
        basicInfo=basic_info.to_wire(),
        workspace=str(workspace),
        suggestions=suggestions,
        requiredFields=list(ProjectInfo.required_keys),
    )
    return Transition(BasicInfoSet(basic_info=basic_info), output)


def submit_project_info(
    state: SessionState,
    payload: Payload,
    cache: Optional[PersonnelCache] = None,
) -> Transition:
    project_info = parse_step_payload(ProjectInfo, payload, STEP_PROJECT_INFO)
    basic_info = _stored_basic_info(state)
    if basic_info is None:
        raise IncompleteSessionError(
            f"Cannot record project info in state {state.name!r}; submit basic info first."
        )

    if cache is not None:
        best_effort(
            "cache.recent_personnel",
            cache.record_recent_personnel,
            project_info.participant_ids,
            project_info.reviewer_ids,
        )

    logger.info(
        "project_info_recorded",
        extra={"git_project": project_info.git_project_name, "branch": project_info.branch},
    )
    output = _ok(
        STEP_PROJECT_INFO,
        STEP_MODULES,
        "Project info saved. Provide componentModules and functionModules (lists may be empty).",
        projectInfo=project_info.to_wire(),
        requiredFields=list(ModuleSet.present_keys),
    )
    return Transition(ProjectInfoSet(basic_info=basic_info, project_info=project_info), output)


def submit_modules(state: SessionState, payload: Payload) -> Transition:
    """Assemble the record for confirmation; submission is a separate action."""
    modules = parse_step_payload(ModuleSet, payload, STEP_MODULES)
    basic_info = _stored_basic_info(state)
    project_info = _stored_project_info(state)
    if basic_info is None or project_info is None:
        raise IncompleteSessionError(
            f"Cannot record modules in state {state.name!r}; "
            "basic info and project info are required first."
        )

    record = IterationRecord(
        basic_info=basic_info, project_info=project_info, modules=modules
    )
    logger.info(
        "iteration_ready",
        extra={
            "components": len(modules.component_modules),
            "functions": len(modules.function_modules),
        },
    )
    output = _ok(
        STEP_MODULES,
        None,
        "All steps complete. Review the record and call submit_complete_iteration to submit.",
        record=record.to_wire(),
    )
    return Transition(ReadyToSubmit(record=record), output)


def parse_record(payload: Payload) -> IterationRecord:
    """Validate a complete record, applying each step's own field checks."""
    data = decode_payload(payload, "iteration_data")
    missing = IterationRecord.missing_fields(data)
    if missing:
        raise StepValidationError("iteration_data", missing_fields=missing)

    def part(*keys: str) -> Any:
        return next((data[key] for key in keys if data.get(key) is not None), None)

    return IterationRecord(
        basic_info=parse_step_payload(BasicInfo, part("basicInfo", "basic_info"), STEP_BASIC_INFO),
        project_info=parse_step_payload(
            ProjectInfo, part("projectInfo", "project_info"), STEP_PROJECT_INFO
        ),
        modules=parse_step_payload(ModuleSet, part("modules"), STEP_MODULES),
    )


def load_record(state: SessionState, payload: Payload) -> Transition:
    """Replace the session with a fully assembled record supplied in one piece."""
    record = parse_record(payload)
    logger.info("iteration_loaded", extra={"previous_state": state.name})
    output = _ok("iteration_data", None, "Record loaded.", record=record.to_wire())
    return Transition(ReadyToSubmit(record=record), output)


def submit(state: SessionState, submitter: Submitter) -> Transition:
    """Submit the assembled record; errors propagate and the caller keeps ``state``."""
    if not isinstance(state, ReadyToSubmit):
        raise IncompleteSessionError(
            f"Nothing to submit in state {state.name!r}; complete all steps first."
        )
    result = submitter.submit(state.record)
    output = {
        "status": "ok",
        "step": "submit",
        "message": "Iteration and code-review request created.",
        **result.to_dict(),
    }
    return Transition(Submitted(result=result), output)
