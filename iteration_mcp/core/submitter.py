"""Create the sprint and its dependent code-review request."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..observability import span
from .best_effort import best_effort
from .cache import PersonnelCache
from .client import RemoteService
from .identifiers import resolve_project_id
from .models import BasicInfo, IterationRecord, SubmissionResult

logger = logging.getLogger("iteration_mcp.submitter")

MISSING_LINK = "-"


def _link(value: Optional[str]) -> str:
    text = (value or "").strip()
    return text or MISSING_LINK


def _join_ids(ids: list[int]) -> str:
    return ",".join(str(value) for value in ids)


def _format_days(days: float) -> str:
    value = float(days)
    return str(int(value)) if value.is_integer() else str(value)


def build_sprint_payload(basic_info: BasicInfo, project_id: int) -> Dict[str, Any]:
    return {
        "projectId": project_id,
        "name": basic_info.iteration_name,
        "projectLine": basic_info.project_line,
        "releaseTime": f"{basic_info.online_time} 00:00:00",
        "remark": basic_info.remarks or "",
    }


def build_cr_request_payload(record: IterationRecord) -> Dict[str, Any]:
    """CR request body; ``sprintId`` is added once the sprint exists."""
    info = record.project_info
    return {
        "reqDocUrl": _link(info.product_doc),
        "techDocUrl": _link(info.technical_doc),
        "projexUrl": _link(info.dashboard_url),
        "uxDocUrl": _link(info.design_doc),
        "gitlabUrl": info.git_url,
        "gitProjectName": info.git_project_name,
        "gitlabBranch": info.branch,
        "participantIds": _join_ids(info.participant_ids),
        "checkUserIds": _join_ids(info.reviewer_ids),
        "spendTime": _format_days(info.estimated_days),
        "componentList": [
            {
                "name": component.name,
                "address": component.relative_path,
                "auditId": component.reviewer_id,
                "imgUrl": component.image.public_url() if component.image else "",
            }
            for component in record.modules.component_modules
        ],
        "functionList": [
            {
                "name": function.name,
                "desc": function.description or "",
                "auditId": function.reviewer_id,
            }
            for function in record.modules.function_modules
        ],
    }


class TwoPhaseSubmitter:
    """Sprint first, then the CR request that references it.

    A sprint created before a failed CR request is left in place.
    """

    def __init__(self, client: RemoteService, cache: Optional[PersonnelCache] = None):
        self.client = client
        self.cache = cache

    def submit(self, record: IterationRecord) -> SubmissionResult:
        basic = record.basic_info
        with span("iteration.submit", {"iteration.project_line": basic.project_line}):
            projects = self.client.list_projects()
            project_id = resolve_project_id(basic.project_line, projects)
            cr_payload = build_cr_request_payload(record)

            with span("iteration.create_sprint", {"iteration.project_id": project_id}):
                sprint_id = self.client.create_sprint(
                    build_sprint_payload(basic, project_id)
                )
            logger.info(
                "sprint_created", extra={"sprint_id": sprint_id, "project_id": project_id}
            )

            verified = best_effort(
                "submit.verify_sprint", self.client.verify_sprint, sprint_id, default=False
            )
            if not verified:
                logger.warning("sprint_unverified", extra={"sprint_id": sprint_id})

            with span("iteration.create_cr_request", {"iteration.sprint_id": sprint_id}):
                try:
                    cr_id = self.client.create_cr_request(sprint_id, cr_payload)
                except Exception:
                    logger.error("cr_request_failed", extra={"sprint_id": sprint_id})
                    raise
            logger.info(
                "cr_request_created", extra={"sprint_id": sprint_id, "cr_request_id": cr_id}
            )

            if self.cache is not None:
                best_effort("cache.record_submission", self.cache.record_submission, record)

            return SubmissionResult(parent_id=str(sprint_id), dependent_id=str(cr_id))
