"""Data models for iteration records and their derived metadata."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, ClassVar, List, Mapping, Type, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
)

from .errors import StepValidationError

ModelT = TypeVar("ModelT", bound="StepPayload")


def _wire(name: str, *legacy: str, **kwargs: Any) -> Any:
    """Field accepting the camelCase wire key plus any legacy spellings."""
    return Field(
        validation_alias=AliasChoices(name, *legacy),
        serialization_alias=name,
        **kwargs,
    )


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


class StepPayload(BaseModel):
    """Base for payloads submitted one step at a time."""

    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", coerce_numbers_to_str=True
    )

    # canonical wire key -> accepted spellings, checked before type validation
    required_keys: ClassVar[dict[str, tuple[str, ...]]] = {}
    # keys that must be present but may hold an empty value
    present_keys: ClassVar[dict[str, tuple[str, ...]]] = {}

    @classmethod
    def missing_fields(cls, payload: Mapping[str, Any]) -> list[str]:
        missing: list[str] = []
        for key, spellings in cls.required_keys.items():
            if all(_is_blank(payload.get(name)) for name in spellings):
                missing.append(key)
        for key, spellings in cls.present_keys.items():
            if all(payload.get(name) is None for name in spellings):
                missing.append(key)
        return missing

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def parse_step_payload(
    model: Type[ModelT], payload: Mapping[str, Any] | str | None, step: str
) -> ModelT:
    """Validate a raw step payload, raising StepValidationError on any problem."""
    data = decode_payload(payload, step)
    missing = model.missing_fields(data)
    if missing:
        raise StepValidationError(step, missing_fields=missing)
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise StepValidationError(step, errors=_describe(exc)) from exc


def decode_payload(payload: Mapping[str, Any] | str | None, step: str) -> dict[str, Any]:
    if payload is None:
        return {}
    if isinstance(payload, str):
        if not payload.strip():
            return {}
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise StepValidationError(step, errors=[f"invalid JSON: {exc}"]) from exc
    if not isinstance(payload, Mapping):
        raise StepValidationError(step, errors=["payload must be a JSON object"])
    return dict(payload)


def _describe(exc: ValidationError) -> list[str]:
    messages: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "payload"
        messages.append(f"{location}: {error.get('msg')}")
    return messages


class BasicInfo(StepPayload):
    required_keys: ClassVar[dict[str, tuple[str, ...]]] = {
        "projectLine": ("projectLine", "project_line"),
        "iterationName": ("iterationName", "iteration_name"),
        "onlineTime": ("onlineTime", "online_time"),
    }

    project_line: str = _wire("projectLine")
    iteration_name: str = _wire("iterationName")
    online_time: str = _wire("onlineTime")
    remarks: str | None = None


class ProjectInfo(StepPayload):
    required_keys: ClassVar[dict[str, tuple[str, ...]]] = {
        "gitUrl": ("gitUrl", "gitProjectUrl", "git_url"),
        "gitProjectName": ("gitProjectName", "git_project_name"),
        "branch": ("branch", "developmentBranch"),
    }

    product_doc: str | None = _wire("productDoc", default=None)
    technical_doc: str | None = _wire("technicalDoc", default=None)
    dashboard_url: str | None = _wire("dashboardUrl", "projectDashboard", default=None)
    design_doc: str | None = _wire("designDoc", default=None)
    git_url: str = _wire("gitUrl", "gitProjectUrl")
    git_project_name: str = _wire("gitProjectName")
    branch: str = _wire("branch", "developmentBranch")
    participant_ids: List[int] = _wire(
        "participantIds", "participants", default_factory=list
    )
    reviewer_ids: List[int] = _wire("reviewerIds", "reviewers", default_factory=list)
    estimated_days: float = _wire("estimatedDays", "workHours", default=0, ge=0)
    remarks: str | None = None


class ComponentImage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = "upload_later"
    value: str | None = None

    def public_url(self) -> str:
        if self.value and self.value.startswith(("http://", "https://")):
            return self.value
        return ""


class ComponentModule(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    relative_path: str = _wire("relativePath", default="")
    reviewer_id: int = _wire("reviewerId", "reviewer")
    image: ComponentImage | None = None


class FunctionModule(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    reviewer_id: int = _wire("reviewerId", "reviewer")
    description: str | None = None
    relative_path: str | None = _wire("relativePath", default=None)


class ModuleSet(StepPayload):
    present_keys: ClassVar[dict[str, tuple[str, ...]]] = {
        "componentModules": ("componentModules", "component_modules"),
        "functionModules": ("functionModules", "function_modules"),
    }

    component_modules: List[ComponentModule] = _wire("componentModules")
    function_modules: List[FunctionModule] = _wire("functionModules")


class IterationRecord(StepPayload):
    """The fully assembled record; every part is mandatory."""

    present_keys: ClassVar[dict[str, tuple[str, ...]]] = {
        "basicInfo": ("basicInfo", "basic_info"),
        "projectInfo": ("projectInfo", "project_info"),
        "modules": ("modules",),
    }

    basic_info: BasicInfo = _wire("basicInfo")
    project_info: ProjectInfo = _wire("projectInfo")
    modules: ModuleSet


@dataclass(frozen=True)
class GitSnapshot:
    """Metadata derived from the workspace checkout; never edited by the user."""

    project_url: str | None = None
    project_name: str | None = None
    branch: str | None = None
    estimated_days: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectUrl": self.project_url,
            "projectName": self.project_name,
            "branch": self.branch,
            "estimatedDays": self.estimated_days,
        }


@dataclass(frozen=True)
class Project:
    id: int
    name: str

    def label(self) -> str:
        return f"{self.name}({self.id})"


@dataclass(frozen=True)
class User:
    id: int
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class SubmissionResult:
    parent_id: str
    dependent_id: str

    def to_dict(self) -> dict[str, str]:
        return {"iterationId": self.parent_id, "crApplicationId": self.dependent_id}
