"""iteration-mcp core package - collection workflow and submission."""

from .cache import PersonnelCache
from .client import RemoteService, RemoteServiceClient
from .config import ServiceConfig, load_service_config
from .credentials import TokenProvider
from .errors import (
    ConfigError,
    IncompleteSessionError,
    IterationError,
    NoCredentialError,
    ProjectNotFoundError,
    RemoteCallError,
    StepValidationError,
)
from .git_metadata import GitMetadataResolver, estimate_work_days
from .identifiers import resolve_project_id
from .models import (
    BasicInfo,
    GitSnapshot,
    IterationRecord,
    ModuleSet,
    Project,
    ProjectInfo,
    SubmissionResult,
    User,
)
from .submitter import TwoPhaseSubmitter
from .workspace import resolve_workspace

__all__ = [
    "BasicInfo",
    "ConfigError",
    "GitMetadataResolver",
    "GitSnapshot",
    "IncompleteSessionError",
    "IterationError",
    "IterationRecord",
    "ModuleSet",
    "NoCredentialError",
    "PersonnelCache",
    "Project",
    "ProjectInfo",
    "ProjectNotFoundError",
    "RemoteCallError",
    "RemoteService",
    "RemoteServiceClient",
    "ServiceConfig",
    "StepValidationError",
    "SubmissionResult",
    "TokenProvider",
    "TwoPhaseSubmitter",
    "User",
    "estimate_work_days",
    "load_service_config",
    "resolve_project_id",
    "resolve_workspace",
]
