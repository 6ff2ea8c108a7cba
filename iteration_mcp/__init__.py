"""iteration-mcp package root exposing the collection workflow and submitter."""

from .core import (  # isort: skip
    GitMetadataResolver,
    IterationError,
    IterationRecord,
    PersonnelCache,
    RemoteServiceClient,
    TwoPhaseSubmitter,
)

__all__ = [
    "GitMetadataResolver",
    "IterationError",
    "IterationRecord",
    "PersonnelCache",
    "RemoteServiceClient",
    "TwoPhaseSubmitter",
]
