"""Error taxonomy shared by the collection workflow and the submitter."""

from __future__ import annotations

from typing import Any, Iterable, Sequence


class IterationError(RuntimeError):
    """Base class for every failure surfaced to the MCP caller."""

    kind = "iteration_error"

    def details(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "error",
            "error": self.kind,
            "message": str(self),
            **self.details(),
        }


class StepValidationError(IterationError):
    """Raised when a step payload is missing required fields or is malformed."""

    kind = "validation_error"

    def __init__(
        self,
        step: str,
        missing_fields: Sequence[str] = (),
        errors: Sequence[str] = (),
    ) -> None:
        self.step = step
        self.missing_fields = list(missing_fields)
        self.errors = list(errors)
        parts: list[str] = []
        if self.missing_fields:
            parts.append(f"missing required fields: {', '.join(self.missing_fields)}")
        parts.extend(self.errors)
        super().__init__(f"{step}: " + "; ".join(parts or ["invalid payload"]))

    def details(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "missingFields": self.missing_fields,
            "errors": self.errors,
        }


class IncompleteSessionError(IterationError):
    """Raised when a step is invoked before the steps it depends on."""

    kind = "incomplete_session"


class ProjectNotFoundError(IterationError):
    """Raised when a project line token matches no remote project."""

    kind = "project_not_found"

    def __init__(self, token: str, available: Iterable[str]) -> None:
        self.token = token
        self.available = list(available)
        listing = ", ".join(self.available) or "<none>"
        super().__init__(
            f"No project matches {token!r}. Available projects: {listing}"
        )

    def details(self) -> dict[str, Any]:
        return {"token": self.token, "available": self.available}


class NoCredentialError(IterationError):
    """Raised when no bearer token can be found in any source."""

    kind = "no_credential"


class ConfigError(IterationError):
    """Raised when the service configuration is missing or invalid."""

    kind = "config_error"


class RemoteCallError(IterationError):
    """Wraps transport, HTTP and business-level failures of the remote service."""

    kind = "remote_call_failure"

    def __init__(
        self,
        message: str,
        *,
        endpoint: str | None = None,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    def details(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "statusCode": self.status_code,
            "body": self.body,
        }
