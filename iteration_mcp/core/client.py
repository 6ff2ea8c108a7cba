"""HTTP client for the remote code-review service."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

import httpx

from .config import ServiceConfig
from .errors import RemoteCallError
from .models import Project, User

logger = logging.getLogger("iteration_mcp.client")

TOKEN_EXPIRED_CODE = 40001


class RemoteService(Protocol):
    """Operations the workflow and submitter need from the remote service."""

    def list_projects(self) -> List[Project]: ...

    def list_users(self) -> List[User]: ...

    def create_sprint(self, payload: Mapping[str, Any]) -> str: ...

    def verify_sprint(self, sprint_id: str) -> bool: ...

    def create_cr_request(self, sprint_id: str, payload: Mapping[str, Any]) -> str: ...


def _error_message(body: Any, default: str) -> str:
    if isinstance(body, dict):
        for key in ("errorMsg", "message", "msg"):
            value = body.get(key)
            if value:
                return str(value)
    return default


def _unwrap_list(body: Any) -> List[Any]:
    data = body.get("data") if isinstance(body, dict) else body
    if isinstance(data, dict) and isinstance(data.get("list"), list):
        return data["list"]
    if isinstance(data, list):
        return data
    if isinstance(body, list):
        return body
    return []


def _record_id(item: Mapping[str, Any], endpoint: str, body: Any) -> int:
    try:
        return int(item["id"])
    except (KeyError, TypeError, ValueError) as exc:
        raise RemoteCallError(
            f"{endpoint} returned a record with an invalid id: {item.get('id')!r}",
            endpoint=endpoint,
            body=body,
        ) from exc


class RemoteServiceClient:
    """Synchronous client; every call is a JSON POST with a bearer token."""

    def __init__(
        self,
        config: ServiceConfig,
        token: Callable[[], str],
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config
        self._token = token
        self._transport = transport
        self._http: Optional[httpx.Client] = None

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------

    def _client(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self._http

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None

    def __enter__(self) -> "RemoteServiceClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _post(
        self, endpoint: str, payload: Mapping[str, Any], *, allow_bare_list: bool = False
    ) -> Any:
        headers = {
            "authorization": f"Bearer {self._token()}",
            "content-type": "application/json",
        }
        logger.debug("remote_call", extra={"endpoint": endpoint})
        try:
            response = self._client().post(endpoint, json=dict(payload), headers=headers)
        except httpx.HTTPError as exc:
            raise RemoteCallError(
                f"Request to {endpoint} failed: {exc}", endpoint=endpoint
            ) from exc

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text

        if response.is_error:
            raise RemoteCallError(
                _error_message(body, f"HTTP {response.status_code} from {endpoint}"),
                endpoint=endpoint,
                status_code=response.status_code,
                body=body,
            )
        if allow_bare_list and isinstance(body, list):
            return body
        if not isinstance(body, dict):
            raise RemoteCallError(
                f"Unexpected response from {endpoint}",
                endpoint=endpoint,
                status_code=response.status_code,
                body=body,
            )
        if body.get("errorCode") == TOKEN_EXPIRED_CODE:
            raise RemoteCallError(
                "Authorization token expired; refresh ITERATION_MCP_TOKEN or the "
                "configured token.",
                endpoint=endpoint,
                status_code=response.status_code,
                body=body,
            )
        if not body.get("success"):
            raise RemoteCallError(
                _error_message(body, f"{endpoint} reported failure"),
                endpoint=endpoint,
                status_code=response.status_code,
                body=body,
            )
        return body

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    def list_projects(self) -> List[Project]:
        endpoint = self.config.endpoints.get_project_list
        body = self._post(endpoint, {}, allow_bare_list=True)
        projects = [
            Project(
                id=_record_id(item, endpoint, body), name=str(item.get("name") or "")
            )
            for item in _unwrap_list(body)
            if isinstance(item, dict) and item.get("id") is not None
        ]
        logger.info("projects_listed", extra={"count": len(projects)})
        return projects

    def list_users(self) -> List[User]:
        endpoint = self.config.endpoints.get_user_list
        body = self._post(endpoint, {}, allow_bare_list=True)
        users = [
            User(
                id=_record_id(item, endpoint, body),
                name=str(item.get("realName") or item.get("name") or ""),
            )
            for item in _unwrap_list(body)
            if isinstance(item, dict) and item.get("id") is not None
        ]
        logger.info("users_listed", extra={"count": len(users)})
        return users

    def create_sprint(self, payload: Mapping[str, Any]) -> str:
        endpoint = self.config.endpoints.create_sprint
        body = self._post(endpoint, payload)
        data = body.get("data")
        if not isinstance(data, dict) or data.get("id") is None:
            raise RemoteCallError(
                "Sprint creation response carried no id", endpoint=endpoint, body=body
            )
        return str(data["id"])

    def verify_sprint(self, sprint_id: str) -> bool:
        try:
            self._post(self.config.endpoints.get_sprint_detail, {"sprintId": int(sprint_id)})
        except RemoteCallError as exc:
            logger.warning(
                "sprint_verification_failed",
                extra={"sprint_id": sprint_id, "error": str(exc)},
            )
            return False
        return True

    def create_cr_request(self, sprint_id: str, payload: Mapping[str, Any]) -> str:
        body = self._post(
            self.config.endpoints.create_cr_request,
            {**payload, "sprintId": int(sprint_id)},
        )
        data: Dict[str, Any] = body.get("data") if isinstance(body.get("data"), dict) else {}
        identifier = data.get("crRequestId") or data.get("id") or f"cr_{sprint_id}"
        return str(identifier)
