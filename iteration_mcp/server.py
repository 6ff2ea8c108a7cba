#!/usr/bin/env python3
"""iteration-mcp MCP server.

Exposes the iteration collection workflow and the two-phase submission to MCP
hosts over stdio.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence

from mcp.server.fastmcp import Context, FastMCP

from .core import workflow
from .core.best_effort import best_effort
from .core.cache import PersonnelCache
from .core.client import RemoteService, RemoteServiceClient
from .core.config import ServiceConfig, load_service_config
from .core.credentials import TokenProvider
from .core.errors import IterationError, NoCredentialError, StepValidationError
from .core.git_metadata import GitMetadataResolver
from .core.submitter import TwoPhaseSubmitter
from .core.workspace import resolve_workspace
from .observability import configure_logging

logger = logging.getLogger("iteration_mcp.server")

ROOTS_TIMEOUT_SECONDS = 2.0

mcp = FastMCP("iteration-mcp")


class IterationService:
    """Owns the single session of this process and its collaborators."""

    def __init__(
        self,
        *,
        resolver: Optional[GitMetadataResolver] = None,
        cache: Optional[PersonnelCache] = None,
        tokens: Optional[TokenProvider] = None,
        config_loader: Callable[[], ServiceConfig] = load_service_config,
        remote_factory: Optional[Callable[[], RemoteService]] = None,
        default_workdir: Optional[Path] = None,
        token_file: Optional[Path] = None,
    ) -> None:
        self.resolver = resolver or GitMetadataResolver()
        self.cache = cache or PersonnelCache()
        self.config_loader = config_loader
        self.tokens = tokens or TokenProvider(config_loader=config_loader)
        self.remote_factory = remote_factory
        self.default_workdir = default_workdir
        self.state: workflow.SessionState = workflow.Idle()
        self._remote: Optional[RemoteService] = None
        if token_file is not None:
            self.tokens.load_session_token(token_file)

    def remote(self) -> RemoteService:
        if self._remote is None:
            if self.remote_factory is not None:
                self._remote = self.remote_factory()
            else:
                self._remote = RemoteServiceClient(
                    self.config_loader(), self.tokens.get_token
                )
        return self._remote

    def workspace(self, workdir: Optional[str], roots: Sequence[str] = ()) -> Path:
        return resolve_workspace(workdir or self.default_workdir, roots)

    # ------------------------------------------------------------------
    # tool bodies
    # ------------------------------------------------------------------

    def run_step(
        self,
        step: str,
        data: Any = None,
        workdir: Optional[str] = None,
        roots: Sequence[str] = (),
    ) -> Dict[str, Any]:
        logger.info("step_start", extra={"step": step, "state": self.state.name})
        try:
            transition = self._dispatch(step, data, workdir, roots)
        except IterationError as exc:
            logger.warning(
                "step_failed", extra={"step": step, "error_kind": exc.kind, "error": str(exc)}
            )
            return {**exc.to_dict(), "state": self.state.name}
        self.state = transition.state
        return {**transition.output, "state": self.state.name}

    def _dispatch(
        self, step: str, data: Any, workdir: Optional[str], roots: Sequence[str]
    ) -> workflow.Transition:
        if step == workflow.STEP_START:
            remote = best_effort("remote.connect", self.remote)
            return workflow.start(self.state, remote, self.cache)
        if step == workflow.STEP_BASIC_INFO:
            return workflow.submit_basic_info(
                self.state, data, self.resolver, self.workspace(workdir, roots), self.cache
            )
        if step == workflow.STEP_PROJECT_INFO:
            return workflow.submit_project_info(self.state, data, self.cache)
        if step == workflow.STEP_MODULES:
            return workflow.submit_modules(self.state, data)
        raise StepValidationError(
            step or "<missing>",
            errors=[f"unknown step; expected one of {', '.join(workflow.STEPS)}"],
        )

    def submit(self, iteration_data: Any = None) -> Dict[str, Any]:
        state = self.state
        try:
            if iteration_data:
                state = workflow.load_record(state, iteration_data).state
            submitter = TwoPhaseSubmitter(self.remote(), self.cache)
            transition = workflow.submit(state, submitter)
        except IterationError as exc:
            logger.warning(
                "submission_failed", extra={"error_kind": exc.kind, "error": str(exc)}
            )
            return {**exc.to_dict(), "state": self.state.name}
        self.state = transition.state
        logger.info("submission_complete", extra={"result": transition.output})
        return {**transition.output, "state": self.state.name}

    def login_status(self) -> Dict[str, Any]:
        try:
            self.tokens.get_token()
        except NoCredentialError as exc:
            return {"status": "ok", "loggedIn": False, "message": str(exc)}
        return {
            "status": "ok",
            "loggedIn": True,
            "sessionToken": self.tokens.has_session_token(),
        }

    def users(self) -> Dict[str, Any]:
        try:
            users = self.remote().list_users()
        except IterationError as exc:
            cached = self.cache.get_users(allow_stale=True)
            if not cached:
                return exc.to_dict()
            logger.warning("users_from_cache", extra={"error": str(exc)})
            return {
                "status": "ok",
                "source": "cache",
                "users": [user.to_dict() for user in cached],
            }
        self.cache.store_users(users)
        return {"status": "ok", "source": "remote", "users": [u.to_dict() for u in users]}

    def git_info(self, workdir: Optional[str] = None, roots: Sequence[str] = ()) -> Dict[str, Any]:
        path = self.workspace(workdir, roots)
        snapshot = self.resolver.resolve(path)
        return {"status": "ok", "workspace": str(path), **snapshot.to_dict()}


_service: Optional[IterationService] = None


def get_service() -> IterationService:
    global _service
    if _service is None:
        _service = IterationService()
    return _service


async def _host_roots(ctx: Optional[Context]) -> list[str]:
    if ctx is None:
        return []
    try:
        result = await asyncio.wait_for(
            ctx.session.list_roots(), timeout=ROOTS_TIMEOUT_SECONDS
        )
    except Exception as exc:  # noqa: BLE001 - hosts without roots support fall back
        logger.debug("host_roots_unavailable", extra={"error": str(exc)})
        return []
    return [str(root.uri) for root in result.roots]


# -----------------------------------------------------------------------------
# MCP tools
# -----------------------------------------------------------------------------


@mcp.tool()
def check_login_status() -> dict[str, Any]:
    """Report whether an authorization token is available."""
    return get_service().login_status()


@mcp.tool()
async def create_iteration(
    step: str,
    ctx: Context,
    data: str | dict[str, Any] | None = None,
    workdir: str | None = None,
) -> dict[str, Any]:
    """Run one collection step: start, basic_info, project_info or modules.

    ``data`` is the step payload, a JSON object or its string form. ``workdir`` overrides
    the workspace used to derive git metadata during the basic_info step.
    """
    roots: list[str] = []
    if step == workflow.STEP_BASIC_INFO and not workdir:
        roots = await _host_roots(ctx)
    return get_service().run_step(step, data, workdir, roots)


@mcp.tool()
def submit_complete_iteration(
    iteration_data: str | dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Submit the assembled record, or a complete record given as JSON."""
    return get_service().submit(iteration_data)


@mcp.tool()
def get_user_list() -> dict[str, Any]:
    """List users selectable as participants and reviewers."""
    return get_service().users()


@mcp.tool()
async def get_git_info(ctx: Context, workdir: str | None = None) -> dict[str, Any]:
    """Show the git metadata derived from the workspace."""
    roots = [] if workdir else await _host_roots(ctx)
    return get_service().git_info(workdir, roots)


def run(workdir: Optional[str] = None, token_file: Optional[str] = None) -> None:
    global _service
    configure_logging()
    _service = IterationService(
        default_workdir=Path(workdir) if workdir else None,
        token_file=Path(token_file) if token_file else None,
    )
    logger.info("server_start", extra={"workdir": workdir})
    mcp.run()


if __name__ == "__main__":
    run()
