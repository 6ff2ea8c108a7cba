"""Bearer token lookup across session, environment and config files."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Callable, Mapping, Optional

from .config import AuthSettings, ServiceConfig
from .errors import ConfigError, NoCredentialError

logger = logging.getLogger("iteration_mcp.credentials")

TOKEN_ENV = "ITERATION_MCP_TOKEN"
TEST_TOKEN_FILE = "test-token.config.json"

NO_TOKEN_GUIDANCE = (
    "No authorization token found. Provide one of:\n"
    f"  1. the {TOKEN_ENV} environment variable\n"
    '  2. "auth": {"Authorization": "Bearer <token>"} in mcp-config.json\n'
    f'  3. {TEST_TOKEN_FILE} with {{"Authorization": "Bearer <token>"}}'
)


class TokenProvider:
    """Resolve the bearer token; the first source that yields one wins."""

    def __init__(
        self,
        config_loader: Optional[Callable[[], ServiceConfig]] = None,
        environ: Optional[Mapping[str, str]] = None,
        workdir: Optional[Path] = None,
    ) -> None:
        self._config_loader = config_loader
        self._environ = environ
        self._workdir = workdir
        self._session_token: Optional[str] = None

    def set_session_token(self, token: str) -> None:
        """Use a personal token for the rest of the process, ahead of every other source."""
        self._session_token = token.strip() or None
        logger.info("session_token_set")

    def load_session_token(self, path: Path) -> None:
        """Read the session token from a file holding the token or "Bearer <token>"."""
        try:
            text = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read token file {path}: {exc}") from exc
        if text.startswith("Bearer "):
            text = text[len("Bearer ") :]
        if not text.strip():
            raise ConfigError(f"Token file {path} is empty")
        self.set_session_token(text)

    def clear_session_token(self) -> None:
        self._session_token = None
        logger.info("session_token_cleared")

    def has_session_token(self) -> bool:
        return self._session_token is not None

    def get_token(self) -> str:
        if self._session_token:
            return self._session_token

        env = os.environ if self._environ is None else self._environ
        from_env = (env.get(TOKEN_ENV) or "").strip()
        if from_env:
            logger.debug("token_source", extra={"source": "environment"})
            return from_env

        from_config = self._token_from_config()
        if from_config:
            logger.debug("token_source", extra={"source": "config"})
            return from_config

        from_file = self._token_from_test_file()
        if from_file:
            logger.debug("token_source", extra={"source": TEST_TOKEN_FILE})
            return from_file

        raise NoCredentialError(NO_TOKEN_GUIDANCE)

    def _token_from_config(self) -> Optional[str]:
        if self._config_loader is None:
            return None
        try:
            config = self._config_loader()
        except ConfigError as exc:
            logger.debug("token_config_unavailable", extra={"error": str(exc)})
            return None
        return config.auth.bearer_token()

    def _token_from_test_file(self) -> Optional[str]:
        path = (self._workdir or Path.cwd()) / TEST_TOKEN_FILE
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(
                "test_token_unreadable", extra={"path": str(path), "error": str(exc)}
            )
            return None
        if not isinstance(data, dict) or not isinstance(data.get("Authorization"), str):
            return None
        return AuthSettings.model_validate(data).bearer_token()
