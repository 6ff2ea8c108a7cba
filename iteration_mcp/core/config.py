"""Service configuration discovery for the remote code-review API."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

import yaml  # type: ignore[import-not-found]
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

logger = logging.getLogger("iteration_mcp.config")

REPO_ROOT = Path(__file__).resolve().parents[2]
CONFIG_FILENAMES = ("mcp-config.json", ".mcp-config.json", "mcp-config.yaml")
CONFIG_ENV = "ITERATION_MCP_CONFIG"
BASE_URL_ENV = "ITERATION_MCP_BASE_URL"


class Endpoints(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    get_user_list: str = Field("/api/common/getUserList", alias="getUserList")
    get_project_list: str = Field("/api/common/getProjectList", alias="getProjectList")
    create_sprint: str = Field("/api/codeReview/createSprint", alias="createSprint")
    get_sprint_detail: str = Field(
        "/api/codeReview/getSprintDetail", alias="getSprintDetail"
    )
    create_cr_request: str = Field(
        "/api/codeReview/createCrRequest", alias="createCrRequest"
    )


class ApiSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    base_url: Optional[str] = Field(None, alias="baseUrl")
    timeout_seconds: float = Field(30.0, alias="timeout", gt=0)
    endpoints: Endpoints = Field(default_factory=Endpoints)


class AuthSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    authorization: Optional[str] = Field(None, alias="Authorization")

    def bearer_token(self) -> Optional[str]:
        value = (self.authorization or "").strip()
        if value.startswith("Bearer "):
            return value[len("Bearer ") :].strip() or None
        return None


class ServiceConfig(BaseModel):
    """Contents of ``mcp-config.json`` (or its YAML sibling)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api: ApiSettings = Field(default_factory=ApiSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    source: Optional[Path] = Field(None, exclude=True)

    @property
    def base_url(self) -> str:
        if not self.api.base_url:
            raise ConfigError(
                "No API base URL configured. Set api.baseUrl in mcp-config.json "
                f"or export {BASE_URL_ENV}."
            )
        return self.api.base_url.rstrip("/")

    @property
    def endpoints(self) -> Endpoints:
        return self.api.endpoints

    @property
    def timeout_seconds(self) -> float:
        return self.api.timeout_seconds


def candidate_paths(
    search_dirs: Optional[Iterable[Path]] = None,
) -> list[Path]:
    dirs = list(search_dirs) if search_dirs is not None else [
        Path.home(),
        Path.cwd(),
        REPO_ROOT,
    ]
    return [directory / name for directory in dirs for name in CONFIG_FILENAMES]


def find_config_file(
    environ: Optional[Mapping[str, str]] = None,
    search_dirs: Optional[Iterable[Path]] = None,
) -> Optional[Path]:
    env = os.environ if environ is None else environ
    explicit = env.get(CONFIG_ENV)
    if explicit:
        path = Path(os.path.expanduser(explicit))
        if not path.is_file():
            raise ConfigError(f"{CONFIG_ENV} points to a missing file: {path}")
        return path
    for candidate in candidate_paths(search_dirs):
        if candidate.is_file():
            return candidate
    return None


def _read_mapping(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text) if text.strip() else {}
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain an object")
    return data


def load_service_config(
    environ: Optional[Mapping[str, str]] = None,
    search_dirs: Optional[Iterable[Path]] = None,
) -> ServiceConfig:
    """Load the first discovered config file and apply environment overrides."""
    env = os.environ if environ is None else environ
    path = find_config_file(env, search_dirs)
    data = _read_mapping(path) if path else {}
    try:
        config = ServiceConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid service config {path}: {exc}") from exc
    config.source = path

    override = env.get(BASE_URL_ENV)
    if override:
        config.api.base_url = override
    logger.info(
        "service_config_loaded",
        extra={"path": str(path) if path else None, "base_url": config.api.base_url},
    )
    return config
