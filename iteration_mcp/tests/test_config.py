"""Tests for service configuration discovery."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from iteration_mcp.core import ConfigError, load_service_config


def test_first_search_directory_wins(tmp_path: Path) -> None:
    home, cwd = tmp_path / "home", tmp_path / "cwd"
    home.mkdir()
    cwd.mkdir()
    (home / ".mcp-config.json").write_text(
        json.dumps({"api": {"baseUrl": "https://home.example.com/"}}), encoding="utf-8"
    )
    (cwd / "mcp-config.json").write_text(
        json.dumps({"api": {"baseUrl": "https://cwd.example.com"}}), encoding="utf-8"
    )

    config = load_service_config(environ={}, search_dirs=[home, cwd])

    assert config.base_url == "https://home.example.com"
    assert config.source == home / ".mcp-config.json"


def test_yaml_config_and_endpoint_overrides(tmp_path: Path) -> None:
    (tmp_path / "mcp-config.yaml").write_text(
        "api:\n"
        "  baseUrl: https://cr.example.com\n"
        "  timeout: 5\n"
        "  endpoints:\n"
        "    createSprint: /v2/sprint\n"
        "auth:\n"
        "  Authorization: Bearer abc\n",
        encoding="utf-8",
    )

    config = load_service_config(environ={}, search_dirs=[tmp_path])

    assert config.endpoints.create_sprint == "/v2/sprint"
    assert config.endpoints.get_user_list == "/api/common/getUserList"
    assert config.timeout_seconds == 5
    assert config.auth.bearer_token() == "abc"


def test_environment_overrides(tmp_path: Path) -> None:
    explicit = tmp_path / "elsewhere.json"
    explicit.write_text(json.dumps({"api": {"baseUrl": "https://file"}}), encoding="utf-8")

    config = load_service_config(
        environ={
            "ITERATION_MCP_CONFIG": str(explicit),
            "ITERATION_MCP_BASE_URL": "https://env.example.com",
        },
        search_dirs=[],
    )

    assert config.base_url == "https://env.example.com"


def test_missing_base_url_fails_lazily(tmp_path: Path) -> None:
    config = load_service_config(environ={}, search_dirs=[tmp_path])
    with pytest.raises(ConfigError):
        _ = config.base_url


def test_invalid_file_is_a_config_error(tmp_path: Path) -> None:
    (tmp_path / "mcp-config.json").write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_service_config(environ={}, search_dirs=[tmp_path])


def test_explicit_path_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_service_config(
            environ={"ITERATION_MCP_CONFIG": str(tmp_path / "nope.json")}, search_dirs=[]
        )
