"""Tests for the declared runtime dependencies."""

from __future__ import annotations

import re
from pathlib import Path

PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


def _requirement(name: str) -> str:
    text = PYPROJECT.read_text(encoding="utf-8")
    match = re.search(rf'^\s*"({re.escape(name)}[<>=!~,.\d\s]*)",?\s*$', text, re.MULTILINE)
    assert match, f"{name} is not declared"
    return match.group(1).replace(" ", "")


def test_mcp_is_held_to_the_fastmcp_line() -> None:
    specifiers = _requirement("mcp").removeprefix("mcp").split(",")
    assert ">=1.2" in specifiers
    assert "<2" in specifiers
