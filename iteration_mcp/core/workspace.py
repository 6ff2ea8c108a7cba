"""Locate the user's workspace directory."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Mapping, Optional
from urllib.parse import unquote, urlparse


def root_to_path(root: str) -> Optional[Path]:
    """Convert a host-provided root (``file://`` URI or plain path) to a Path."""
    text = (root or "").strip()
    if not text:
        return None
    if text.startswith("file://"):
        parsed = urlparse(text)
        return Path(unquote(parsed.path))
    if "://" in text:
        return None
    return Path(text)


def resolve_workspace(
    explicit: Optional[str | Path] = None,
    roots: Iterable[str] = (),
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> Path:
    """Pick the workspace: explicit override, host root, shell cwd, process cwd."""
    if explicit:
        return Path(os.path.expanduser(str(explicit)))

    for root in roots:
        path = root_to_path(root)
        if path is not None:
            return path

    env = os.environ if environ is None else environ
    for key in ("PWD", "INIT_CWD"):
        value = env.get(key)
        if value and value != "/":
            return Path(value)

    return cwd or Path.cwd()
