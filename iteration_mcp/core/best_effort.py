"""Run side effects whose failure must never abort the caller."""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger("iteration_mcp.best_effort")


def best_effort(
    action: str,
    func: Callable[..., T],
    *args: Any,
    default: T | None = None,
    **kwargs: Any,
) -> T | None:
    """Call ``func``; on any exception log a warning and return ``default``."""
    try:
        return func(*args, **kwargs)
    except Exception as exc:  # noqa: BLE001 - failures here are non-fatal
        logger.warning(
            "best_effort_failed",
            extra={"action": action, "error": f"{type(exc).__name__}: {exc}"},
        )
        return default
