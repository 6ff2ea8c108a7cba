"""Logging and tracing helpers shared by the server and the CLI."""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

from opentelemetry import trace

LOG_ENV = "ITERATION_MCP_LOG"
DISABLE_TRACING_ENV = "ITERATION_MCP_DISABLE_TRACING"
TRACER_NAME = "iteration_mcp"


def _as_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def configure_logging(level: Optional[str] = None) -> None:
    """Log to stderr; stdout is reserved for the MCP stdio transport."""
    name = (level or os.environ.get(LOG_ENV, "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def tracing_enabled() -> bool:
    return not _as_bool(os.environ.get(DISABLE_TRACING_ENV))


@contextmanager
def span(name: str, attributes: Mapping[str, Any] | None = None) -> Iterator[Any]:
    """Open an OpenTelemetry span; a no-op unless an SDK is installed and enabled."""
    if not tracing_enabled():
        yield None
        return
    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(name) as current:
        for key, value in (attributes or {}).items():
            if value is not None:
                current.set_attribute(key, value)
        yield current
