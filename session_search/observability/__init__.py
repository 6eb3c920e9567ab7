"""Observability helpers."""

from session_search.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_tool_call,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_tool_call",
]
