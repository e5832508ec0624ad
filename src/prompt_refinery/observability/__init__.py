"""Observability helpers: structured logging and pipeline event sinks."""

from prompt_refinery.observability.logging import (
    JsonLineFormatter,
    LoggingEventSink,
    NullEventSink,
    RefinementEventSink,
    configure_logging,
    correlation_scope,
    default_log_redactor,
    get_correlation_context,
)

__all__ = [
    "JsonLineFormatter",
    "LoggingEventSink",
    "NullEventSink",
    "RefinementEventSink",
    "configure_logging",
    "correlation_scope",
    "default_log_redactor",
    "get_correlation_context",
]
