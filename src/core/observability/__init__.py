"""
Observability Module

Provides OpenTelemetry tracing and structured logging.
"""

from .tracing import (
    init_tracing,
    get_tracer,
    get_current_span,
    get_trace_id,
    get_span_id,
    create_span,
)
from .logging import (
    configure_logging,
    artifact_context,
    log_level_is_valid,
    StructuredFormatter,
    LogContextFilter,
)

__all__ = [
    # Tracing
    "init_tracing",
    "get_tracer",
    "get_current_span",
    "get_trace_id",
    "get_span_id",
    "create_span",
    # Logging
    "configure_logging",
    "artifact_context",
    "log_level_is_valid",
    "StructuredFormatter",
    "LogContextFilter",
]
