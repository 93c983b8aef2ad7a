"""
Artifact Telemetry Context

Describes which artifact an operation touched, for spans and log records.

Spans carry dotted attributes ("artifact.app", "artifact.filename", ...).
Log records carry flat extras ("artifact_app", "artifact_filename", ...) that
core.observability.logging groups back into one "artifact" object.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry.trace import Span

from ..observability.logging import ARTIFACT_EXTRA_PREFIX
from ..observability.tracing import create_span
from .base import SessionInfo, StorageBackend


def _context(session_info: SessionInfo, filename: Optional[str]) -> Dict[str, Any]:
    context: Dict[str, Any] = {
        "app": session_info.app_name,
        "user": session_info.user_id,
        "session": session_info.session_id,
    }
    if filename is not None:
        context["filename"] = filename
    return context


def span_attributes(session_info: SessionInfo, filename: Optional[str] = None) -> Dict[str, Any]:
    """Span attributes identifying an artifact."""
    return {f"artifact.{key}": value for key, value in _context(session_info, filename).items()}


def log_extra(
    session_info: SessionInfo,
    filename: Optional[str] = None,
    version: Optional[int] = None,
) -> Dict[str, Any]:
    """Log record extras identifying an artifact, for logger calls' extra=."""
    context = _context(session_info, filename)
    if version is not None:
        context["version"] = version
    return {f"{ARTIFACT_EXTRA_PREFIX}{key}": value for key, value in context.items()}


@contextmanager
def artifact_span(
    backend: StorageBackend,
    operation: str,
    session_info: SessionInfo,
    filename: Optional[str] = None,
) -> Iterator[Span]:
    """
    Span named "artifact.{backend}.{operation}" around one service call.

    Usage:
        with artifact_span(StorageBackend.LOCAL, "save_artifact", info, "a.txt") as span:
            span.set_attribute("artifact.version", version)
    """
    attributes = span_attributes(session_info, filename)
    attributes["artifact.backend"] = backend.value
    with create_span(f"artifact.{backend.value}.{operation}", attributes) as span:
        yield span
