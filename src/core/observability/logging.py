"""
Artifact Log Records

Log records from the artifact backends carry the artifact they touched as
flat ``artifact_*`` extras:

    logger.info("Saved artifact", extra=log_extra(session_info, "a.txt", 3))

StructuredFormatter groups those extras into one "artifact" object next to the
active trace and span IDs. LogContextFilter renders the same context as a
short reference for plain-text output.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .tracing import get_span_id, get_trace_id

ARTIFACT_EXTRA_PREFIX = "artifact_"

# Order of the parts in a plain-text artifact reference
_REFERENCE_FIELDS = ("app", "user", "session", "filename")

_HANDLER_NAME = "agent-artifacts"

_NOISY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3")

# Attributes every LogRecord has; anything else came in through extra=
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "trace_id",
    "artifact_ref",
}


def artifact_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Collect the artifact_* extras of a record, prefix stripped."""
    return {
        key[len(ARTIFACT_EXTRA_PREFIX):]: value
        for key, value in vars(record).items()
        if key.startswith(ARTIFACT_EXTRA_PREFIX) and key not in _RECORD_ATTRS
    }


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter, one object per line.

    Example:
        {"timestamp": "...Z", "level": "INFO", "logger": "core.artifacts.s3",
         "message": "Saved artifact", "trace_id": "...", "span_id": "...",
         "artifact": {"app": "app", "user": "u1", "session": "s1",
                      "filename": "a.txt", "version": 3}}
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "trace_id": get_trace_id(),
            "span_id": get_span_id(),
        }

        context = artifact_context(record)
        if context:
            entry["artifact"] = {key: _jsonable(value) for key, value in context.items()}

        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key.startswith(("_", ARTIFACT_EXTRA_PREFIX)):
                continue
            entry[key] = _jsonable(value)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry)


class LogContextFilter(logging.Filter):
    """
    Adds ``trace_id`` and ``artifact_ref`` to every record.

    artifact_ref reads "app/user/session/filename@version", with the parts
    the record does not carry left out, or "-" when it carries none.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = get_trace_id() or "-"

        context = artifact_context(record)
        reference = "/".join(str(context[f]) for f in _REFERENCE_FIELDS if f in context)
        if "version" in context:
            reference = f"{reference}@{context['version']}"
        record.artifact_ref = reference or "-"
        return True


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    return number if isinstance(number, int) else logging.INFO


def configure_logging(level: str = "INFO", structured: bool = True) -> logging.Handler:
    """
    Install the artifact log handler on the root logger.

    Calling it again replaces the handler it installed before; handlers
    installed by anything else are left alone.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR). Unknown names
               fall back to INFO; ArtifactStorageConfig.validate() reports them.
        structured: Emit JSON lines instead of plain text

    Returns:
        The installed handler
    """
    level_number = _level_number(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level_number)

    for handler in root_logger.handlers[:]:
        if handler.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(level_number)
    handler.addFilter(LogContextFilter())
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [trace=%(trace_id)s artifact=%(artifact_ref)s] %(message)s"
        ))
    root_logger.addHandler(handler)

    # boto3 logs every request at DEBUG
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Artifact logging configured: level={logging.getLevelName(level_number)}, structured={structured}"
    )
    return handler


def log_level_is_valid(level: Optional[str]) -> bool:
    """Return True if level names a standard logging level."""
    return bool(level) and isinstance(logging.getLevelName(level.upper()), int)
