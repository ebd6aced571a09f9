# src/logging/logger.py — v3
"""Logger factory with JSON and text formatters.

Pipeline code attaches structured fields through ``extra=`` (see
PIPELINE_FIELDS); the JSON formatter groups them under ``pipeline`` and
the text formatter appends stage progress when it is present.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from mediaquote.logging.context import get_context

# Record attributes recognised as pipeline telemetry when passed via extra=.
PIPELINE_FIELDS: tuple[str, ...] = (
    "stage_index",
    "stage_status",
    "progress",
    "question_index",
    "question_total",
    "endpoint",
    "status_code",
    "latency_ms",
)


def pipeline_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Collect the pipeline telemetry attached to a record."""
    return {
        name: getattr(record, name)
        for name in PIPELINE_FIELDS
        if getattr(record, name, None) is not None
    }


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line: message, run context and pipeline fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _record_time(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = get_context().as_dict()
        if context:
            entry["context"] = context
        fields = pipeline_fields(record)
        if fields:
            entry["pipeline"] = fields
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable line: ``time [LEVEL] logger [session] (stage NN%) - msg``."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        parts = [
            _record_time(record).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
        ]
        if ctx.session_id:
            parts.append(f"[{ctx.session_id}]")
        if ctx.stage:
            progress = getattr(record, "progress", None)
            suffix = f" {progress:.0f}%" if isinstance(progress, (int, float)) else ""
            parts.append(f"({ctx.stage}{suffix})")
        parts.append(f"- {record.getMessage()}")
        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """Named logger under the ``mediaquote`` namespace."""
    return logging.getLogger(f"mediaquote.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> None:
    """Attach stderr (and optionally a rotating file) to the ``mediaquote`` logger.

    Calling it again replaces the handlers instead of stacking them.
    """
    package_logger = logging.getLogger("mediaquote")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    package_logger.handlers.clear()

    formatter: logging.Formatter = (
        JsonFormatter() if log_format == "json" else TextFormatter()
    )

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    package_logger.addHandler(console)

    if log_file:
        from mediaquote.logging.handlers import create_rotating_handler

        file_handler = create_rotating_handler(log_file, rotation=rotation, retention=retention)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)
