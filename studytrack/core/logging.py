"""Root logger setup.

Text lines by default, JSON Lines with LOG_JSON=true:

  2026-03-02T10:15:04.512+00:00 WARNING  studytrack.services.item_counter  Item count lookup failed  [item_counter.py:41]

  {"timestamp": "...", "level": "INFO", "logger": "studytrack.services.visit_tracker",
   "message": "Visit recorded ...", "request_id": "9b1c...", "student_id": "65f...", "unit_id": "u1"}

Progress code attaches ids with `extra=`; the JSON formatter lifts the
known context keys to the top level so one learner's activity can be
filtered out of the stream.  Other `extra=` keys are not emitted.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime

CONTEXT_FIELDS: tuple[str, ...] = (
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "student_id",
    "unit_id",
    "chapter_id",
    "subject_id",
    "exam_id",
    "cache",
)

# libraries that stay at WARNING even when we run at DEBUG
_QUIET_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpcore",
    "httpx",
    "sqlalchemy.engine",
)


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created).astimezone().isoformat(timespec="milliseconds")


class _ContainerFormatter(logging.Formatter):
    """One line per record; WARNING and up get a [file:line] tail."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-8s %(name)s  %(message)s")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _timestamp(record)

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if record.levelno < logging.WARNING:
            return text
        head, newline, rest = text.partition("\n")
        return f"{head}  [{record.filename}:{record.lineno}]{newline}{rest}"


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key))
            for key in CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Replace the root handlers with one stdout handler.

    Unknown level names fall back to INFO.
    """
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
