"""
log_utils.py

Logging setup for the engine and the dashboard.

The projector, the recurrence expander and the snapshot loader skip bad
records instead of failing. Each skip is logged at WARNING with two extras,
`record_id` and `record_type`, so a log line can be traced back to the
check, rule or transaction that caused it. Both formatters below render
those extras.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

RECORD_FIELDS = ("record_id", "record_type")

_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in RECORD_FIELDS if hasattr(record, key)}


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_type: str = "text",
    enabled: bool = True,
) -> None:
    """
    Configure the root logger for the dashboard or a script.

    Args:
        level: level name ("DEBUG", "INFO", ...); unknown names fall back to INFO.
        log_file: optional path; its parent directory is created if missing.
        format_type: "json" for one JSON object per line, anything else for
            plain text. In both formats a record logged with
            `extra={"record_id": ..., "record_type": ...}` carries those
            fields, e.g. `... - Skipping check c1: ... [check c1]`.
        enabled: False disables logging entirely.

    Calling it again replaces the handlers installed by the previous call.
    """
    if not enabled:
        logging.disable(logging.CRITICAL)
        return
    logging.disable(logging.NOTSET)

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    formatter = JsonFormatter() if format_type == "json" else RecordFormatter(_TEXT_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)


class RecordFormatter(logging.Formatter):
    """Plain text, with `[record_type record_id]` appended when present."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _record_fields(record)
        if fields:
            tag = " ".join(str(fields[k]) for k in ("record_type", "record_id") if k in fields)
            line = f"{line} [{tag}]"
        return line


class JsonFormatter(logging.Formatter):
    """Format logs as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(_record_fields(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
