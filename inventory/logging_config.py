"""Logging for the inventory client.

Plain log lines go to the console. Commit events (one per session
transition and one per remote operation) are also appended to a daily
JSONL trace, so a partially failed save can be reconstructed afterwards:
which product, which step, which call, and what the server answered.

Trace entries look like::

    {"timestamp": "...", "level": "ERROR", "event": "operation_failed",
     "product_id": "42", "step": 2, "method": "delete_image",
     "target": "image 7", "message": "...", "data": {"error": "..."}}
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from inventory.config import LOG_DIR

__all__ = [
    "TRACE_FIELDS",
    "CommitTraceHandler",
    "ConsoleFormatter",
    "setup_logging",
    "get_logger",
    "log_commit_event",
]

# Promoted to top-level keys of every trace entry (null when not relevant)
TRACE_FIELDS = ("product_id", "step", "method", "target")


class CommitTraceHandler(logging.Handler):
    """Writes commit events to `<trace_dir>/commits_YYYYMMDD.jsonl`.

    Records that are not commit events are ignored.
    """

    def __init__(self, trace_dir: Path):
        super().__init__(logging.DEBUG)
        self.trace_dir = Path(trace_dir)

    def path_for(self, when: datetime) -> Path:
        return self.trace_dir / f"commits_{when:%Y%m%d}.jsonl"

    def build_entry(self, record: logging.LogRecord) -> dict:
        data = dict(getattr(record, "commit_data", None) or {})
        when = datetime.fromtimestamp(record.created)
        entry = {
            "timestamp": when.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "event": record.commit_event,
        }
        for name in TRACE_FIELDS:
            entry[name] = data.pop(name, None)
        entry["message"] = record.getMessage()
        if data:
            entry["data"] = data
        return entry

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(record, "commit_event", None) is None:
            return
        try:
            entry = self.build_entry(record)
            self.trace_dir.mkdir(parents=True, exist_ok=True)
            with open(self.path_for(datetime.fromtimestamp(record.created)), "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        except Exception:
            self.handleError(record)


class ConsoleFormatter(logging.Formatter):
    """'12:00:01 [ERROR] message (product_id=42 step=2)'.

    Commit events get their product and step appended; the method and
    target are already part of the message.
    """

    def __init__(self):
        super().__init__("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        data = getattr(record, "commit_data", None) or {}
        context = " ".join(
            f"{name}={data[name]}" for name in ("product_id", "step") if data.get(name) is not None
        )
        return f"{line} ({context})" if context else line


def setup_logging(
    level: int = logging.INFO,
    console: bool = True,
    trace: bool = True,
    trace_dir: Optional[Path] = None,
) -> logging.Logger:
    """Configure the 'inventory' logger.

    Args:
        level: Console level; the trace always records DEBUG and up
        console: Log to stderr
        trace: Append commit events to the JSONL trace
        trace_dir: Trace directory (default: LOG_DIR)
    """
    logger = logging.getLogger("inventory")
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if trace else level)

    if console:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(ConsoleFormatter())
        logger.addHandler(handler)

    if trace:
        logger.addHandler(CommitTraceHandler(trace_dir or LOG_DIR))

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for one module, e.g. get_logger('api') -> 'inventory.api'."""
    return logging.getLogger(f"inventory.{name}")


def log_commit_event(event: str, message: str, level: int = logging.INFO, **data: Any) -> None:
    """Log one commit event.

    `data` holds the event fields; product_id, step, method and target
    become top-level trace fields, anything else is kept under 'data'.
    """
    get_logger("reconcile").log(
        level, message, extra={"commit_event": event, "commit_data": data}
    )
