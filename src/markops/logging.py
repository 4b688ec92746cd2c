"""JSONL activity log for a markops workspace.

Every record under the ``markops`` logger is appended to
``.markops/markops.log`` as one JSON object per line. Store mutations add
``op`` and ``duration_ms``; failures add ``error``.
"""

from __future__ import annotations

import json
import logging
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOG_FILENAME = "markops.log"
_ROTATE_AT = 5 * 1024 * 1024
_KEEP = 3

# (LogRecord attribute, JSON key)
_EXTRA_FIELDS = (
    ("op", "op"),
    ("args_data", "args"),
    ("duration_ms", "duration_ms"),
    ("error", "error"),
)

_lock = threading.Lock()


class _JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update({key: getattr(record, attr) for attr, key in _EXTRA_FIELDS if hasattr(record, attr)})
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = repr(record.exc_info[1])
        return json.dumps(entry, default=str)


def _workspace_handlers(logger: logging.Logger) -> list[RotatingFileHandler]:
    return [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]


def setup_logging(markops_dir: Path, *, level: int = logging.INFO) -> logging.Logger:
    """Route the ``markops`` logger to the workspace log file.

    One file handler per process: pointing at a different workspace swaps the
    handler, pointing at the same one again changes nothing.
    """
    logger = logging.getLogger("markops")
    log_path = (markops_dir / LOG_FILENAME).resolve()

    with _lock:
        for existing in _workspace_handlers(logger):
            if Path(existing.baseFilename) == log_path:
                return logger
            logger.removeHandler(existing)
            existing.close()

        handler = RotatingFileHandler(log_path, maxBytes=_ROTATE_AT, backupCount=_KEEP, encoding="utf-8")
        handler.setFormatter(_JsonLineFormatter())
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger
