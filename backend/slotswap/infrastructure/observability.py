"""Structured Logging — JSON/text formatters carrying swap context fields.

Invariants:
    - Every line has timestamp, level, logger and message
    - Context extras (swap_request_id, slot_id, user_id, operation, atomic, ...) are
      surfaced when present; UUIDs rendered as strings, bools and ints kept as JSON types
    - setup_logging() is idempotent: calling it again replaces our handler, never stacks one

Design Decisions:
    - stdlib logging + a small JSONFormatter: no extra dependency for structured output
    - Text format appends the same extras as key=value so local runs show the swap context
"""

import json
import logging
from datetime import datetime, timezone

CONTEXT_FIELDS = (
    "swap_request_id", "slot_id", "user_id", "operation", "atomic",
    "applied_writes", "error_code", "path",
)

_HANDLER_NAME = "slotswap"


def _context(record: logging.LogRecord) -> dict:
    found = {}
    for key in CONTEXT_FIELDS:
        val = record.__dict__.get(key)
        if val is None:
            continue
        found[key] = val if isinstance(val, (bool, int, float)) else str(val)
    return found


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


class ContextTextFormatter(logging.Formatter):
    """Human-readable line with the swap context appended."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = " ".join(f"{k}={v}" for k, v in _context(record).items())
        return f"{line} [{extras}]" if extras else line


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install the app handler on the root logger."""
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ContextTextFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    # SQL echo is opt-in through log_level=DEBUG only
    if root.level > logging.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
