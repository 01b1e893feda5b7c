"""
Structured logging configuration

Every line is one JSON object on stdout. The API and the RQ worker share this
setup so webhook, provisioning and import logs can be joined on trace_id.
"""

import logging
import sys
import json
from datetime import datetime, timezone
from contextvars import ContextVar
from typing import Any, Dict, Optional

SERVICE_NAME = "schoolpay-core"

# Per-request (or per-job) trace id, set by TraceIDMiddleware and the scripts
trace_id_context: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)

# Attributes every LogRecord has; anything else arrived through `extra=`
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
    "trace_id",
}

# Chatty third-party loggers: httpx logs every provider call URL at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "rq.worker")


class JSONFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
        }

        trace_id = trace_id_context.get() or getattr(record, "trace_id", None)
        if trace_id:
            entry["trace_id"] = trace_id

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(
            (key, value) for key, value in vars(record).items() if key not in _STANDARD_ATTRS
        )
        return json.dumps(entry, default=str)


def setup_logging(log_level: str = "INFO") -> None:
    """Install the JSON handler on the root logger (safe to call more than once)"""
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if any(isinstance(handler.formatter, JSONFormatter) for handler in root_logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)
