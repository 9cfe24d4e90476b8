"""Structured logging configuration for the pricing engine API."""
import logging
import json
import sys
from datetime import datetime, timezone

# Optional attributes passed through ``extra=`` and copied into the JSON line
_EXTRA_FIELDS = (
    "budget_id",
    "operation",
    "duration_ms",
    "request_id",
    "http_method",
    "http_path",
    "http_status",
)


class JSONFormatter(logging.Formatter):
    """JSON structured log formatter for production."""
    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)
        return json.dumps(log_entry, default=str)


TEXT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

# Third-party loggers held at WARNING so request logs come from our middleware only
QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx")


def setup_logging(level: str = "INFO", json_output: bool = True, quiet=QUIET_LOGGERS):
    """
    Install one stdout handler on the root logger.

    ``json_output`` selects JSONFormatter (production) or TEXT_FORMAT (local
    development). Unknown level names fall back to INFO.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    root.handlers = [handler]

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
