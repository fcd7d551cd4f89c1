"""Structured logging configuration for the storefront engines."""
import logging
import json
import sys
from datetime import datetime, timezone

# extras copied into the JSON line when a log call supplies them
_EXTRA_FIELDS = (
    "design_id",
    "request_id",
    "duration_ms",
    "http_method",
    "http_path",
    "http_status",
    "pricing_errors",
    "geometry_op",
    "geometry_input",
    "replaced_fields",
    "parity_params",
    "parity_diff",
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


def setup_logging(level: str = "INFO", json_output: bool = True):
    """Configure application logging."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
        ))

    root.handlers = [handler]

    for name in ["uvicorn.access", "httpx"]:
        logging.getLogger(name).setLevel(logging.WARNING)
