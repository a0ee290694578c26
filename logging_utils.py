# logging_utils.py
import json, os, sys, logging
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOG_FILE = "envirowatch.log"
# Record attributes passed via `extra=` that end up in the JSON line
EXTRA_FIELDS = ("city", "station_id", "generation")
NOISY_LOGGERS = ("urllib3", "requests", "apscheduler")

_CONFIGURED = False

class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, module, msg, plus any EXTRA_FIELDS set."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        line: Dict[str, Any] = {
            "ts": ts.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "msg": record.getMessage(),
        }
        line.update({k: getattr(record, k) for k in EXTRA_FIELDS if getattr(record, k, None) is not None})
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)

def _json_handler(handler: logging.Handler, level: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    return handler

def setup_logging(level: str = "INFO", log_dir: Optional[str] = "./logs"):
    """JSON logs to stdout and, unless log_dir is None, a rotating file. Safe to call twice."""
    global _CONFIGURED
    level = level.upper()
    root = logging.getLogger()
    root.setLevel(level)
    if _CONFIGURED:
        return root

    handlers = [_json_handler(logging.StreamHandler(sys.stdout), level)]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        rotating = RotatingFileHandler(os.path.join(log_dir, LOG_FILE), maxBytes=10_000_000,
                                       backupCount=3, encoding="utf-8")
        handlers.append(_json_handler(rotating, level))
    for h in handlers:
        root.addHandler(h)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _CONFIGURED = True
    return root
