import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, TextIO

# Libraries whose DEBUG/INFO chatter drowns the analysis lines.
NOISY_LOGGERS = ("urllib3", "web3", "asyncio")


def log_fields(**fields: Any) -> Dict[str, Dict[str, Any]]:
    """Build the ``extra`` argument for a structured log call.

    logger.warning("lookup degraded", extra=log_fields(lookup="owners", error=str(e)))
    """
    return {"extra": fields}


class JsonFormatter(logging.Formatter):
    """One JSON object per line; fields passed via :func:`log_fields` are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        # lookups run on pool threads named lookup_N
        if record.threadName and record.threadName != "MainThread":
            log["thread"] = record.threadName
        if record.exc_info:
            log["exc_info"] = self.formatException(record.exc_info)
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            log.update(extra)
        return json.dumps(log, ensure_ascii=False, default=str)


def init_logging(
    level: str = "INFO",
    *,
    stream: Optional[TextIO] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """Send JSON log lines to stdout (or ``stream``) from the root logger."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())
    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
