"""
Logging setup.

Production writes one JSON object per line. Structured context travels in
`extra={"extra_fields": {...}}` and is merged into that object, except for
keys that could carry conversation text, which are dropped.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from core.config import settings

# Never written to logs: users' messages and the coach's replies
CONVERSATION_FIELDS = frozenset({"message", "content", "response", "system_instruction"})


def safe_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in CONVERSATION_FIELDS}


class JSONFormatter(logging.Formatter):
    def __init__(self, service: str = "coach-chat-api"):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "env": settings.ENVIRONMENT,
            "logger": record.name,
            "msg": record.getMessage(),
            "at": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        extra = getattr(record, "extra_fields", None)
        if isinstance(extra, dict):
            entry.update(safe_fields(extra))

        return json.dumps(entry, default=str)


def setup_logging() -> logging.Logger:
    """Install a single stdout handler on the root logger."""
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    use_json = settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production"
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        JSONFormatter() if use_json
        else logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s")
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers[:] = [handler]

    # Request-level chatter from the HTTP and model clients
    for noisy in ("sqlalchemy.engine", "httpx", "httpcore", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root
