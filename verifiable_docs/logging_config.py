import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from .config import ProtocolSettings, get_settings

PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in ("document_id", "check"):
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(settings: Optional[ProtocolSettings] = None, stream=None) -> logging.Logger:
    """Attach one stdout handler to the package logger (idempotent)"""
    settings = settings or get_settings()

    handler = logging.StreamHandler(stream or sys.stdout)
    if settings.LOG_JSON:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))

    logger = logging.getLogger("verifiable_docs")
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logger.handlers = [handler]
    return logger
