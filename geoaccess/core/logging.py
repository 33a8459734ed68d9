# core/logging.py

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from geoaccess.core.config import LOG_LEVEL
from geoaccess.security.redaction import redact_text

# Monitoring channel for rejected credentials and role checks. Kept apart from
# the audit trail, which only records committed privileged mutations.
SECURITY_LOGGER_NAME = "geoaccess.security"

STRUCTURED_FIELDS = (
    "path",
    "method",
    "principal_id",
    "required_roles",
    "actual_role",
    "reason",
    "resource_kind",
    "resource_id",
    "key_prefix",
    "error",
)


def get_security_logger() -> logging.Logger:
    return logging.getLogger(SECURITY_LOGGER_NAME)


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line, with credentials scrubbed from the message."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_text(record.getMessage()),
        }
        for attr in STRUCTURED_FIELDS:
            if hasattr(record, attr):
                payload[attr] = getattr(record, attr)
        if record.exc_info:
            payload["exception"] = redact_text(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(log_level: Optional[str] = None) -> None:
    root = logging.getLogger()
    if root.handlers:
        # already configured (uvicorn, pytest)
        return

    level = getattr(logging, (log_level or LOG_LEVEL).upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonLogFormatter())
    root.setLevel(level)
    root.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
