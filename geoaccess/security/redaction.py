# security/redaction.py

import re
from typing import Any

JWT = re.compile(r"\beyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\b")
GEOACCESS_KEY = re.compile(r"\bgk_[A-Za-z0-9_\-]{16,}")
API_KEY_KV = re.compile(r"(?i)\b(api[-_ ]?key|x[-_ ]?api[-_ ]?key)\b\s*[:=]\s*[A-Za-z0-9_\-]{12,}")
TOKEN_KV = re.compile(r"(?i)\b(session\s*token|token|access\s*token|password|secret)\b\s*[:=]\s*(\S{6,})")
BEARER = re.compile(r"(?i)\bBearer\s+([A-Za-z0-9._\-]{16,})")

# keys whose values never go into logs or the audit trail
SECRET_FIELDS = {"password", "new_password", "current_password", "api_key", "token", "password_hash"}


def redact_text(text: str) -> str:
    if not text:
        return ""

    redacted = text
    redacted = JWT.sub("[REDACTED_JWT]", redacted)
    redacted = BEARER.sub("Bearer [REDACTED_BEARER]", redacted)
    redacted = GEOACCESS_KEY.sub("[REDACTED_API_KEY]", redacted)
    redacted = API_KEY_KV.sub("[REDACTED_API_KEY]", redacted)
    redacted = TOKEN_KV.sub("[REDACTED_TOKEN]", redacted)
    return redacted


def redact_details(value: Any) -> Any:
    """Scrub secrets from an audit details blob, recursively."""
    if isinstance(value, dict):
        return {
            k: ("[REDACTED]" if str(k).lower() in SECRET_FIELDS else redact_details(v))
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_details(v) for v in value]
    if isinstance(value, str):
        return redact_text(value)
    return value

