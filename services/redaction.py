from __future__ import annotations

import re
from typing import Any


_EMAIL_RE = re.compile(r"\b([A-Za-z0-9._%+-])([A-Za-z0-9._%+-]*)(@[A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")

_SENSITIVE_KEY_MARKERS = (
    "token",
    "authorization",
    "secret",
    "password",
    "client_id",
)


def _mask_email(match: re.Match) -> str:
    return f"{match.group(1)}***{match.group(3)}"


def redact_text(value: str) -> str:
    masked = _EMAIL_RE.sub(_mask_email, value)
    if "bearer " in masked.lower():
        return "[REDACTED]"
    return masked


def _is_sensitive_key(key: str) -> bool:
    key_l = (key or "").lower()
    return any(marker in key_l for marker in _SENSITIVE_KEY_MARKERS)


def redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        return redact_dict(value)
    if isinstance(value, (list, tuple)):
        return [redact_value(v) for v in value]
    return value


def redact_dict(payload: dict[str, Any]) -> dict[str, Any]:
    """Mask payee emails and drop credential-looking keys before logging or storing."""
    out: dict[str, Any] = {}
    for k, v in payload.items():
        if _is_sensitive_key(str(k)):
            out[k] = "[REDACTED]"
        else:
            out[k] = redact_value(v)
    return out
