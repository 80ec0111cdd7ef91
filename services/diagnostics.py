from __future__ import annotations

import asyncio
import logging
from typing import Any

from psycopg2.extras import Json

from db import get_conn
from services.redaction import redact_dict


logger = logging.getLogger("payouts.diagnostics")


def _store(message: str, payload: dict[str, Any]) -> None:
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "INSERT INTO app.diagnostics (message, extra) VALUES (%s, %s::jsonb);",
                (message, Json(payload)),
            )


async def report_message(message: str, extra: dict[str, Any] | None = None) -> None:
    """
    Report an anomaly that must not interrupt processing.

    Stored in app.diagnostics for follow-up. The message is logged first, so a
    failed insert is logged and not raised.
    """
    payload = redact_dict(extra or {})
    logger.error("%s | extra=%s", message, payload)
    try:
        await asyncio.to_thread(_store, message, payload)
    except Exception:
        logger.exception("Could not store diagnostic message")
