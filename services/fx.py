from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Optional

from db import get_conn


class FxRateUnavailable(Exception):
    def __init__(self, from_currency: str, to_currency: str, reason: str = "RATE_NOT_FOUND"):
        super().__init__(f"{reason}: {from_currency}->{to_currency}")
        self.from_currency = from_currency
        self.to_currency = to_currency


def _latest_rate(cur, from_currency: str, to_currency: str) -> Optional[Decimal]:
    cur.execute(
        """
        SELECT rate
        FROM fx.rates
        WHERE from_currency = %s AND to_currency = %s
        ORDER BY as_of DESC
        LIMIT 1
        """,
        (from_currency, to_currency),
    )
    row = cur.fetchone()
    return None if row is None else Decimal(str(row[0]))


def fetch_rate(from_currency: str, to_currency: str) -> Decimal:
    """
    Latest stored rate converting `from_currency` into `to_currency`.

    Falls back to the inverse of the opposite pair when only that one is stored.
    """
    src = (from_currency or "").strip().upper()
    dst = (to_currency or "").strip().upper()
    if not src or not dst:
        raise FxRateUnavailable(src, dst, reason="INVALID_CURRENCY")
    if src == dst:
        return Decimal(1)

    with get_conn() as conn:
        with conn.cursor() as cur:
            rate = _latest_rate(cur, src, dst)
            if rate is None:
                inverse = _latest_rate(cur, dst, src)
                if inverse:
                    rate = Decimal(1) / inverse

    if not rate:
        raise FxRateUnavailable(src, dst)
    return rate


class PostgresFxRates:
    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        return await asyncio.to_thread(fetch_rate, from_currency, to_currency)
