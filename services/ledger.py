from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from psycopg2.extras import Json

from app.expenses.model import Expense, Host
from app.payouts.schemas import PROCESSOR_FEE_KEY
from db import get_conn


logger = logging.getLogger("payouts.ledger")


def _host_amount(amount_cents: int, fx_rate: Decimal) -> int:
    return int((Decimal(int(amount_cents)) * fx_rate).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def insert_paid_expense_transactions(
    conn,
    *,
    host: Host,
    expense: Expense,
    fees: dict[str, int],
    fx_rate: Decimal,
    raw_outcome: dict[str, Any],
) -> Optional[str]:
    """
    Record the DEBIT (collective pays out) and CREDIT (payee receives) pair for a paid expense.

    Keyed by (expense_id, kind): a second call for the same expense inserts nothing
    and returns None.
    """
    fee_cents = int(fees.get(PROCESSOR_FEE_KEY) or 0)
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO ledger.expense_transactions (
              expense_id, kind, host_id, collective_id,
              amount_cents, currency, amount_in_host_currency_cents, host_currency,
              host_currency_fx_rate, payment_processor_fee_in_host_currency_cents,
              provider_payload
            )
            VALUES (%s, 'EXPENSE_PAYOUT', %s, %s, %s, %s, %s, %s, %s, %s, %s::jsonb)
            ON CONFLICT (expense_id, kind) DO NOTHING
            RETURNING id::text
            """,
            (
                expense.id,
                host.id,
                expense.collective.id,
                int(expense.amount),
                expense.currency,
                _host_amount(expense.amount, fx_rate),
                host.currency,
                str(fx_rate),
                fee_cents,
                Json(raw_outcome),
            ),
        )
        row = cur.fetchone()
        if row is None:
            return None
        tx_id = row[0]

        entries = [
            ("DEBIT", expense.collective.id, -(int(expense.amount))),
            ("CREDIT", None, int(expense.amount)),
        ]
        for dc, account_collective_id, amount in entries:
            cur.execute(
                """
                INSERT INTO ledger.expense_entries (transaction_id, dc, collective_id, amount_cents, currency)
                VALUES (%s::uuid, %s, %s, %s, %s)
                """,
                (tx_id, dc, account_collective_id, amount, expense.currency),
            )
    return tx_id


class PostgresLedger:
    def _create(self, host, expense, fees, fx_rate, raw_outcome) -> Optional[str]:
        with get_conn() as conn:
            tx_id = insert_paid_expense_transactions(
                conn, host=host, expense=expense, fees=fees, fx_rate=fx_rate, raw_outcome=raw_outcome
            )
        if tx_id is None:
            logger.info("Ledger transactions for expense #%s already recorded", expense.id)
        return tx_id

    async def create_transactions_from_paid_expense(
        self,
        host: Host,
        expense: Expense,
        fees: dict[str, int],
        fx_rate: Decimal,
        raw_outcome: dict[str, Any],
    ) -> Optional[str]:
        return await asyncio.to_thread(self._create, host, expense, fees, fx_rate, raw_outcome)
