from __future__ import annotations

import asyncio
from typing import Any, Optional

from psycopg2.extras import Json, RealDictCursor

from app.expenses.model import Collective, ConnectedAccount, Expense, ExpenseStatus, Host, User
from app.expenses.state_machine import InvalidTransition, allowed_sources
from db import get_conn


class ExpenseNotFound(LookupError):
    pass


_EXPENSE_COLUMNS = """
  e.id,
  e.amount_cents,
  e.currency,
  e.status,
  e.description,
  e.data,
  e.payout_method_data,
  e.last_edited_by_id,
  c.id AS collective_id,
  c.name AS collective_name,
  c.host_collective_id
"""


def _row_to_expense(row: dict[str, Any]) -> Expense:
    return Expense(
        id=int(row["id"]),
        amount=int(row["amount_cents"]),
        currency=row["currency"],
        status=ExpenseStatus(row["status"]),
        description=row.get("description") or "",
        data=dict(row.get("data") or {}),
        payout_method_data=dict(row.get("payout_method_data") or {}),
        last_edited_by_id=row.get("last_edited_by_id"),
        collective=Collective(
            id=int(row["collective_id"]),
            name=row["collective_name"],
            host_collective_id=row.get("host_collective_id"),
        ),
    )


# ==========================================================
# Reads
# ==========================================================

def fetch_expense(conn, expense_id: int) -> Optional[Expense]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"""
            SELECT {_EXPENSE_COLUMNS}
            FROM app.expenses e
            JOIN app.collectives c ON c.id = e.collective_id
            WHERE e.id = %s
            """,
            (expense_id,),
        )
        row = cur.fetchone()
    return _row_to_expense(row) if row else None


def fetch_processing_with_batch(conn, *, limit: int) -> list[Expense]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"""
            SELECT {_EXPENSE_COLUMNS}
            FROM app.expenses e
            JOIN app.collectives c ON c.id = e.collective_id
            WHERE e.status = 'PROCESSING'
              AND e.data ? 'payout_batch_id'
            ORDER BY e.created_at ASC, e.id ASC
            LIMIT %s
            """,
            (limit,),
        )
        return [_row_to_expense(row) for row in cur.fetchall()]


def fetch_host(conn, host_id: int) -> Optional[Host]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute("SELECT id, name, currency FROM app.collectives WHERE id = %s", (host_id,))
        row = cur.fetchone()
    if not row:
        return None
    return Host(id=int(row["id"]), name=row["name"], currency=row["currency"])


def fetch_connected_account(conn, *, collective_id: int, service: str) -> Optional[ConnectedAccount]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT id, service, client_id, token
            FROM app.connected_accounts
            WHERE collective_id = %s
              AND service = %s
              AND deleted_at IS NULL
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (collective_id, service),
        )
        row = cur.fetchone()
    if not row:
        return None
    return ConnectedAccount(id=int(row["id"]), service=row["service"], client_id=row["client_id"], token=row["token"])


def fetch_user(conn, user_id: int) -> Optional[User]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute("SELECT id, name, email FROM app.users WHERE id = %s", (user_id,))
        row = cur.fetchone()
    if not row:
        return None
    return User(id=int(row["id"]), name=row.get("name"), email=row.get("email"))


# ==========================================================
# Updates
# ==========================================================

def merge_data(conn, *, expense_id: int, patch: dict[str, Any], new_status: Optional[ExpenseStatus] = None) -> dict[str, Any]:
    """`data || patch` against the current row; keys already stored survive."""
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        if new_status is None:
            cur.execute(
                """
                UPDATE app.expenses
                SET data = COALESCE(data, '{}'::jsonb) || %s::jsonb, updated_at = now()
                WHERE id = %s
                RETURNING status, data
                """,
                (Json(patch), expense_id),
            )
        else:
            cur.execute(
                """
                UPDATE app.expenses
                SET data = COALESCE(data, '{}'::jsonb) || %s::jsonb, status = %s, updated_at = now()
                WHERE id = %s AND status = ANY(%s)
                RETURNING status, data
                """,
                (Json(patch), ExpenseStatus(new_status).value, expense_id, allowed_sources(new_status)),
            )
        row = cur.fetchone()
    if row is None:
        _raise_missing_or_invalid(conn, expense_id, new_status)
    return row


def replace_data(conn, *, expense_id: int, data: dict[str, Any]) -> None:
    with conn.cursor() as cur:
        cur.execute(
            "UPDATE app.expenses SET data = %s::jsonb, updated_at = now() WHERE id = %s",
            (Json(data), expense_id),
        )
        if cur.rowcount == 0:
            raise ExpenseNotFound(f"Expense #{expense_id} not found")


def update_status(conn, *, expense_id: int, new_status: ExpenseStatus) -> None:
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE app.expenses
            SET status = %s, updated_at = now()
            WHERE id = %s AND status = ANY(%s)
            """,
            (ExpenseStatus(new_status).value, expense_id, allowed_sources(new_status)),
        )
        if cur.rowcount == 0:
            _raise_missing_or_invalid(conn, expense_id, new_status)


def set_terminal_status(conn, *, expense_id: int, new_status: ExpenseStatus, actor_id: Optional[int]) -> bool:
    """
    Compare-and-set to PAID / ERROR.

    Returns False when the row already holds `new_status` (another poller got there first).
    """
    target = ExpenseStatus(new_status).value
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE app.expenses
            SET status = %s,
                last_edited_by_id = COALESCE(%s, last_edited_by_id),
                updated_at = now()
            WHERE id = %s AND status <> %s AND status = ANY(%s)
            """,
            (target, actor_id, expense_id, target, allowed_sources(new_status)),
        )
        if cur.rowcount == 1:
            return True
    current = fetch_expense(conn, expense_id)
    if current is None:
        raise ExpenseNotFound(f"Expense #{expense_id} not found")
    if current.status.value == target:
        return False
    raise InvalidTransition(f"Illegal expense transition: {current.status.value} -> {target}")


def _raise_missing_or_invalid(conn, expense_id: int, new_status: Optional[ExpenseStatus]) -> None:
    current = fetch_expense(conn, expense_id)
    if current is None:
        raise ExpenseNotFound(f"Expense #{expense_id} not found")
    raise InvalidTransition(f"Illegal expense transition: {current.status.value} -> {ExpenseStatus(new_status).value}")


def _apply(expense: Expense, fresh: Expense) -> Expense:
    expense.amount = fresh.amount
    expense.currency = fresh.currency
    expense.status = fresh.status
    expense.description = fresh.description
    expense.data = fresh.data
    expense.payout_method_data = fresh.payout_method_data
    expense.last_edited_by_id = fresh.last_edited_by_id
    expense.collective = fresh.collective
    return expense


class PostgresExpenseStore:
    """Async facade over the functions above; each call runs in its own transaction."""

    @staticmethod
    def _run(fn, *args, **kwargs):
        def _call():
            with get_conn() as conn:
                return fn(conn, *args, **kwargs)
        return asyncio.to_thread(_call)

    async def reload(self, expense: Expense) -> Expense:
        fresh = await self._run(fetch_expense, expense.id)
        if fresh is None:
            raise ExpenseNotFound(f"Expense #{expense.id} not found")
        return _apply(expense, fresh)

    async def merge_provider_data(
        self, expense: Expense, patch: dict[str, Any], *, status: Optional[ExpenseStatus] = None
    ) -> None:
        row = await self._run(merge_data, expense_id=expense.id, patch=patch, new_status=status)
        expense.data = dict(row["data"] or {})
        expense.status = ExpenseStatus(row["status"])

    async def replace_provider_data(self, expense: Expense, data: dict[str, Any]) -> None:
        await self._run(replace_data, expense_id=expense.id, data=data)
        expense.data = dict(data)

    async def update_status(self, expense: Expense, status: ExpenseStatus) -> None:
        await self._run(update_status, expense_id=expense.id, new_status=status)
        expense.status = ExpenseStatus(status)

    async def set_paid(self, expense: Expense, actor_id: Optional[int]) -> bool:
        changed = await self._run(set_terminal_status, expense_id=expense.id, new_status=ExpenseStatus.PAID, actor_id=actor_id)
        expense.status = ExpenseStatus.PAID
        return changed

    async def set_error(self, expense: Expense, actor_id: Optional[int]) -> bool:
        changed = await self._run(set_terminal_status, expense_id=expense.id, new_status=ExpenseStatus.ERROR, actor_id=actor_id)
        expense.status = ExpenseStatus.ERROR
        return changed

    async def get_host(self, collective: Collective) -> Optional[Host]:
        if collective is None or collective.host_collective_id is None:
            return None
        return await self._run(fetch_host, collective.host_collective_id)

    async def get_account_for_payment_provider(self, host: Host, service: str) -> Optional[ConnectedAccount]:
        return await self._run(fetch_connected_account, collective_id=host.id, service=service)

    async def get_user(self, user_id: Optional[int]) -> Optional[User]:
        if user_id is None:
            return None
        return await self._run(fetch_user, user_id)

    async def list_processing_with_batch(self, *, limit: int) -> list[Expense]:
        return await self._run(fetch_processing_with_batch, limit=limit)
