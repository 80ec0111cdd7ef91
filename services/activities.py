from __future__ import annotations

import asyncio
from typing import Any, Optional

from psycopg2.extras import Json

from app.expenses.model import ActorRef, Expense, User
from db import get_conn


def write_expense_activity(
    conn,
    *,
    expense: Expense,
    kind: str,
    actor_user_id: Optional[int],
    data: dict[str, Any],
) -> None:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO app.expense_activities (expense_id, collective_id, kind, actor_user_id, data)
            VALUES (%s, %s, %s, %s, %s::jsonb);
            """,
            (
                expense.id,
                expense.collective.id,
                kind,
                actor_user_id,
                Json(data),
            ),
        )


def activity_data(expense: Expense, actor, extra: Optional[dict[str, Any]]) -> dict[str, Any]:
    data: dict[str, Any] = {"expense": expense.info}
    if isinstance(actor, User):
        data["user"] = {"id": actor.id, "name": actor.name}
    data.update(extra or {})
    return data


class PostgresActivitySink:
    def _write(self, expense: Expense, kind: str, actor, extra: Optional[dict[str, Any]]) -> None:
        actor_id = actor.id if isinstance(actor, (User, ActorRef)) else None
        with get_conn() as conn:
            write_expense_activity(
                conn,
                expense=expense,
                kind=kind,
                actor_user_id=actor_id,
                data=activity_data(expense, actor, extra),
            )

    async def create_activity(self, expense: Expense, kind: str, actor, extra: Optional[dict[str, Any]] = None) -> None:
        await asyncio.to_thread(self._write, expense, kind, actor, extra)
