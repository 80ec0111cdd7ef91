from __future__ import annotations

import logging
from typing import Any, Optional

from app.expenses.model import Expense
from app.payouts.deps import PayoutDeps, default_deps
from app.payouts.poller import poll_batch
from settings import settings


logger = logging.getLogger("payouts.pending_batches")


def group_by_batch(expenses: list[Expense]) -> dict[str, list[Expense]]:
    groups: dict[str, list[Expense]] = {}
    for expense in expenses:
        batch_id = expense.payout_batch_id
        if not batch_id:
            continue
        groups.setdefault(batch_id, []).append(expense)
    return groups


async def run_pending_batches(deps: Optional[PayoutDeps] = None, *, limit: Optional[int] = None) -> dict[str, Any]:
    deps = deps or default_deps()
    limit = limit or settings.PAYOUT_POLL_BATCH_LIMIT

    expenses = await deps.store.list_processing_with_batch(limit=limit)
    groups = group_by_batch(expenses)

    summary = {
        "expenses_checked": len(expenses),
        "batches_checked": 0,
        "batches_failed": 0,
        "paid": 0,
        "errored": 0,
        "in_flight": 0,
        "already_applied": 0,
        "degraded": 0,
        "item_failures": 0,
    }

    for batch_id, batch in groups.items():
        summary["batches_checked"] += 1
        try:
            report = await poll_batch(batch, deps)
        except Exception:
            logger.exception("Polling payout batch %s failed", batch_id)
            summary["batches_failed"] += 1
            continue

        counts = report.summary()
        for key in ("paid", "errored", "in_flight", "already_applied", "degraded"):
            summary[key] += int(counts.get(key, 0))
        summary["item_failures"] += int(counts.get("failures", 0))

    return summary
