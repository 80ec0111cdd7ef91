from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from app.expenses.model import Expense
from app.payouts.deps import PayoutDeps, default_deps
from app.payouts.errors import BatchNotFound, CorrelationError, ItemNotInBatch, PreconditionError
from app.payouts.reconciler import ItemReconciliation, reconcile_batch_item
from app.payouts.schemas import BatchInfo
from app.payouts.submitter import resolve_host_and_account
from app.providers.base import PayoutProviderError
from services.metrics import increment_item_failure


logger = logging.getLogger("payouts.poller")


@dataclass
class BatchPollReport:
    batch_id: str
    expenses: list[Expense]
    reconciled: list[ItemReconciliation] = field(default_factory=list)
    failures: dict[int, str] = field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        counts: dict[str, Any] = {"batch_id": self.batch_id, "expenses": len(self.expenses)}
        for result in self.reconciled:
            key = result.action.lower()
            counts[key] = counts.get(key, 0) + 1
        counts["degraded"] = sum(1 for r in self.reconciled if r.degraded)
        counts["failures"] = len(self.failures)
        return counts


async def poll_batch(batch: Sequence[Expense], deps: Optional[PayoutDeps] = None) -> BatchPollReport:
    """
    Fetch the provider batch shared by `batch` and reconcile each expense in order.

    Expenses are handled one at a time; an expense whose item is missing or whose
    reconciliation fails is logged and left as is, the rest of the batch carries on.
    """
    if not batch:
        raise PreconditionError("Cannot poll an empty batch of expenses.")

    deps = deps or default_deps()
    first = batch[0]
    host, account = await resolve_host_and_account(first, deps)

    batch_id = first.payout_batch_id
    if not batch_id:
        raise BatchNotFound(batch_id)

    try:
        raw = await deps.provider.fetch_batch_info(account, batch_id)
    except PayoutProviderError as exc:
        if exc.status_code == 404:
            raise BatchNotFound(batch_id) from exc
        raise
    batch_info = BatchInfo.model_validate(raw or {})

    report = BatchPollReport(batch_id=batch_id, expenses=list(batch))
    for expense in batch:
        try:
            item = batch_info.find_item(str(expense.id))
            if item is None:
                raise ItemNotInBatch(expense_id=expense.id, batch_id=batch_id)
            report.reconciled.append(await reconcile_batch_item(item, expense, host, deps))
        except CorrelationError as exc:
            logger.warning("Expense #%s not reconciled against batch %s: %s", expense.id, batch_id, exc)
            increment_item_failure("item_not_in_batch" if isinstance(exc, ItemNotInBatch) else "correlation")
            report.failures[expense.id] = str(exc)
        except Exception as exc:
            logger.exception("Error reconciling expense #%s in batch %s", expense.id, batch_id)
            increment_item_failure("error")
            report.failures[expense.id] = str(exc)

    logger.info("Polled payout batch %s: %s", batch_id, report.summary())
    return report


async def check_batch_status(batch: Sequence[Expense], deps: Optional[PayoutDeps] = None) -> list[Expense]:
    report = await poll_batch(batch, deps)
    return report.expenses
