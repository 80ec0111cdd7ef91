from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

from app.expenses.model import ConnectedAccount, Expense, ExpenseStatus, Host
from app.payouts import activities
from app.payouts.batch import build_batch_request
from app.payouts.deps import PayoutDeps, default_deps
from app.payouts.errors import PreconditionError
from services.metrics import increment_batch_submitted


logger = logging.getLogger("payouts.submitter")


async def resolve_host_and_account(expense: Expense, deps: PayoutDeps) -> tuple[Host, ConnectedAccount]:
    host = await deps.store.get_host(expense.collective)
    if host is None:
        raise PreconditionError("Could not find the host reimbursing the expense.")

    account = await deps.store.get_account_for_payment_provider(host, deps.provider_name)
    if account is None:
        raise PreconditionError(f"Host #{host.id} has no connected {deps.provider_name} account.")
    return host, account


async def _fan_out(
    expenses: Sequence[Expense],
    fn: Callable[[Expense], Awaitable[None]],
    *,
    limit: int,
) -> None:
    sem = asyncio.Semaphore(max(1, limit))

    async def _run(expense: Expense) -> None:
        async with sem:
            await fn(expense)

    results = await asyncio.gather(*(_run(e) for e in expenses), return_exceptions=True)
    for expense, result in zip(expenses, results):
        if isinstance(result, Exception):
            logger.error("Failed to update expense #%s after batch submission", expense.id, exc_info=result)


async def _mark_processing(expense: Expense, batch_header: dict[str, Any], deps: PayoutDeps) -> None:
    await deps.store.merge_provider_data(expense, batch_header, status=ExpenseStatus.PROCESSING)
    user = await deps.store.get_user(expense.last_edited_by_id)
    await deps.activities.create_activity(expense, activities.COLLECTIVE_EXPENSE_PROCESSING, user)


async def _mark_errored(expense: Expense, error: Exception, deps: PayoutDeps) -> None:
    await deps.store.update_status(expense, ExpenseStatus.ERROR)
    user = await deps.store.get_user(expense.last_edited_by_id)
    await deps.activities.create_activity(
        expense,
        activities.COLLECTIVE_EXPENSE_ERROR,
        user,
        {"error": {"message": str(error)}},
    )


async def pay_expenses_batch(expenses: Sequence[Expense], deps: Optional[PayoutDeps] = None) -> list[Expense]:
    """
    Submit `expenses` to the payout provider as one batch.

    Preconditions (same host, host found, connected account) raise before anything
    is sent. A provider failure is never raised: every expense in the batch is moved
    to ERROR instead, and per-item outcomes are picked up later by the poller.
    """
    request = build_batch_request(expenses)
    deps = deps or default_deps()
    host, account = await resolve_host_and_account(expenses[0], deps)

    try:
        response = await deps.provider.submit_batch(account, request.to_payload())
    except Exception as exc:
        logger.warning(
            "Payout batch %s rejected for host #%s (%s expenses): %s",
            request.sender_batch_id,
            host.id,
            len(expenses),
            exc,
        )
        increment_batch_submitted(deps.provider_name, "error")
        await _fan_out(expenses, lambda e: _mark_errored(e, exc, deps), limit=deps.update_concurrency)
        return list(expenses)

    batch_header = dict((response or {}).get("batch_header") or {})
    logger.info(
        "Payout batch %s submitted for host #%s: payout_batch_id=%s expenses=%s",
        request.sender_batch_id,
        host.id,
        batch_header.get("payout_batch_id"),
        len(expenses),
    )
    increment_batch_submitted(deps.provider_name, "ok")
    await _fan_out(expenses, lambda e: _mark_processing(e, batch_header, deps), limit=deps.update_concurrency)
    return list(expenses)
