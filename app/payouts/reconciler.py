from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Union

from app.expenses.model import ActorRef, Expense, ExpenseStatus, Host
from app.payouts import activities
from app.payouts.deps import PayoutDeps, default_deps
from app.payouts.errors import (
    FEE_CURRENCY_MISMATCH,
    FX_RATE_UNAVAILABLE,
    CorrelationError,
    RecoverableIssue,
)
from app.payouts.schemas import PROCESSOR_FEE_KEY, TERMINAL_FAILURES, TERMINAL_SUCCESS, PayoutItemOutcome
from services.metrics import increment_diagnostic, increment_item_reconciled


logger = logging.getLogger("payouts.reconciler")

PAID = "PAID"
ERRORED = "ERRORED"
ALREADY_APPLIED = "ALREADY_APPLIED"
IN_FLIGHT = "IN_FLIGHT"


@dataclass
class ItemReconciliation:
    expense: Expense
    action: str
    issues: list[RecoverableIssue] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.issues)


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        d = Decimal(str(value))
    except InvalidOperation:
        return None
    return d if d.is_finite() else None


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def default_fx_rate(item: PayoutItemOutcome) -> Decimal:
    # exchange_rate is "1 host unit = N payout units"; we need the inverse
    rate = _to_decimal(item.exchange_rate)
    if not rate:
        return Decimal(1)
    return Decimal(1) / rate


def amount_to_cents(value: Any) -> int:
    d = _to_decimal(value) or Decimal(0)
    return _round_half_up(d * 100)


async def _resolve_fx_rate(
    item: PayoutItemOutcome,
    expense: Expense,
    host: Host,
    deps: PayoutDeps,
    issues: list[RecoverableIssue],
) -> Decimal:
    fx_rate = default_fx_rate(item)

    # If the host holds a balance in the expense currency the provider does not convert,
    # but transactions are recorded in host currency so we still need a rate.
    payout_item_currency = item.payout_item_currency
    is_multi_currency = bool(payout_item_currency) and payout_item_currency != expense.currency
    if is_multi_currency and not item.exchange_rate:
        try:
            fx_rate = await deps.fx.get_rate(expense.currency, host.currency)
        except Exception as exc:
            # recording the payment matters more than the rate; it can be fixed later
            logger.error("Could not fetch FX rate when recording expense #%s payment: %s", expense.id, exc)
            increment_diagnostic(FX_RATE_UNAVAILABLE)
            issues.append(
                RecoverableIssue(
                    FX_RATE_UNAVAILABLE,
                    f"No {expense.currency}->{host.currency} rate; recorded with {fx_rate}",
                )
            )
    return fx_rate


async def _fees(
    item: PayoutItemOutcome,
    expense: Expense,
    fx_rate: Decimal,
    deps: PayoutDeps,
    issues: list[RecoverableIssue],
) -> dict[str, int]:
    fees: dict[str, int] = {}
    fee = item.payout_item_fee
    if fee is None:
        return fees

    fee_in_expense_currency = amount_to_cents(fee.value)
    fees[PROCESSOR_FEE_KEY] = _round_half_up(Decimal(fee_in_expense_currency) * fx_rate)

    if fee.currency != expense.currency:
        # fee is expected in currency_conversion.to_amount.currency; sanity check only
        message = "Payout item fee currency does not match expense currency"
        logger.error("Payout item fee currency does not match expense #%s currency", expense.id)
        await deps.report_message(message, {"expense": expense.info, "item": item.raw()})
        increment_diagnostic(FEE_CURRENCY_MISMATCH)
        issues.append(
            RecoverableIssue(FEE_CURRENCY_MISMATCH, f"fee in {fee.currency}, expense in {expense.currency}")
        )
    return fees


async def _apply_success(
    item: PayoutItemOutcome,
    expense: Expense,
    host: Host,
    deps: PayoutDeps,
    issues: list[RecoverableIssue],
) -> str:
    fx_rate = await _resolve_fx_rate(item, expense, host, deps, issues)
    fees = await _fees(item, expense, fx_rate, deps, issues)

    await deps.ledger.create_transactions_from_paid_expense(host, expense, fees, fx_rate, item.raw())
    if not await deps.store.set_paid(expense, expense.last_edited_by_id):
        logger.warning("Expense #%s was marked paid concurrently; skipping activity", expense.id)
        return ALREADY_APPLIED

    user = await deps.store.get_user(expense.last_edited_by_id)
    await deps.activities.create_activity(expense, activities.COLLECTIVE_EXPENSE_PAID, user)
    return PAID


async def _apply_failure(item: PayoutItemOutcome, expense: Expense, deps: PayoutDeps) -> str:
    if not await deps.store.set_error(expense, expense.last_edited_by_id):
        return ALREADY_APPLIED

    # id-only actor on this path, no user lookup
    await deps.activities.create_activity(
        expense,
        activities.COLLECTIVE_EXPENSE_ERROR,
        ActorRef(id=expense.last_edited_by_id),
        {"error": item.errors},
    )
    return ERRORED


async def reconcile_batch_item(
    item: Union[PayoutItemOutcome, dict[str, Any]],
    expense: Expense,
    host: Host,
    deps: Optional[PayoutDeps] = None,
) -> ItemReconciliation:
    """
    Apply one provider item outcome to its expense.

    The expense is reloaded first and every terminal branch is guarded by its current
    status, so two pollers crossing the same batch turn the second write into a no-op.
    Raises CorrelationError when the item belongs to another batch; nothing is written then.
    """
    deps = deps or default_deps()
    if not isinstance(item, PayoutItemOutcome):
        item = PayoutItemOutcome.model_validate(item)

    expense = await deps.store.reload(expense)
    if not expense.payout_batch_id or expense.payout_batch_id != item.payout_batch_id:
        raise CorrelationError(
            "Item does not belong to the expense it claims it does.",
            expense_id=expense.id,
            batch_id=item.payout_batch_id,
        )

    issues: list[RecoverableIssue] = []
    status = (item.transaction_status or "").strip().upper()

    if status == TERMINAL_SUCCESS:
        if expense.status != ExpenseStatus.PAID:
            action = await _apply_success(item, expense, host, deps, issues)
        else:
            action = ALREADY_APPLIED
    elif status in TERMINAL_FAILURES:
        if expense.status != ExpenseStatus.ERROR:
            action = await _apply_failure(item, expense, deps)
        else:
            action = ALREADY_APPLIED
    else:
        # ONHOLD, UNCLAIMED (sent to a non-account holder), PENDING, unknown
        logger.debug("Expense #%s is still being processed (%s), nothing to do but wait.", expense.id, status)
        action = IN_FLIGHT

    # last known provider state replaces the whole data bag
    await deps.store.replace_provider_data(expense, item.raw())
    increment_item_reconciled(action)
    return ItemReconciliation(expense=expense, action=action, issues=issues)


async def check_batch_item_status(
    item: Union[PayoutItemOutcome, dict[str, Any]],
    expense: Expense,
    host: Host,
    deps: Optional[PayoutDeps] = None,
) -> Expense:
    result = await reconcile_batch_item(item, expense, host, deps)
    return result.expense
