from __future__ import annotations

import hashlib
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Sequence

from app.expenses.model import Expense
from app.payouts.errors import PreconditionError


RECIPIENT_TYPE = "EMAIL"
EMAIL_MESSAGE = "Good news, your expense was paid!"

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PayoutItem:
    note: str
    receiver: str | None
    value: str
    currency: str
    sender_item_id: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "note": self.note,
            "amount": {"currency": self.currency, "value": self.value},
            "receiver": self.receiver,
            "sender_item_id": self.sender_item_id,
        }


@dataclass(frozen=True)
class BatchRequest:
    sender_batch_id: str
    email_subject: str
    items: tuple[PayoutItem, ...]
    email_message: str = EMAIL_MESSAGE
    recipient_type: str = RECIPIENT_TYPE

    def to_payload(self) -> dict[str, Any]:
        return {
            "sender_batch_header": {
                "recipient_type": self.recipient_type,
                "email_message": self.email_message,
                "email_subject": self.email_subject,
                "sender_batch_id": self.sender_batch_id,
            },
            "items": [item.to_payload() for item in self.items],
        }


def cents_to_decimal_str(amount_cents: int) -> str:
    return str((Decimal(int(amount_cents)) / 100).quantize(_CENTS, rounding=ROUND_HALF_UP))


def sender_batch_id(expenses: Sequence[Expense]) -> str:
    """
    Provider-side idempotency key: SHA-1 over the expense ids in order.

    Resubmitting the same ordered set yields the same id, so the provider
    rejects the duplicate instead of paying twice.
    """
    digest = hashlib.sha1()
    for expense in expenses:
        digest.update(str(expense.id).encode("utf-8"))
    return digest.hexdigest()


def assert_same_host(expenses: Sequence[Expense]) -> int:
    if not expenses:
        raise PreconditionError("Cannot pay an empty batch of expenses.")

    host_id = expenses[0].collective.host_collective_id if expenses[0].collective else None
    for expense in expenses:
        collective = expense.collective
        if collective is None or collective.host_collective_id is None or collective.host_collective_id != host_id:
            raise PreconditionError(
                "All expenses should have collective prop populated and belong to the same Host."
            )
    return host_id


def payout_item_for(expense: Expense) -> PayoutItem:
    return PayoutItem(
        note=f"Expense #{expense.id}: {expense.description}",
        receiver=expense.payee_email,
        value=cents_to_decimal_str(expense.amount),
        # paid in the currency the expense was filed in, not the host's
        currency=expense.currency,
        sender_item_id=str(expense.id),
    )


def build_batch_request(expenses: Sequence[Expense]) -> BatchRequest:
    assert_same_host(expenses)
    first = expenses[0]
    return BatchRequest(
        sender_batch_id=sender_batch_id(expenses),
        email_subject=f"Expense Payout for {first.collective.name}",
        items=tuple(payout_item_for(e) for e in expenses),
    )
