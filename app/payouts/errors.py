from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class PayoutError(Exception):
    pass


class PreconditionError(PayoutError):
    """Batch can't be processed as given; nothing was sent or written."""


class BatchNotFound(PreconditionError):
    def __init__(self, batch_id: Optional[str]):
        super().__init__(f"Could not find payout batch {batch_id!r}")
        self.batch_id = batch_id


class CorrelationError(PayoutError):
    """Provider item does not belong to the expense it claims to."""

    def __init__(self, message: str, *, expense_id: int, batch_id: Optional[str] = None):
        super().__init__(message)
        self.expense_id = expense_id
        self.batch_id = batch_id


class ItemNotInBatch(CorrelationError):
    def __init__(self, *, expense_id: int, batch_id: Optional[str] = None):
        super().__init__(
            "Could not find expense in payouts batch",
            expense_id=expense_id,
            batch_id=batch_id,
        )


FX_RATE_UNAVAILABLE = "FX_RATE_UNAVAILABLE"
FEE_CURRENCY_MISMATCH = "FEE_CURRENCY_MISMATCH"


@dataclass(frozen=True)
class RecoverableIssue:
    code: str
    message: str
