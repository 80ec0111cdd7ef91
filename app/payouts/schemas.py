from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


TERMINAL_SUCCESS = "SUCCESS"
TERMINAL_FAILURES = frozenset({"FAILED", "BLOCKED", "REFUNDED", "RETURNED", "REVERSED"})

# key of the processor fee in the fees map handed to the ledger
PROCESSOR_FEE_KEY = "payment_processor_fee_in_host_currency"


class _ProviderModel(BaseModel):
    # keep every field the provider sends; the raw item is persisted as-is
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class Money(_ProviderModel):
    currency: Optional[str] = None
    value: Optional[str] = None


class CurrencyConversion(_ProviderModel):
    exchange_rate: Optional[str] = None
    from_amount: Optional[Money] = None
    to_amount: Optional[Money] = None


class PayoutItemDetail(_ProviderModel):
    amount: Optional[Money] = None
    receiver: Optional[str] = None
    note: Optional[str] = None
    sender_item_id: Optional[str] = None
    recipient_type: Optional[str] = None


class PayoutItemOutcome(_ProviderModel):
    payout_item_id: Optional[str] = None
    payout_batch_id: Optional[str] = None
    transaction_id: Optional[str] = None
    transaction_status: Optional[str] = None
    payout_item_fee: Optional[Money] = None
    payout_item: Optional[PayoutItemDetail] = None
    currency_conversion: Optional[CurrencyConversion] = None
    errors: Optional[Any] = None

    @property
    def sender_item_id(self) -> Optional[str]:
        if self.payout_item is None or self.payout_item.sender_item_id is None:
            return None
        return str(self.payout_item.sender_item_id)

    @property
    def payout_item_currency(self) -> Optional[str]:
        if self.payout_item is None or self.payout_item.amount is None:
            return None
        return self.payout_item.amount.currency

    @property
    def exchange_rate(self) -> Optional[str]:
        if self.currency_conversion is None:
            return None
        return self.currency_conversion.exchange_rate

    def raw(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class BatchInfo(_ProviderModel):
    batch_header: Optional[dict[str, Any]] = None
    items: list[PayoutItemOutcome] = []

    def find_item(self, sender_item_id: str) -> Optional[PayoutItemOutcome]:
        for item in self.items:
            if item.sender_item_id == sender_item_id:
                return item
        return None
