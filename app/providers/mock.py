from __future__ import annotations

from typing import Any, Optional

from app.expenses.model import ConnectedAccount
from app.providers.base import PayoutProviderError


class MockPayoutProvider:
    """
    Test/dev provider.

    Keeps submitted batches in memory and reports every item with `item_status`
    (per sender_item_id overrides via `item_statuses`). `fail_submit=True` makes
    submission raise like a rejected request would.
    """

    name = "mock"

    def __init__(
        self,
        *,
        fail_submit: bool = False,
        item_status: str = "SUCCESS",
        item_statuses: Optional[dict[str, str]] = None,
    ):
        self.fail_submit = fail_submit
        self.item_status = item_status
        self.item_statuses = dict(item_statuses or {})
        self.batches: dict[str, dict[str, Any]] = {}
        self.submit_calls: list[dict[str, Any]] = []
        self.fetch_calls: list[str] = []

    async def submit_batch(self, account: ConnectedAccount, request_body: dict[str, Any]) -> dict[str, Any]:
        self.submit_calls.append(request_body)
        if self.fail_submit:
            raise PayoutProviderError("Mock payout rejected", status_code=422, response={"mock": True})

        header = dict(request_body.get("sender_batch_header") or {})
        sender_batch_id = header.get("sender_batch_id") or ""
        batch_id = f"MOCK-{sender_batch_id[:12].upper()}"
        # same sender_batch_id -> same batch, as the real provider dedupes
        self.batches.setdefault(batch_id, {"header": header, "items": list(request_body.get("items") or [])})
        return {
            "batch_header": {
                "payout_batch_id": batch_id,
                "batch_status": "PENDING",
                "sender_batch_header": header,
            },
            "links": [],
        }

    async def fetch_batch_info(self, account: ConnectedAccount, batch_id: str) -> dict[str, Any]:
        self.fetch_calls.append(batch_id)
        batch = self.batches.get(batch_id)
        if batch is None:
            raise PayoutProviderError("Batch not found", status_code=404, response={"mock": True})

        items = []
        for n, item in enumerate(batch["items"], start=1):
            sender_item_id = str(item.get("sender_item_id"))
            items.append(
                {
                    "payout_item_id": f"{batch_id}-{n}",
                    "payout_batch_id": batch_id,
                    "transaction_status": self.item_statuses.get(sender_item_id, self.item_status),
                    "payout_item": {
                        "amount": dict(item.get("amount") or {}),
                        "receiver": item.get("receiver"),
                        "note": item.get("note"),
                        "sender_item_id": sender_item_id,
                    },
                }
            )
        return {
            "batch_header": {"payout_batch_id": batch_id, "batch_status": "SUCCESS"},
            "items": items,
        }

    async def aclose(self) -> None:
        return None
