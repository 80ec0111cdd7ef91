# app/providers/base.py
from __future__ import annotations

from typing import Any, Optional, Protocol

from app.expenses.model import ConnectedAccount


class PayoutProviderError(Exception):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        response: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class PayoutProvider(Protocol):
    name: str

    async def submit_batch(self, account: ConnectedAccount, request_body: dict[str, Any]) -> dict[str, Any]: ...
    async def fetch_batch_info(self, account: ConnectedAccount, batch_id: str) -> dict[str, Any]: ...
    async def aclose(self) -> None: ...
