from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from app.expenses.model import ActorRef, Collective, ConnectedAccount, Expense, ExpenseStatus, Host, User
from app.providers.base import PayoutProvider


Actor = Union[User, ActorRef, None]


class ExpenseStore(Protocol):
    async def reload(self, expense: Expense) -> Expense: ...
    async def merge_provider_data(
        self, expense: Expense, patch: dict[str, Any], *, status: Optional[ExpenseStatus] = None
    ) -> None: ...
    async def replace_provider_data(self, expense: Expense, data: dict[str, Any]) -> None: ...
    async def update_status(self, expense: Expense, status: ExpenseStatus) -> None: ...
    async def set_paid(self, expense: Expense, actor_id: Optional[int]) -> bool: ...
    async def set_error(self, expense: Expense, actor_id: Optional[int]) -> bool: ...
    async def get_host(self, collective: Collective) -> Optional[Host]: ...
    async def get_account_for_payment_provider(self, host: Host, service: str) -> Optional[ConnectedAccount]: ...
    async def get_user(self, user_id: Optional[int]) -> Optional[User]: ...
    async def list_processing_with_batch(self, *, limit: int) -> list[Expense]: ...


class FxRates(Protocol):
    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal: ...


class Ledger(Protocol):
    """
    Records the transactions of a paid expense.

    Called before the expense is moved to PAID, so two pollers crossing the same
    item can both reach it: implementations must record at most once per expense
    and treat a repeated call as a no-op.
    """

    async def create_transactions_from_paid_expense(
        self,
        host: Host,
        expense: Expense,
        fees: dict[str, int],
        fx_rate: Decimal,
        raw_outcome: dict[str, Any],
    ) -> Any: ...


class ActivitySink(Protocol):
    async def create_activity(
        self, expense: Expense, kind: str, actor: Actor, extra: Optional[dict[str, Any]] = None
    ) -> None: ...


ReportMessage = Callable[[str, dict[str, Any]], Awaitable[None]]


@dataclass
class PayoutDeps:
    store: ExpenseStore
    provider: PayoutProvider
    fx: FxRates
    ledger: Ledger
    activities: ActivitySink
    report_message: ReportMessage
    provider_name: str = "paypal"
    update_concurrency: int = 10


def default_deps() -> PayoutDeps:
    """Postgres-backed collaborators and the configured payout provider."""
    from app.expenses.repository import PostgresExpenseStore
    from app.providers.factory import get_provider
    from services.activities import PostgresActivitySink
    from services.diagnostics import report_message
    from services.fx import PostgresFxRates
    from services.ledger import PostgresLedger
    from settings import settings

    provider = get_provider(settings.PAYOUT_PROVIDER)
    if provider is None:
        raise RuntimeError(f"Unsupported payout provider: {settings.PAYOUT_PROVIDER}")

    return PayoutDeps(
        store=PostgresExpenseStore(),
        provider=provider,
        fx=PostgresFxRates(),
        ledger=PostgresLedger(),
        activities=PostgresActivitySink(),
        report_message=report_message,
        provider_name=settings.PAYOUT_PROVIDER.strip().lower(),
        update_concurrency=settings.PAYOUT_UPDATE_CONCURRENCY,
    )
