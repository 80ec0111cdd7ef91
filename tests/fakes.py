# tests/fakes.py
from __future__ import annotations

import asyncio
import copy
from decimal import Decimal
from typing import Any, Optional

from app.expenses.model import (
    Collective,
    ConnectedAccount,
    Expense,
    ExpenseStatus,
    Host,
    User,
)
from app.expenses.state_machine import assert_transition
from app.payouts.deps import PayoutDeps
from app.providers.base import PayoutProviderError
from services.fx import FxRateUnavailable


HOST = Host(id=1, name="Open Source Host", currency="USD")
OTHER_HOST = Host(id=2, name="Other Host", currency="EUR")
COLLECTIVE = Collective(id=10, name="Babel", host_collective_id=HOST.id)
ACCOUNT = ConnectedAccount(id=100, service="paypal", client_id="client-123", token="secret-123")
EDITOR = User(id=7, name="Ada", email="ada@example.com")


def make_expense(
    expense_id: int,
    *,
    amount: int = 10000,
    currency: str = "USD",
    status: ExpenseStatus = ExpenseStatus.APPROVED,
    collective: Collective = COLLECTIVE,
    data: Optional[dict[str, Any]] = None,
) -> Expense:
    return Expense(
        id=expense_id,
        amount=amount,
        currency=currency,
        status=status,
        collective=collective,
        description=f"Invoice {expense_id}",
        data=dict(data or {}),
        payout_method_data={"email": f"payee{expense_id}@example.com"},
        last_edited_by_id=EDITOR.id,
    )


class InMemoryExpenseStore:
    """
    Keeps its own copy of every expense, like a database row, so tests can
    change the "stored" state behind a caller's back.
    """

    def __init__(self, expenses: list[Expense] = (), *, hosts=None, accounts=None, users=None):
        self.rows: dict[int, Expense] = {}
        for e in expenses:
            self.add(e)
        self.hosts: dict[int, Host] = dict(hosts if hosts is not None else {HOST.id: HOST, OTHER_HOST.id: OTHER_HOST})
        self.accounts: dict[tuple[int, str], ConnectedAccount] = dict(
            accounts if accounts is not None else {(HOST.id, "paypal"): ACCOUNT}
        )
        self.users: dict[int, User] = dict(users if users is not None else {EDITOR.id: EDITOR})
        self.calls: list[tuple] = []
        self.fail_update_for: set[int] = set()
        self.update_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    def add(self, expense: Expense) -> None:
        self.rows[expense.id] = copy.deepcopy(expense)

    def row(self, expense_id: int) -> Expense:
        return self.rows[expense_id]

    async def _enter(self, expense: Expense) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.update_delay:
                await asyncio.sleep(self.update_delay)
            if expense.id in self.fail_update_for:
                raise RuntimeError(f"database unavailable for expense #{expense.id}")
        finally:
            self.in_flight -= 1

    async def reload(self, expense: Expense) -> Expense:
        self.calls.append(("reload", expense.id))
        stored = self.rows[expense.id]
        expense.status = stored.status
        expense.data = copy.deepcopy(stored.data)
        expense.amount = stored.amount
        expense.currency = stored.currency
        return expense

    async def merge_provider_data(self, expense, patch, *, status=None) -> None:
        self.calls.append(("merge_provider_data", expense.id))
        await self._enter(expense)
        stored = self.rows[expense.id]
        if status is not None:
            assert_transition(stored.status, status)
            stored.status = status
        stored.data = {**stored.data, **copy.deepcopy(patch)}
        expense.data = copy.deepcopy(stored.data)
        expense.status = stored.status

    async def replace_provider_data(self, expense, data) -> None:
        self.calls.append(("replace_provider_data", expense.id))
        stored = self.rows[expense.id]
        stored.data = copy.deepcopy(data)
        expense.data = copy.deepcopy(data)

    async def update_status(self, expense, status) -> None:
        self.calls.append(("update_status", expense.id, status))
        await self._enter(expense)
        stored = self.rows[expense.id]
        assert_transition(stored.status, status)
        stored.status = status
        expense.status = status

    async def _set_terminal(self, expense, status) -> bool:
        stored = self.rows[expense.id]
        expense.status = status
        if stored.status == status:
            return False
        assert_transition(stored.status, status)
        stored.status = status
        return True

    async def set_paid(self, expense, actor_id) -> bool:
        self.calls.append(("set_paid", expense.id, actor_id))
        return await self._set_terminal(expense, ExpenseStatus.PAID)

    async def set_error(self, expense, actor_id) -> bool:
        self.calls.append(("set_error", expense.id, actor_id))
        return await self._set_terminal(expense, ExpenseStatus.ERROR)

    async def get_host(self, collective) -> Optional[Host]:
        self.calls.append(("get_host", collective.id))
        if collective.host_collective_id is None:
            return None
        return self.hosts.get(collective.host_collective_id)

    async def get_account_for_payment_provider(self, host, service) -> Optional[ConnectedAccount]:
        self.calls.append(("get_account", host.id, service))
        return self.accounts.get((host.id, service))

    async def get_user(self, user_id) -> Optional[User]:
        self.calls.append(("get_user", user_id))
        return self.users.get(user_id)

    async def list_processing_with_batch(self, *, limit: int) -> list[Expense]:
        rows = [
            copy.deepcopy(e)
            for e in sorted(self.rows.values(), key=lambda e: e.id)
            if e.status == ExpenseStatus.PROCESSING and e.payout_batch_id
        ]
        return rows[:limit]


class FakeProvider:
    name = "paypal"

    def __init__(self, *, submit_response=None, submit_error=None, batch=None, fetch_error=None):
        self.submit_response = submit_response or {
            "batch_header": {"payout_batch_id": "BATCH-1", "batch_status": "PENDING"}
        }
        self.submit_error = submit_error
        self.batch = batch or {"items": []}
        self.fetch_error = fetch_error
        self.submitted: list[tuple[ConnectedAccount, dict]] = []
        self.fetched: list[str] = []
        self.closed = False

    async def submit_batch(self, account, request_body):
        self.submitted.append((account, request_body))
        if self.submit_error is not None:
            raise self.submit_error
        return self.submit_response

    async def fetch_batch_info(self, account, batch_id):
        self.fetched.append(batch_id)
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.batch

    async def aclose(self):
        self.closed = True


class FakeFx:
    def __init__(self, rates: Optional[dict[tuple[str, str], Decimal]] = None):
        self.rates = dict(rates or {})
        self.calls: list[tuple[str, str]] = []

    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        self.calls.append((from_currency, to_currency))
        if (from_currency, to_currency) not in self.rates:
            raise FxRateUnavailable(from_currency, to_currency)
        return self.rates[(from_currency, to_currency)]


class FakeLedger:
    def __init__(self):
        self.calls: list[dict[str, Any]] = []

    async def create_transactions_from_paid_expense(self, host, expense, fees, fx_rate, raw_outcome):
        self.calls.append(
            {"host": host, "expense_id": expense.id, "fees": dict(fees), "fx_rate": fx_rate, "raw": raw_outcome}
        )


class FakeActivities:
    def __init__(self):
        self.created: list[tuple[int, str, Any, Optional[dict]]] = []

    async def create_activity(self, expense, kind, actor, extra=None) -> None:
        self.created.append((expense.id, kind, actor, extra))

    def kinds_for(self, expense_id: int) -> list[str]:
        return [kind for eid, kind, _, _ in self.created if eid == expense_id]


class ReportedMessages:
    def __init__(self):
        self.messages: list[tuple[str, dict]] = []

    async def __call__(self, message: str, extra: dict) -> None:
        self.messages.append((message, extra))


def make_deps(store, provider=None, *, fx=None, update_concurrency: int = 10) -> PayoutDeps:
    return PayoutDeps(
        store=store,
        provider=provider or FakeProvider(),
        fx=fx or FakeFx(),
        ledger=FakeLedger(),
        activities=FakeActivities(),
        report_message=ReportedMessages(),
        provider_name="paypal",
        update_concurrency=update_concurrency,
    )


def provider_rejection(message: str = "INSUFFICIENT_FUNDS: Sender does not have sufficient funds.") -> PayoutProviderError:
    return PayoutProviderError(message, status_code=422, response={"http_status": 422})
