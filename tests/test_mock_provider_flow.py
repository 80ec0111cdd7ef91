from __future__ import annotations

import asyncio

from app.expenses.model import ExpenseStatus
from app.payouts import activities
from app.payouts.poller import poll_batch
from app.payouts.submitter import pay_expenses_batch
from app.providers.mock import MockPayoutProvider
from tests.fakes import InMemoryExpenseStore, make_deps, make_expense


def test_submit_then_poll_pays_every_expense():
    expenses = [make_expense(1), make_expense(2)]
    store = InMemoryExpenseStore(expenses)
    provider = MockPayoutProvider()
    deps = make_deps(store, provider)

    async def flow():
        submitted = await pay_expenses_batch(expenses, deps)
        return await poll_batch(submitted, deps)

    report = asyncio.run(flow())

    assert report.batch_id.startswith("MOCK-")
    assert report.failures == {}
    assert [store.row(i).status for i in (1, 2)] == [ExpenseStatus.PAID, ExpenseStatus.PAID]
    assert len(deps.ledger.calls) == 2
    assert deps.activities.kinds_for(1) == [
        activities.COLLECTIVE_EXPENSE_PROCESSING,
        activities.COLLECTIVE_EXPENSE_PAID,
    ]


def test_per_item_statuses_are_reconciled_independently():
    expenses = [make_expense(1), make_expense(2), make_expense(3)]
    store = InMemoryExpenseStore(expenses)
    provider = MockPayoutProvider(item_statuses={"2": "UNCLAIMED", "3": "BLOCKED"})
    deps = make_deps(store, provider)

    async def flow():
        submitted = await pay_expenses_batch(expenses, deps)
        return await poll_batch(submitted, deps)

    report = asyncio.run(flow())

    assert store.row(1).status == ExpenseStatus.PAID
    assert store.row(2).status == ExpenseStatus.PROCESSING
    assert store.row(3).status == ExpenseStatus.ERROR
    assert report.summary()["in_flight"] == 1


def test_rejected_mock_submission_errors_the_batch():
    expenses = [make_expense(1)]
    store = InMemoryExpenseStore(expenses)
    deps = make_deps(store, MockPayoutProvider(fail_submit=True))

    result = asyncio.run(pay_expenses_batch(expenses, deps))

    assert result[0].status == ExpenseStatus.ERROR
    assert store.row(1).status == ExpenseStatus.ERROR
