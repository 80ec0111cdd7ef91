from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from app.expenses.repository import fetch_expense
from app.payouts.errors import PreconditionError
from app.payouts.submitter import pay_expenses_batch
from app.providers.factory import close_providers
from db import get_conn


def die(message, code=1):
    print(message)
    sys.exit(code)


def _load(expense_ids: list[int]):
    expenses = []
    with get_conn() as conn:
        for expense_id in expense_ids:
            expense = fetch_expense(conn, expense_id)
            if expense is None:
                die(f"Expense #{expense_id} not found")
            expenses.append(expense)
    return expenses


async def _pay(expenses):
    try:
        return await pay_expenses_batch(expenses)
    finally:
        await close_providers()


def main() -> None:
    parser = argparse.ArgumentParser(description="Submit expenses to the payout provider as one batch.")
    parser.add_argument("expense_ids", type=int, nargs="+")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    expenses = _load(args.expense_ids)
    try:
        result = asyncio.run(_pay(expenses))
    except PreconditionError as exc:
        die(f"batch not submitted: {exc}")

    for expense in result:
        print(f"expense #{expense.id}: {expense.status.value} payout_batch_id={expense.payout_batch_id}")


if __name__ == "__main__":
    main()
