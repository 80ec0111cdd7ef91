from __future__ import annotations

import hashlib

import pytest

from app.expenses.model import Collective
from app.payouts.batch import build_batch_request, cents_to_decimal_str, sender_batch_id
from app.payouts.errors import PreconditionError
from tests.fakes import make_expense


def test_sender_batch_id_is_sha1_of_ordered_ids():
    expenses = [make_expense(12), make_expense(3), make_expense(45)]
    assert sender_batch_id(expenses) == hashlib.sha1(b"12345").hexdigest()


def test_same_ids_same_order_give_same_batch_id():
    first = build_batch_request([make_expense(1), make_expense(2)])
    again = build_batch_request([make_expense(1, amount=5), make_expense(2, currency="EUR")])
    assert first.sender_batch_id == again.sender_batch_id


def test_different_set_or_order_changes_batch_id():
    base = sender_batch_id([make_expense(1), make_expense(2)])
    assert sender_batch_id([make_expense(2), make_expense(1)]) != base
    assert sender_batch_id([make_expense(1), make_expense(3)]) != base


def test_items_use_expense_currency_and_two_decimal_amounts():
    request = build_batch_request(
        [make_expense(1, amount=10050, currency="EUR"), make_expense(2, amount=7, currency="USD")]
    )
    first, second = request.items
    assert (first.value, first.currency) == ("100.50", "EUR")
    assert (second.value, second.currency) == ("0.07", "USD")
    assert first.sender_item_id == "1"
    assert first.receiver == "payee1@example.com"
    assert first.note == "Expense #1: Invoice 1"


def test_payload_shape():
    payload = build_batch_request([make_expense(9)]).to_payload()
    header = payload["sender_batch_header"]
    assert header["recipient_type"] == "EMAIL"
    assert header["email_subject"] == "Expense Payout for Babel"
    assert header["email_message"] == "Good news, your expense was paid!"
    assert header["sender_batch_id"] == hashlib.sha1(b"9").hexdigest()
    assert payload["items"] == [
        {
            "note": "Expense #9: Invoice 9",
            "amount": {"currency": "USD", "value": "100.00"},
            "receiver": "payee9@example.com",
            "sender_item_id": "9",
        }
    ]


def test_mixed_hosts_rejected():
    other = Collective(id=11, name="Other", host_collective_id=2)
    with pytest.raises(PreconditionError):
        build_batch_request([make_expense(1), make_expense(2, collective=other)])


def test_missing_host_rejected():
    unhosted = Collective(id=12, name="Unhosted", host_collective_id=None)
    with pytest.raises(PreconditionError):
        build_batch_request([make_expense(1, collective=unhosted)])


def test_empty_batch_rejected():
    with pytest.raises(PreconditionError):
        build_batch_request([])


def test_cents_rounding():
    assert cents_to_decimal_str(1) == "0.01"
    assert cents_to_decimal_str(100000) == "1000.00"
