import pytest

from app.expenses.model import ExpenseStatus
from app.expenses.state_machine import InvalidTransition, allowed_sources, assert_transition


def test_valid_transitions():
    assert_transition(ExpenseStatus.APPROVED, ExpenseStatus.PROCESSING)
    assert_transition(ExpenseStatus.APPROVED, ExpenseStatus.ERROR)
    assert_transition(ExpenseStatus.PROCESSING, ExpenseStatus.PAID)
    assert_transition(ExpenseStatus.PROCESSING, ExpenseStatus.ERROR)
    assert_transition(ExpenseStatus.ERROR, ExpenseStatus.PROCESSING)


def test_invalid_transition_skipping_states():
    with pytest.raises(InvalidTransition):
        assert_transition(ExpenseStatus.APPROVED, ExpenseStatus.PAID)


def test_rejected_expenses_cannot_be_paid_out():
    with pytest.raises(InvalidTransition):
        assert_transition(ExpenseStatus.REJECTED, ExpenseStatus.PROCESSING)


def test_allowed_sources_for_paid():
    assert sorted(allowed_sources(ExpenseStatus.PAID)) == ["ERROR", "PROCESSING"]


def test_errored_expense_can_error_again():
    assert_transition(ExpenseStatus.ERROR, ExpenseStatus.ERROR)
    assert "ERROR" in allowed_sources(ExpenseStatus.ERROR)
