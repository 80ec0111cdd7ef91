from app.expenses.model import ExpenseStatus


class InvalidTransition(Exception):
    pass


_SUBMITTABLE = {ExpenseStatus.PROCESSING, ExpenseStatus.ERROR}

ALLOWED = {
    ExpenseStatus.DRAFT: _SUBMITTABLE,
    ExpenseStatus.PENDING: _SUBMITTABLE,
    ExpenseStatus.APPROVED: _SUBMITTABLE,
    ExpenseStatus.SCHEDULED_FOR_PAYMENT: _SUBMITTABLE,
    ExpenseStatus.PROCESSING: {ExpenseStatus.PROCESSING, ExpenseStatus.PAID, ExpenseStatus.ERROR},
    # ERROR -> PROCESSING: a failed submission is retried as a new batch;
    # ERROR -> ERROR: that retry was rejected too
    ExpenseStatus.ERROR: {ExpenseStatus.PROCESSING, ExpenseStatus.PAID, ExpenseStatus.ERROR},
    # provider REFUNDED/REVERSED after payment
    ExpenseStatus.PAID: {ExpenseStatus.ERROR},
    ExpenseStatus.REJECTED: set(),
}


def can_transition(old: ExpenseStatus, new: ExpenseStatus) -> bool:
    return ExpenseStatus(new) in ALLOWED.get(ExpenseStatus(old), set())


def assert_transition(old: ExpenseStatus, new: ExpenseStatus) -> None:
    if not can_transition(old, new):
        raise InvalidTransition(
            f"Illegal expense transition: {ExpenseStatus(old).value} -> {ExpenseStatus(new).value}"
        )


def allowed_sources(new: ExpenseStatus) -> list[str]:
    """Statuses an expense may be in for a move to `new` (used in conditional UPDATEs)."""
    target = ExpenseStatus(new)
    return [old.value for old, targets in ALLOWED.items() if target in targets]
