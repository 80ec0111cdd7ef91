COLLECTIVE_EXPENSE_PROCESSING = "collective.expense.processing"
COLLECTIVE_EXPENSE_PAID = "collective.expense.paid"
COLLECTIVE_EXPENSE_ERROR = "collective.expense.error"
