"""Balance reconciliation and repayment schedules."""

from loan_servicing.core.ledger import LedgerBalance, reconcile, to_amount
from loan_servicing.core.reconciliation import Reconciler, next_status
from loan_servicing.core.schedule import add_months, due_installments, installments_due_on

__all__ = [
    "LedgerBalance",
    "Reconciler",
    "add_months",
    "due_installments",
    "installments_due_on",
    "next_status",
    "reconcile",
    "to_amount",
]
