"""Keeps each loan's cached balance in step with its payments."""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from loan_servicing.core.ledger import LedgerBalance, reconcile
from loan_servicing.exceptions import EntityNotFoundError
from loan_servicing.models import Loan, LoanStatus
from loan_servicing.sinks.base import EventSink, NullSink, build_event
from loan_servicing.store.base import DocumentStore

logger = logging.getLogger(__name__)


def next_status(current: LoanStatus, balance: LedgerBalance) -> LoanStatus:
    """Derive a loan's status after reconciliation.

    A settled loan becomes ``paid``. A ``paid`` loan whose balance reopened
    (reversal or downward edit) goes back to ``active``. Any other status,
    including administrative ones, is left alone.
    """
    if balance.is_fully_paid:
        return LoanStatus.PAID
    if current == LoanStatus.PAID:
        return LoanStatus.ACTIVE
    return current


@dataclass
class _LoanLock:
    lock: threading.RLock = field(default_factory=threading.RLock)
    holders: int = 0


class Reconciler:
    """Recompute and persist a loan's ``total_paid``, ``remaining_amount`` and ``status``.

    Mutations that affect a loan's payments should run inside
    :meth:`serialized` so that the payment write and the following
    reconciliation are not interleaved with another writer in this process.

    Parameters
    ----------
    store : DocumentStore
        Source of loans and payments.
    sink : EventSink | None
        Receives ``loan.reconciled`` and ``loan.status_changed`` events.
    """

    def __init__(self, store: DocumentStore, sink: EventSink | None = None) -> None:
        self.store = store
        self.sink = sink or NullSink()
        # Entries are dropped when the last holder or waiter leaves
        self._locks: dict[str, _LoanLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def serialized(self, loan_id: str) -> Iterator[None]:
        """Hold the per-loan writer lock for the duration of the block.

        The lock is reentrant, so a reconciliation may run inside a block
        that already holds it.
        """
        with self._locks_guard:
            entry = self._locks.get(loan_id)
            if entry is None:
                entry = self._locks[loan_id] = _LoanLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[loan_id]

    def reconcile_loan(self, loan_id: str) -> Loan:
        """Bring a loan's derived fields in line with its payments.

        Idempotent: repeated calls without an intervening payment change
        persist and return the same values.

        Raises
        ------
        EntityNotFoundError
            If the loan does not exist.
        StoreError
            If the store read or write fails.
        """
        with self.serialized(loan_id):
            loan = self.store.find_loan_by_id(loan_id)
            payments = self.store.find_payments_by_loan_id(loan_id)
            balance = reconcile(loan.principal, payments)
            previous_status = loan.status
            status = next_status(previous_status, balance)

            changed = (
                loan.total_paid != balance.total_paid
                or loan.remaining_amount != balance.remaining_amount
                or previous_status != status
            )
            updated = self.store.update_loan(
                loan_id,
                total_paid=balance.total_paid,
                remaining_amount=balance.remaining_amount,
                status=status,
            )

        logger.debug(
            "Reconciled loan %s: principal=%s total_paid=%s remaining=%s status=%s",
            loan_id,
            updated.principal,
            updated.total_paid,
            updated.remaining_amount,
            updated.status.value,
            extra={
                "event_type": "loan.reconciled",
                "loan_id": loan_id,
                "status": updated.status.value,
            },
        )

        if changed:
            self.sink.emit(
                build_event(
                    "loan.reconciled",
                    subject=loan_id,
                    data={
                        "principal": updated.principal,
                        "total_paid": updated.total_paid,
                        "remaining_amount": updated.remaining_amount,
                        "status": updated.status,
                        "payment_count": len(payments),
                    },
                )
            )
        if previous_status != status:
            logger.info(
                "Loan %s status %s -> %s",
                loan_id,
                previous_status.value,
                status.value,
                extra={
                    "event_type": "loan.status_changed",
                    "loan_id": loan_id,
                    "status": status.value,
                },
            )
            self.sink.emit(
                build_event(
                    "loan.status_changed",
                    subject=loan_id,
                    data={"from": previous_status, "to": status, "reason": "reconciliation"},
                )
            )
        return updated

    def reconcile_many(self, loan_ids: list[str]) -> list[Loan]:
        """Reconcile several loans, skipping any deleted in the meantime."""
        results = []
        for loan_id in loan_ids:
            try:
                results.append(self.reconcile_loan(loan_id))
            except EntityNotFoundError:
                logger.warning(
                    "Loan %s disappeared before reconciliation",
                    loan_id,
                    extra={"loan_id": loan_id},
                )
        return results
