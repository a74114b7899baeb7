"""Loan listing, administrative status changes and reconciliation."""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from loan_servicing.core.reconciliation import Reconciler
from loan_servicing.exceptions import InvalidEntityStateError
from loan_servicing.models import Loan, LoanStatus
from loan_servicing.sinks.base import EventSink, NullSink, build_event
from loan_servicing.store.base import DocumentStore

logger = logging.getLogger(__name__)


class LoanService:
    """Administrative operations on loans.

    Status changes made here run under the reconciler's per-loan lock so
    that they never interleave with a reconciliation of the same loan.
    """

    def __init__(
        self,
        store: DocumentStore,
        reconciler: Reconciler,
        sink: EventSink | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.reconciler = reconciler
        self.sink = sink or NullSink()
        self.clock = clock

    def list_loans(self, status: LoanStatus | None = None) -> list[Loan]:
        """List loans, newest first, optionally filtered by status."""
        return self.store.list_loans(status=status)

    def list_agent_loans(self, agent_id: str) -> list[Loan]:
        """Loans assigned to an agent, newest first."""
        return self.store.list_loans(assigned_agent=agent_id)

    def get_loan(self, loan_id: str) -> Loan:
        return self.store.find_loan_by_id(loan_id)

    def transition(
        self,
        loan_id: str,
        status: LoanStatus,
        reason: str,
        allowed_from: Iterable[LoanStatus] | None = None,
        **changes,
    ) -> Loan:
        """Move a loan to an administrative status.

        Parameters
        ----------
        loan_id : str
            Loan to update.
        status : LoanStatus
            Target status.
        reason : str
            Recorded on the ``loan.status_changed`` event.
        allowed_from : Iterable[LoanStatus] | None
            Statuses the loan may currently be in; ``None`` allows any.
        **changes
            Extra fields persisted with the status.

        Raises
        ------
        InvalidEntityStateError
            If the loan's current status is not in ``allowed_from``.
        """
        with self.reconciler.serialized(loan_id):
            loan = self.store.find_loan_by_id(loan_id)
            previous = loan.status
            if allowed_from is not None and previous not in set(allowed_from):
                raise InvalidEntityStateError(
                    f"Loan {loan_id} is {previous.value}; cannot move to {status.value}"
                )
            updated = self.store.update_loan(
                loan_id, status=status, updated_at=self.clock(), **changes
            )

        if previous != status:
            logger.info(
                "Loan %s status %s -> %s (%s)",
                loan_id,
                previous.value,
                status.value,
                reason,
                extra={
                    "event_type": "loan.status_changed",
                    "loan_id": loan_id,
                    "borrower_id": updated.borrower_id,
                    "status": status.value,
                },
            )
            self.sink.emit(
                build_event(
                    "loan.status_changed",
                    subject=loan_id,
                    data={"from": previous, "to": status, "reason": reason},
                )
            )
        return updated

    def review_loan(self, loan_id: str, approved: bool, comment: str | None = None) -> Loan:
        """Approve or reject a pending loan."""
        status = LoanStatus.APPROVED if approved else LoanStatus.REJECTED
        return self.transition(
            loan_id,
            status,
            reason="manager_review",
            allowed_from=[LoanStatus.PENDING],
            manager_comment=comment or None,
        )

    def cancel_loan(self, loan_id: str, reason: str | None = None) -> Loan:
        """Cancel a loan from any state except ``cancelled``."""
        allowed = [s for s in LoanStatus if s != LoanStatus.CANCELLED]
        return self.transition(
            loan_id,
            LoanStatus.CANCELLED,
            reason="cancelled",
            allowed_from=allowed,
            manager_comment=reason or None,
        )

    def reconcile_loan(self, loan_id: str) -> Loan:
        """Recompute one loan's balance from its payments."""
        return self.reconciler.reconcile_loan(loan_id)

    def reconcile_agent_loans(self, agent_id: str) -> list[Loan]:
        """Recompute the balance of every loan assigned to an agent."""
        loan_ids = [loan.loan_id for loan in self.store.list_loans(assigned_agent=agent_id)]
        results = self.reconciler.reconcile_many(loan_ids)
        logger.info("Reconciled %d loans for agent %s", len(results), agent_id)
        return results
