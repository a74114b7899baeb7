"""Recording, editing and reversing repayments.

Every mutation runs inside ``Reconciler.serialized`` for the payment's loan
and is followed by a reconciliation of that loan, so the loan's cached
balance always reflects the payment write that preceded it.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from loan_servicing.core.ledger import ZERO, to_amount
from loan_servicing.core.reconciliation import Reconciler
from loan_servicing.exceptions import (
    AlreadyReversedError,
    EntityNotFoundError,
    InvalidEntityStateError,
    ReferentialIntegrityError,
    ValidationError,
)
from loan_servicing.models import Loan, LoanStatus, Location, Payment, PaymentMode, new_id
from loan_servicing.sinks.base import EventSink, NullSink, build_event
from loan_servicing.store.base import DocumentStore

logger = logging.getLogger(__name__)

REQUEST_REVERSAL = "reversal"
REQUEST_EDIT = "edit"


@dataclass
class PaymentOutcome:
    """A mutated payment and the loan snapshot after reconciliation.

    ``loan`` is ``None`` when the payment's loan no longer exists.
    """

    payment: Payment
    loan: Loan | None
    warning: str | None = None


def _positive_amount(value: Any) -> Decimal:
    amount = to_amount(value)
    if amount <= ZERO:
        raise ValidationError(f"Amount must be positive, got {amount}")
    return amount


def _payment_mode(value: Any) -> PaymentMode:
    try:
        return PaymentMode(value or PaymentMode.CASH)
    except ValueError as e:
        raise ValidationError(f"Invalid payment mode: {value!r}") from e


def _location(value: Any) -> Location | None:
    if value is None or isinstance(value, Location):
        return value
    return Location(latitude=value.get("latitude"), longitude=value.get("longitude"))


def day_bounds(start: date | None, end: date | None) -> tuple[datetime | None, datetime | None]:
    """Turn an inclusive ``[start, end]`` day range into datetime bounds."""
    created_from = datetime.combine(start, time.min) if start else None
    created_before = datetime.combine(end + timedelta(days=1), time.min) if end else None
    return created_from, created_before


def _log_context(payment: Payment, event_type: str) -> dict[str, Any]:
    return {
        "event_type": event_type,
        "payment_id": payment.payment_id,
        "loan_id": payment.loan_id,
        "borrower_id": payment.borrower_id,
        "agent_id": payment.agent_id,
        "amount": payment.amount,
    }


class PaymentService:
    """Payment mutations with reconciliation of the owning loan."""

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

    def _resolve_loan(self, borrower_id: str, loan_id: str | None) -> Loan:
        if loan_id:
            loan = self.store.find_loan_by_id(loan_id)
            if loan.borrower_id != borrower_id:
                raise ValidationError(f"Loan {loan_id} does not belong to borrower {borrower_id}")
            return loan
        active = self.store.list_loans(status=LoanStatus.ACTIVE, borrower_id=borrower_id)
        if not active:
            raise ValidationError("No active loan found for this borrower")
        return active[0]

    def _reconcile_after(self, payment: Payment) -> tuple[Loan | None, str | None]:
        try:
            return self.reconciler.reconcile_loan(payment.loan_id), None
        except EntityNotFoundError:
            logger.warning(
                "Loan %s not found while reconciling payment %s",
                payment.loan_id,
                payment.payment_id,
                extra=_log_context(payment, "loan.reconciled"),
            )
            return None, "Loan not found - please fix loans manually"

    def record_payment(
        self,
        borrower_id: str,
        agent_id: str,
        amount: Any,
        loan_id: str | None = None,
        payment_mode: PaymentMode | str | None = None,
        location: Location | dict | None = None,
        receipt_name: str | None = None,
    ) -> PaymentOutcome:
        """Record a collection and reconcile the loan it was made against.

        When ``loan_id`` is omitted the borrower's newest ``active`` loan is
        used. The amount may exceed the remaining balance; only the loan's
        bookkeeping is clamped.

        Raises
        ------
        ValidationError
            Missing fields, a non-positive amount or no usable loan.
        ReferentialIntegrityError
            If the borrower or agent does not exist.
        """
        if not borrower_id or not agent_id or amount in (None, ""):
            raise ValidationError("Borrower ID, Agent ID, and amount are required")
        amount = _positive_amount(amount)
        mode = _payment_mode(payment_mode)

        try:
            self.store.find_borrower_by_id(borrower_id)
        except EntityNotFoundError:
            raise ReferentialIntegrityError(f"Borrower {borrower_id} not found") from None
        if not self.store.agent_code_exists(agent_id):
            raise ReferentialIntegrityError(f"Agent {agent_id} not found")

        loan = self._resolve_loan(borrower_id, loan_id)
        payment = Payment(
            payment_id=new_id(),
            loan_id=loan.loan_id,
            borrower_id=borrower_id,
            agent_id=agent_id,
            amount=amount,
            created_at=self.clock(),
            payment_mode=mode,
            location=_location(location),
            receipt_name=receipt_name or None,
        )
        with self.reconciler.serialized(loan.loan_id):
            self.store.add_payment(payment)
            updated, warning = self._reconcile_after(payment)

        logger.info(
            "Recorded payment %s of %s on loan %s by agent %s",
            payment.payment_id,
            payment.amount,
            payment.loan_id,
            agent_id,
            extra=_log_context(payment, "payment.created"),
        )
        self.sink.emit(
            build_event(
                "payment.created",
                subject=payment.payment_id,
                data={
                    "loan_id": payment.loan_id,
                    "borrower_id": borrower_id,
                    "agent_id": agent_id,
                    "amount": payment.amount,
                    "payment_mode": payment.payment_mode,
                },
            )
        )
        return PaymentOutcome(payment, updated, warning)

    def edit_payment(
        self,
        payment_id: str,
        amount: Any = None,
        payment_mode: PaymentMode | str | None = None,
        location: Location | dict | None = None,
        receipt_name: str | None = None,
    ) -> PaymentOutcome:
        """Correct a payment; the loan is reconciled when the amount changes.

        Raises
        ------
        InvalidEntityStateError
            If the payment has been reversed.
        """
        loan_id = self.store.find_payment_by_id(payment_id).loan_id
        changes: dict[str, Any] = {}
        if amount is not None:
            changes["amount"] = _positive_amount(amount)
        if payment_mode:
            changes["payment_mode"] = _payment_mode(payment_mode)
        if location:
            changes["location"] = _location(location)
        if receipt_name:
            changes["receipt_name"] = receipt_name

        with self.reconciler.serialized(loan_id):
            current = self.store.find_payment_by_id(payment_id)
            if current.reversed:
                raise InvalidEntityStateError(f"Payment {payment_id} is reversed")
            if not changes:
                return PaymentOutcome(current, None)

            previous_amount = current.amount
            payment = self.store.update_payment(payment_id, updated_at=self.clock(), **changes)
            loan, warning = None, None
            if "amount" in changes and changes["amount"] != previous_amount:
                loan, warning = self._reconcile_after(payment)

        logger.info(
            "Edited payment %s: %s",
            payment_id,
            ", ".join(sorted(changes)),
            extra=_log_context(payment, "payment.edited"),
        )
        self.sink.emit(
            build_event(
                "payment.edited",
                subject=payment_id,
                data={"loan_id": loan_id, "previous_amount": previous_amount, **changes},
            )
        )
        return PaymentOutcome(payment, loan, warning)

    def reverse_payment(
        self,
        payment_id: str,
        reversed_by: str = "manager",
        reason: str | None = None,
    ) -> PaymentOutcome:
        """Soft-cancel a payment and reconcile its loan.

        The payment is kept with ``reversed_at``/``reversed_by`` stamped once.
        A missing loan is reported as a warning on the outcome.

        Raises
        ------
        AlreadyReversedError
            If the payment was reversed before; nothing is changed.
        """
        loan_id = self.store.find_payment_by_id(payment_id).loan_id
        with self.reconciler.serialized(loan_id):
            current = self.store.find_payment_by_id(payment_id)
            if current.reversed:
                raise AlreadyReversedError("Payment already reversed")
            now = self.clock()
            payment = self.store.update_payment(
                payment_id,
                reversed=True,
                reversed_at=now,
                reversed_by=reversed_by,
                reversal_reason=reason,
                updated_at=now,
            )
            loan, warning = self._reconcile_after(payment)

        logger.info(
            "Reversed payment %s of %s by %s",
            payment_id,
            payment.amount,
            reversed_by,
            extra=_log_context(payment, "payment.reversed"),
        )
        self.sink.emit(
            build_event(
                "payment.reversed",
                subject=payment_id,
                data={
                    "loan_id": loan_id,
                    "amount": payment.amount,
                    "reversed_by": reversed_by,
                    "reason": reason,
                },
            )
        )
        return PaymentOutcome(payment, loan, warning)

    def approve_agent_request(
        self,
        request_type: str,
        payment_id: str,
        reason: str | None = None,
        new_amount: Any = None,
        new_payment_mode: str | None = None,
        new_location: dict | None = None,
        new_receipt_name: str | None = None,
    ) -> PaymentOutcome:
        """Apply an agent's reversal or edit request once a manager approves it."""
        if not payment_id:
            raise ValidationError("paymentId is required")
        if request_type == REQUEST_REVERSAL:
            return self.reverse_payment(payment_id, "manager", reason or "Approved by manager")
        if request_type == REQUEST_EDIT:
            return self.edit_payment(
                payment_id,
                amount=new_amount,
                payment_mode=new_payment_mode,
                location=new_location,
                receipt_name=new_receipt_name,
            )
        raise ValidationError("Invalid request type")

    def list_payments(
        self,
        start: date | None = None,
        end: date | None = None,
        include_reversed: bool = False,
    ) -> list[Payment]:
        """All payments made on days ``start`` through ``end``, newest first."""
        created_from, created_before = day_bounds(start, end)
        return self.store.list_payments(
            include_reversed=include_reversed,
            created_from=created_from,
            created_before=created_before,
        )

    def list_agent_payments(self, agent_id: str, include_reversed: bool = False) -> list[Payment]:
        """Payments collected by an agent, newest first."""
        return self.store.list_payments(agent_id=agent_id, include_reversed=include_reversed)
