"""Borrower onboarding, approval and cascade deletion."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from loan_servicing.core.ledger import ZERO, to_amount
from loan_servicing.exceptions import InvalidEntityStateError, ValidationError
from loan_servicing.models import (
    ApprovalStatus,
    Borrower,
    BorrowerStatus,
    Frequency,
    Loan,
    LoanStatus,
    new_id,
)
from loan_servicing.services.loans import LoanService
from loan_servicing.sinks.base import EventSink, NullSink, build_event
from loan_servicing.store.base import DocumentStore

logger = logging.getLogger(__name__)

# Fields a manager may change through update_borrower
UPDATABLE_FIELDS = (
    "name",
    "first_name",
    "last_name",
    "email",
    "phone",
    "date_of_birth",
    "address",
    "city",
    "state",
    "pincode",
    "assigned_agent",
    "status",
)


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def display_name_for(data: dict[str, Any]) -> str:
    """Pick a borrower name from the first non-blank candidate.

    Falls back through ``name``, ``"first last"``, ``first``, ``last``,
    ``phone`` and finally ``"Borrower"``.
    """
    first = _clean(data.get("first_name"))
    last = _clean(data.get("last_name"))
    phone = _clean(data.get("phone_number") or data.get("phone"))
    candidates = [
        _clean(data.get("name")),
        " ".join(p for p in (first, last) if p),
        first,
        last,
        phone,
    ]
    return next((c for c in candidates if c), "Borrower")


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid integer: {value!r}") from e


@dataclass
class BorrowerDetails:
    """A borrower together with its loans, newest first."""

    borrower: Borrower
    loans: list[Loan]


class BorrowerService:
    """Manage borrowers and the loans opened with them.

    Parameters
    ----------
    store : DocumentStore
        Backing store.
    loans : LoanService
        Performs the loan status changes that follow a borrower decision.
    sink : EventSink | None
        Receives ``borrower.created`` and ``borrower.deleted`` events.
    clock : Callable[[], datetime]
        Source of the current time.
    """

    def __init__(
        self,
        store: DocumentStore,
        loans: LoanService,
        sink: EventSink | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.loans = loans
        self.sink = sink or NullSink()
        self.clock = clock

    def create_borrower(self, data: dict[str, Any]) -> tuple[Borrower, Loan | None]:
        """Create a borrower and, when ``loan_amount`` is positive, a pending loan.

        Parameters
        ----------
        data : dict
            Snake-case borrower fields plus optional loan fields
            (``loan_amount``, ``interest_rate``, ``tenure``, ``frequency``,
            ``purpose``).

        Returns
        -------
        tuple[Borrower, Loan | None]
            The new borrower and the loan opened with it, if any.
        """
        now = self.clock()
        phone = _clean(data.get("phone_number") or data.get("phone"))
        borrower = Borrower(
            borrower_id=new_id(),
            name=display_name_for(data),
            created_at=now,
            first_name=_clean(data.get("first_name")),
            last_name=_clean(data.get("last_name")),
            email=_clean(data.get("email")) or None,
            phone=phone or None,
            date_of_birth=data.get("date_of_birth"),
            address=data.get("address"),
            city=data.get("city"),
            state=data.get("state"),
            pincode=data.get("pincode"),
            assigned_agent=data.get("assigned_agent"),
        )

        loan = None
        raw_amount = data.get("loan_amount")
        principal = to_amount(raw_amount) if raw_amount not in (None, "") else ZERO
        if principal > ZERO:
            rate = data.get("interest_rate")
            try:
                frequency = Frequency(data.get("frequency") or Frequency.MONTHLY)
            except ValueError as e:
                raise ValidationError(f"Invalid frequency: {data.get('frequency')!r}") from e
            loan = Loan(
                loan_id=new_id(),
                borrower_id=borrower.borrower_id,
                principal=principal,
                created_at=now,
                interest_rate_percent=to_amount(rate) if rate not in (None, "") else None,
                tenure_months=_optional_int(data.get("tenure")),
                frequency=frequency,
                purpose=data.get("purpose"),
                assigned_agent=borrower.assigned_agent,
                status=LoanStatus.PENDING,
            )

        # Loan terms are validated before anything is written
        self.store.add_borrower(borrower)
        if loan is not None:
            self.store.add_loan(loan)

        logger.info(
            "Created borrower %s (%s)%s",
            borrower.borrower_id,
            borrower.name,
            f" with loan {loan.loan_id} of {loan.principal}" if loan else "",
            extra={
                "event_type": "borrower.created",
                "borrower_id": borrower.borrower_id,
                "agent_id": borrower.assigned_agent,
                "loan_id": loan.loan_id if loan else None,
                "amount": loan.principal if loan else None,
            },
        )
        self.sink.emit(
            build_event(
                "borrower.created",
                subject=borrower.borrower_id,
                data={
                    "name": borrower.name,
                    "assigned_agent": borrower.assigned_agent,
                    "loan_id": loan.loan_id if loan else None,
                    "principal": loan.principal if loan else None,
                },
            )
        )
        return borrower, loan

    def list_borrowers(self, include_loans: bool = False) -> list[Borrower] | list[BorrowerDetails]:
        """List borrowers, newest first, optionally with their loans."""
        borrowers = self.store.list_borrowers()
        if not include_loans:
            return borrowers
        return [
            BorrowerDetails(b, self.store.list_loans(borrower_id=b.borrower_id)) for b in borrowers
        ]

    def get_borrower(self, borrower_id: str) -> BorrowerDetails:
        """Get a borrower with all its loans."""
        borrower = self.store.find_borrower_by_id(borrower_id)
        return BorrowerDetails(borrower, self.store.list_loans(borrower_id=borrower_id))

    def update_borrower(self, borrower_id: str, changes: dict[str, Any]) -> Borrower:
        """Apply whitelisted field changes; other keys are ignored."""
        safe = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        if "status" in safe:
            try:
                safe["status"] = BorrowerStatus(safe["status"])
            except ValueError as e:
                raise ValidationError(f"Invalid borrower status: {safe['status']!r}") from e
        if isinstance(safe.get("date_of_birth"), str):
            try:
                safe["date_of_birth"] = date.fromisoformat(safe["date_of_birth"][:10])
            except ValueError as e:
                raise ValidationError(f"Invalid date of birth: {safe['date_of_birth']!r}") from e
        safe["updated_at"] = self.clock()
        return self.store.update_borrower(borrower_id, **safe)

    def delete_borrower(self, borrower_id: str) -> tuple[int, int]:
        """Hard-delete a borrower with its loans and payments.

        Returns
        -------
        tuple[int, int]
            Number of loans and payments removed.
        """
        loans, payments = self.store.delete_borrower_cascade(borrower_id)
        logger.info(
            "Deleted borrower %s with %d loans and %d payments",
            borrower_id,
            loans,
            payments,
            extra={"event_type": "borrower.deleted", "borrower_id": borrower_id},
        )
        self.sink.emit(
            build_event(
                "borrower.deleted",
                subject=borrower_id,
                data={"loans_deleted": loans, "payments_deleted": payments},
            )
        )
        return loans, payments

    def list_pending_approvals(self) -> list[tuple[Borrower, Loan | None]]:
        """Pending borrowers paired with their most recent loan, if any."""
        pending = self.store.list_borrowers(approval_status=ApprovalStatus.PENDING)
        result = []
        for borrower in pending:
            loans = self.store.list_loans(borrower_id=borrower.borrower_id)
            result.append((borrower, loans[0] if loans else None))
        return result

    def _decide(self, borrower_id: str) -> Borrower:
        borrower = self.store.find_borrower_by_id(borrower_id)
        if borrower.approval_status != ApprovalStatus.PENDING:
            raise InvalidEntityStateError(
                f"Borrower is already {borrower.approval_status.value}"
            )
        return borrower

    def _move_pending_loans(self, borrower_id: str, status: LoanStatus) -> list[Loan]:
        return [
            self.loans.transition(
                loan.loan_id, status, reason="borrower_review", allowed_from=[LoanStatus.PENDING]
            )
            for loan in self.store.list_loans(status=LoanStatus.PENDING, borrower_id=borrower_id)
        ]

    def approve_borrower(self, borrower_id: str, approved_by: str = "manager") -> Borrower:
        """Approve a pending borrower and activate its pending loans."""
        self._decide(borrower_id)
        now = self.clock()
        borrower = self.store.update_borrower(
            borrower_id,
            approval_status=ApprovalStatus.APPROVED,
            approved_by=approved_by,
            approved_at=now,
            updated_at=now,
        )
        self._move_pending_loans(borrower_id, LoanStatus.ACTIVE)
        logger.info(
            "Borrower %s approved by %s",
            borrower_id,
            approved_by,
            extra={"borrower_id": borrower_id, "status": borrower.approval_status.value},
        )
        return borrower

    def reject_borrower(
        self,
        borrower_id: str,
        rejected_by: str = "manager",
        reason: str | None = None,
    ) -> Borrower:
        """Reject a pending borrower and its pending loans."""
        self._decide(borrower_id)
        now = self.clock()
        borrower = self.store.update_borrower(
            borrower_id,
            approval_status=ApprovalStatus.REJECTED,
            rejected_by=rejected_by,
            rejected_at=now,
            rejection_reason=reason or "Rejected by manager",
            updated_at=now,
        )
        self._move_pending_loans(borrower_id, LoanStatus.REJECTED)
        logger.info(
            "Borrower %s rejected by %s",
            borrower_id,
            rejected_by,
            extra={"borrower_id": borrower_id, "status": borrower.approval_status.value},
        )
        return borrower

    def list_agent_borrowers(self, agent_id: str) -> list[Borrower]:
        """Approved borrowers assigned to an agent."""
        return self.store.list_borrowers(
            assigned_agent=agent_id, approval_status=ApprovalStatus.APPROVED
        )
