"""Loan model."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from loan_servicing.models.enums import Frequency, LoanStatus


@dataclass
class Loan:
    """Loan contract.

    ``total_paid`` and ``remaining_amount`` are derived from the loan's
    payments and are only written by the reconciler.
    """

    loan_id: str
    borrower_id: str
    principal: Decimal  # Amount disbursed, fixed at creation
    created_at: datetime  # Anchor for the repayment schedule
    total_paid: Decimal = Decimal("0.00")
    remaining_amount: Decimal | None = None
    interest_rate_percent: Decimal | None = None
    tenure_months: int | None = None
    frequency: Frequency = Frequency.MONTHLY
    purpose: str | None = None
    assigned_agent: str | None = None  # Agent code
    status: LoanStatus = LoanStatus.PENDING
    manager_comment: str | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.remaining_amount is None:
            self.remaining_amount = self.principal - self.total_paid
