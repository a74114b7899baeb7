"""Payment model."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from loan_servicing.models.base import Location
from loan_servicing.models.enums import PaymentMode


@dataclass
class Payment:
    """Repayment collected by a field agent.

    Reversed payments are kept for audit but excluded from loan balances.
    """

    payment_id: str
    loan_id: str
    borrower_id: str
    agent_id: str  # Agent code
    amount: Decimal
    created_at: datetime
    payment_mode: PaymentMode = PaymentMode.CASH
    location: Location | None = None
    receipt_name: str | None = None
    reversed: bool = False
    reversed_at: datetime | None = None
    reversed_by: str | None = None
    reversal_reason: str | None = None
    updated_at: datetime | None = None
