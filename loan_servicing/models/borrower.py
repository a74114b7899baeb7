"""Borrower model."""

from dataclasses import dataclass
from datetime import date, datetime

from loan_servicing.models.enums import ApprovalStatus, BorrowerStatus


@dataclass
class Borrower:
    """Microfinance borrower."""

    borrower_id: str
    name: str
    created_at: datetime
    first_name: str = ""
    last_name: str = ""
    email: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None

    # Address
    address: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None

    assigned_agent: str | None = None  # Agent code, not internal id
    status: BorrowerStatus = BorrowerStatus.ACTIVE
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    updated_at: datetime | None = None

    @property
    def display_name(self) -> str:
        """Name shown to field agents."""
        full = f"{self.first_name} {self.last_name}".strip()
        return self.name or full or "Borrower"

    @property
    def location_address(self) -> str:
        """Comma-joined postal address, skipping blank parts."""
        parts = [self.address, self.city, self.state, self.pincode]
        return ", ".join(p for p in parts if p)
