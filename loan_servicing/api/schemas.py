"""Request bodies for the manager API.

Clients send camelCase keys; snake_case is accepted as well.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, StrictBool
from pydantic.alias_generators import to_camel

from loan_servicing.models import AgentStatus, BorrowerStatus, Frequency


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class BorrowerFields(CamelModel):
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    assigned_agent: str | None = None


class BorrowerCreate(BorrowerFields):
    """New borrower, optionally with the loan being applied for."""

    phone_number: str | None = None
    loan_amount: Decimal | None = None
    interest_rate: Decimal | None = None
    tenure: int | None = None
    frequency: Frequency | None = None
    purpose: str | None = None


class BorrowerUpdate(BorrowerFields):
    status: BorrowerStatus | None = None


class BorrowerApproval(CamelModel):
    approved_by: str = "manager"


class BorrowerRejection(CamelModel):
    rejected_by: str = "manager"
    rejection_reason: str | None = None


class AgentCreate(CamelModel):
    name: str = ""
    agent_id: str | None = None
    phone: str | None = None
    email: str | None = None
    status: AgentStatus = AgentStatus.ACTIVE


class AgentLogin(CamelModel):
    mobile: str = ""
    agent_id: str = ""


class LoanReview(CamelModel):
    approved: StrictBool
    comment: str | None = None


class LoanCancel(CamelModel):
    reason: str | None = None


class LocationIn(CamelModel):
    latitude: float | None = None
    longitude: float | None = None


class PaymentCreate(CamelModel):
    borrower_id: str = ""
    agent_id: str = ""
    amount: Decimal | None = None
    loan_id: str | None = None
    payment_mode: str | None = None
    location: LocationIn | None = None
    receipt_name: str | None = None


class PaymentReverse(CamelModel):
    reversed_by: str = "manager"
    reason: str | None = None


class AgentRequestApproval(CamelModel):
    """Manager approval of an agent's reversal or edit request."""

    request_type: str
    payment_id: str = ""
    agent_id: str | None = None
    reason: str | None = None
    new_amount: Decimal | None = None
    new_payment_mode: str | None = None
    new_location: LocationIn | None = None
    new_receipt_name: str | None = None


class AgentRequestRejection(CamelModel):
    reason: str | None = None


class TaskCreate(CamelModel):
    title: str = ""
    agent_id: str = ""
    due_date: datetime | None = None
    description: str | None = None
    priority: str | None = None
    notes: str | None = None


class TaskStatusUpdate(CamelModel):
    status: str | None = None
    notes: str | None = None
