"""Domain models for loan servicing."""

from loan_servicing.models.agent import Agent
from loan_servicing.models.base import Event, Location, new_id
from loan_servicing.models.borrower import Borrower
from loan_servicing.models.enums import (
    AgentStatus,
    ApprovalStatus,
    BorrowerStatus,
    Frequency,
    LoanStatus,
    PaymentMode,
    TaskPriority,
    TaskStatus,
)
from loan_servicing.models.loan import Loan
from loan_servicing.models.payment import Payment
from loan_servicing.models.task import DueInstallment, RepaymentTask, Task

__all__ = [
    "Agent",
    "AgentStatus",
    "ApprovalStatus",
    "Borrower",
    "BorrowerStatus",
    "DueInstallment",
    "Event",
    "Frequency",
    "Loan",
    "LoanStatus",
    "Location",
    "Payment",
    "PaymentMode",
    "RepaymentTask",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "new_id",
]
