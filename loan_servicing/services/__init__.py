"""Application services behind the HTTP routes."""

from loan_servicing.services.agents import AgentService
from loan_servicing.services.borrowers import BorrowerDetails, BorrowerService
from loan_servicing.services.loans import LoanService
from loan_servicing.services.payments import PaymentOutcome, PaymentService
from loan_servicing.services.reports import ReportService
from loan_servicing.services.tasks import TaskService

__all__ = [
    "AgentService",
    "BorrowerDetails",
    "BorrowerService",
    "LoanService",
    "PaymentOutcome",
    "PaymentService",
    "ReportService",
    "TaskService",
]
