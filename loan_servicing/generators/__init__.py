"""Sample-data generators."""

from loan_servicing.generators.agent import AgentGenerator
from loan_servicing.generators.base import BaseGenerator
from loan_servicing.generators.borrower import BorrowerGenerator
from loan_servicing.generators.loan import LoanGenerator, PaymentGenerator

__all__ = [
    "AgentGenerator",
    "BaseGenerator",
    "BorrowerGenerator",
    "LoanGenerator",
    "PaymentGenerator",
]
