"""Loan and repayment history generators."""

import random
from datetime import datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from loan_servicing.core.ledger import to_amount
from loan_servicing.core.schedule import installment_dates
from loan_servicing.generators.base import BaseGenerator
from loan_servicing.models import (
    Borrower,
    Frequency,
    Loan,
    LoanStatus,
    Location,
    Payment,
    PaymentMode,
    new_id,
)


class LoanGenerator(BaseGenerator):
    """Generate monthly microloans for borrowers."""

    TENURES = [6, 9, 12, 18, 24]
    PURPOSES = [
        "Dairy livestock",
        "Tailoring business",
        "Kirana store stock",
        "Agriculture inputs",
        "Auto rickshaw",
        "Education",
        "Home repair",
    ]

    def generate(self, borrower: Borrower, created_at: datetime | None = None) -> Loan:
        """Generate an active loan disbursed on or after the borrower's onboarding."""
        created_at = created_at or borrower.created_at + timedelta(days=random.randint(1, 10))
        return Loan(
            loan_id=new_id(),
            borrower_id=borrower.borrower_id,
            principal=to_amount(random.randint(10, 200) * 1000),
            created_at=created_at,
            interest_rate_percent=Decimal(str(random.randint(120, 260) / 10)),
            tenure_months=random.choice(self.TENURES),
            frequency=Frequency.MONTHLY,
            purpose=random.choice(self.PURPOSES),
            assigned_agent=borrower.assigned_agent,
            status=LoanStatus.ACTIVE,
        )


class PaymentGenerator(BaseGenerator):
    """Generate repayment histories that follow a loan's monthly schedule.

    Parameters
    ----------
    seed : int | None
        Random seed for reproducibility.
    on_time_rate : float
        Probability that a due installment is collected.
    reversal_rate : float
        Probability that a collected payment was later reversed.
    """

    MODE_WEIGHTS = {
        PaymentMode.CASH: 0.65,
        PaymentMode.UPI: 0.30,
        PaymentMode.CHEQUE: 0.05,
    }

    def __init__(
        self,
        seed: int | None = None,
        on_time_rate: float = 0.85,
        reversal_rate: float = 0.02,
    ) -> None:
        super().__init__(seed)
        self.on_time_rate = on_time_rate
        self.reversal_rate = reversal_rate

    @staticmethod
    def installment_amount(loan: Loan) -> Decimal:
        """Equal principal share per installment, rounded to the rupee."""
        tenure = loan.tenure_months or 1
        return to_amount((loan.principal / tenure).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def generate_history(self, loan: Loan, agent_id: str, as_of: datetime) -> list[Payment]:
        """Payments collected for every installment due up to ``as_of``."""
        emi = self.installment_amount(loan)
        payments = []
        for sequence_number, due in installment_dates(loan):
            collected_at = datetime.combine(due, time(hour=random.randint(9, 18))) + timedelta(
                days=random.randint(0, 5)
            )
            if collected_at > as_of:
                break
            if random.random() > self.on_time_rate:
                continue
            reversed_ = random.random() < self.reversal_rate
            payments.append(
                Payment(
                    payment_id=new_id(),
                    loan_id=loan.loan_id,
                    borrower_id=loan.borrower_id,
                    agent_id=agent_id,
                    amount=emi,
                    created_at=collected_at,
                    payment_mode=random.choices(
                        list(self.MODE_WEIGHTS), weights=list(self.MODE_WEIGHTS.values()), k=1
                    )[0],
                    location=Location(
                        latitude=round(random.uniform(8.0, 30.0), 6),
                        longitude=round(random.uniform(70.0, 88.0), 6),
                    ),
                    receipt_name=f"receipt-{sequence_number:02d}.jpg",
                    reversed=reversed_,
                    reversed_at=collected_at + timedelta(days=1) if reversed_ else None,
                    reversed_by="manager" if reversed_ else None,
                    reversal_reason="Duplicate entry" if reversed_ else None,
                )
            )
        return payments
