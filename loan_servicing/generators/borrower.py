"""Borrower generator."""

import random
from datetime import datetime, timedelta

from loan_servicing.generators.base import BaseGenerator
from loan_servicing.models import ApprovalStatus, Borrower, new_id


class BorrowerGenerator(BaseGenerator):
    """Generate microfinance borrowers with Indian names and addresses."""

    def generate(
        self,
        assigned_agent: str | None = None,
        approval_status: ApprovalStatus = ApprovalStatus.APPROVED,
        reference_date: datetime | None = None,
    ) -> Borrower:
        """Generate a borrower onboarded within the year before ``reference_date``.

        Parameters
        ----------
        assigned_agent : str | None
            Agent code the borrower is assigned to.
        approval_status : ApprovalStatus
            Onboarding decision to record.
        reference_date : datetime | None
            Defaults to now.

        Returns
        -------
        Borrower
            Generated borrower.
        """
        reference_date = reference_date or datetime.now()
        created_at = self.days_before(reference_date, 0, 365)
        first = self.fake.first_name()
        last = self.fake.last_name()
        approved = approval_status == ApprovalStatus.APPROVED
        return Borrower(
            borrower_id=new_id(),
            name=f"{first} {last}",
            created_at=created_at,
            first_name=first,
            last_name=last,
            email=self.fake.email() if random.random() < 0.6 else None,
            phone=self.mobile_number(),
            date_of_birth=self.fake.date_of_birth(minimum_age=21, maximum_age=65),
            address=self.fake.street_address(),
            city=self.fake.city(),
            state=self.fake.state(),
            pincode=self.fake.postcode(),
            assigned_agent=assigned_agent,
            approval_status=approval_status,
            approved_by="manager" if approved else None,
            approved_at=created_at + timedelta(days=1) if approved else None,
        )
