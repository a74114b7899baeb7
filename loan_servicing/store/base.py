"""Document store interface."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from loan_servicing.exceptions import EntityNotFoundError
from loan_servicing.models import (
    Agent,
    ApprovalStatus,
    Borrower,
    Loan,
    LoanStatus,
    Payment,
    Task,
    TaskStatus,
)


def status_set(status: LoanStatus | Iterable[LoanStatus] | None) -> set[LoanStatus] | None:
    """Normalize a single status or a collection of statuses to a set."""
    if status is None:
        return None
    if isinstance(status, LoanStatus):
        return {status}
    return {LoanStatus(s) for s in status}


class DocumentStore(ABC):
    """Persistence for borrowers, loans, agents, payments and tasks.

    Lookups by id raise ``EntityNotFoundError``; writes that reference a
    missing parent raise ``ReferentialIntegrityError``; backend failures
    raise ``StoreError``. Listings are ordered newest first unless noted.
    """

    # Borrowers
    @abstractmethod
    def add_borrower(self, borrower: Borrower) -> None:
        """Add a borrower."""

    @abstractmethod
    def find_borrower_by_id(self, borrower_id: str) -> Borrower:
        """Get a borrower by id."""

    @abstractmethod
    def update_borrower(self, borrower_id: str, **changes: Any) -> Borrower:
        """Apply field changes to a borrower and return the new version."""

    @abstractmethod
    def list_borrowers(
        self,
        assigned_agent: str | None = None,
        approval_status: ApprovalStatus | None = None,
    ) -> list[Borrower]:
        """List borrowers matching all given filters."""

    @abstractmethod
    def delete_borrower_cascade(self, borrower_id: str) -> tuple[int, int]:
        """Hard-delete a borrower with its loans and payments.

        Returns
        -------
        tuple[int, int]
            Number of loans and payments deleted.
        """

    # Loans
    @abstractmethod
    def add_loan(self, loan: Loan) -> None:
        """Add a loan; its borrower must exist."""

    @abstractmethod
    def find_loan_by_id(self, loan_id: str) -> Loan:
        """Get a loan by id."""

    @abstractmethod
    def update_loan(self, loan_id: str, **changes: Any) -> Loan:
        """Apply field changes to a loan and return the new version."""

    @abstractmethod
    def list_loans(
        self,
        status: LoanStatus | Iterable[LoanStatus] | None = None,
        borrower_id: str | None = None,
        assigned_agent: str | None = None,
    ) -> list[Loan]:
        """List loans matching all given filters."""

    # Agents
    @abstractmethod
    def add_agent(self, agent: Agent) -> None:
        """Add an agent; its code must be unique."""

    @abstractmethod
    def find_agent_by_code(self, agent_id: str) -> Agent:
        """Get an agent through the agent-code index."""

    @abstractmethod
    def list_agents(self) -> list[Agent]:
        """List all agents."""

    def agent_code_exists(self, agent_id: str) -> bool:
        """Whether an agent with this code exists."""
        try:
            self.find_agent_by_code(agent_id)
        except EntityNotFoundError:
            return False
        return True

    # Payments
    @abstractmethod
    def add_payment(self, payment: Payment) -> None:
        """Add a payment; its loan must exist."""

    @abstractmethod
    def find_payment_by_id(self, payment_id: str) -> Payment:
        """Get a payment by id."""

    @abstractmethod
    def update_payment(self, payment_id: str, **changes: Any) -> Payment:
        """Apply field changes to a payment and return the new version."""

    @abstractmethod
    def find_payments_by_loan_id(self, loan_id: str) -> list[Payment]:
        """All payments of a loan, reversed ones included, oldest first."""

    @abstractmethod
    def list_payments(
        self,
        agent_id: str | None = None,
        include_reversed: bool = True,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> list[Payment]:
        """List payments in ``[created_from, created_before)``."""

    # Tasks
    @abstractmethod
    def add_task(self, task: Task) -> None:
        """Add a task."""

    @abstractmethod
    def find_task_by_id(self, task_id: str) -> Task:
        """Get a task by id."""

    @abstractmethod
    def update_task(self, task_id: str, **changes: Any) -> Task:
        """Apply field changes to a task and return the new version."""

    @abstractmethod
    def delete_task(self, task_id: str) -> Task:
        """Delete a task and return it."""

    @abstractmethod
    def list_tasks(
        self,
        agent_id: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Task]:
        """List tasks matching all given filters."""

    def close(self) -> None:
        """Release backend resources."""

    def summary(self) -> dict[str, int]:
        """Return summary counts of all entities."""
        return {
            "borrowers": len(self.list_borrowers()),
            "loans": len(self.list_loans()),
            "agents": len(self.list_agents()),
            "payments": len(self.list_payments()),
            "tasks": len(self.list_tasks()),
        }
