"""In-memory document store with referential integrity."""

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from loan_servicing.exceptions import (
    EntityNotFoundError,
    InvalidEntityStateError,
    ReferentialIntegrityError,
)
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
from loan_servicing.store.base import DocumentStore, status_set


def _newest_first(items: Iterable[Any]) -> list[Any]:
    return sorted(items, key=lambda item: item.created_at, reverse=True)


@dataclass
class InMemoryStore(DocumentStore):
    """In-memory store for servicing entities with relationship tracking."""

    # Primary entities
    borrowers: dict[str, Borrower] = field(default_factory=dict)
    loans: dict[str, Loan] = field(default_factory=dict)
    agents: dict[str, Agent] = field(default_factory=dict)
    payments: dict[str, Payment] = field(default_factory=dict)
    tasks: dict[str, Task] = field(default_factory=dict)

    # Relationship indexes
    _borrower_loans: dict[str, list[str]] = field(default_factory=dict)
    _loan_payments: dict[str, list[str]] = field(default_factory=dict)
    _agent_codes: dict[str, str] = field(default_factory=dict)  # agent code -> internal id

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    # Borrowers
    def add_borrower(self, borrower: Borrower) -> None:
        """Add a borrower to the store."""
        with self._lock:
            self.borrowers[borrower.borrower_id] = borrower
            self._borrower_loans.setdefault(borrower.borrower_id, [])

    def find_borrower_by_id(self, borrower_id: str) -> Borrower:
        """Get a borrower by id."""
        try:
            return self.borrowers[borrower_id]
        except KeyError:
            raise EntityNotFoundError(f"Borrower {borrower_id} not found") from None

    def update_borrower(self, borrower_id: str, **changes: Any) -> Borrower:
        """Apply changes to a borrower."""
        with self._lock:
            updated = replace(self.find_borrower_by_id(borrower_id), **changes)
            self.borrowers[borrower_id] = updated
            return updated

    def list_borrowers(
        self,
        assigned_agent: str | None = None,
        approval_status: ApprovalStatus | None = None,
    ) -> list[Borrower]:
        """List borrowers matching all given filters."""
        return _newest_first(
            b
            for b in list(self.borrowers.values())
            if (assigned_agent is None or b.assigned_agent == assigned_agent)
            and (approval_status is None or b.approval_status == approval_status)
        )

    def delete_borrower_cascade(self, borrower_id: str) -> tuple[int, int]:
        """Delete a borrower together with its loans and their payments."""
        with self._lock:
            self.find_borrower_by_id(borrower_id)
            loan_ids = self._borrower_loans.pop(borrower_id, [])

            payment_ids = {pid for lid in loan_ids for pid in self._loan_payments.pop(lid, [])}
            # Payments recorded against the borrower on another borrower's loan
            payment_ids.update(
                pid for pid, p in self.payments.items() if p.borrower_id == borrower_id
            )
            for pid in payment_ids:
                payment = self.payments.pop(pid)
                siblings = self._loan_payments.get(payment.loan_id)
                if siblings and pid in siblings:
                    siblings.remove(pid)
            for lid in loan_ids:
                del self.loans[lid]
            del self.borrowers[borrower_id]
            return len(loan_ids), len(payment_ids)

    # Loans
    def add_loan(self, loan: Loan) -> None:
        """Add a loan to the store."""
        with self._lock:
            if loan.borrower_id not in self.borrowers:
                raise ReferentialIntegrityError(f"Borrower {loan.borrower_id} not found")

            self.loans[loan.loan_id] = loan
            self._borrower_loans[loan.borrower_id].append(loan.loan_id)
            self._loan_payments[loan.loan_id] = []

    def find_loan_by_id(self, loan_id: str) -> Loan:
        """Get a loan by id."""
        try:
            return self.loans[loan_id]
        except KeyError:
            raise EntityNotFoundError(f"Loan {loan_id} not found") from None

    def update_loan(self, loan_id: str, **changes: Any) -> Loan:
        """Apply changes to a loan."""
        with self._lock:
            updated = replace(self.find_loan_by_id(loan_id), **changes)
            self.loans[loan_id] = updated
            return updated

    def list_loans(
        self,
        status: LoanStatus | Iterable[LoanStatus] | None = None,
        borrower_id: str | None = None,
        assigned_agent: str | None = None,
    ) -> list[Loan]:
        """List loans matching all given filters."""
        statuses = status_set(status)
        if borrower_id is not None:
            candidates = [self.loans[lid] for lid in self._borrower_loans.get(borrower_id, [])]
        else:
            candidates = list(self.loans.values())
        return _newest_first(
            loan
            for loan in candidates
            if (statuses is None or loan.status in statuses)
            and (assigned_agent is None or loan.assigned_agent == assigned_agent)
        )

    # Agents
    def add_agent(self, agent: Agent) -> None:
        """Add an agent and index its code."""
        with self._lock:
            if agent.agent_id in self._agent_codes:
                raise InvalidEntityStateError(f"Agent code {agent.agent_id} already exists")
            self.agents[agent.id] = agent
            self._agent_codes[agent.agent_id] = agent.id

    def find_agent_by_code(self, agent_id: str) -> Agent:
        """Get an agent by its external code."""
        internal_id = self._agent_codes.get(agent_id)
        if internal_id is None:
            raise EntityNotFoundError(f"Agent {agent_id} not found")
        return self.agents[internal_id]

    def list_agents(self) -> list[Agent]:
        """List all agents."""
        return _newest_first(list(self.agents.values()))

    # Payments
    def add_payment(self, payment: Payment) -> None:
        """Add a payment to the store."""
        with self._lock:
            if payment.loan_id not in self.loans:
                raise ReferentialIntegrityError(f"Loan {payment.loan_id} not found")
            if payment.borrower_id not in self.borrowers:
                raise ReferentialIntegrityError(f"Borrower {payment.borrower_id} not found")

            self.payments[payment.payment_id] = payment
            self._loan_payments[payment.loan_id].append(payment.payment_id)

    def find_payment_by_id(self, payment_id: str) -> Payment:
        """Get a payment by id."""
        try:
            return self.payments[payment_id]
        except KeyError:
            raise EntityNotFoundError(f"Payment {payment_id} not found") from None

    def update_payment(self, payment_id: str, **changes: Any) -> Payment:
        """Apply changes to a payment."""
        with self._lock:
            updated = replace(self.find_payment_by_id(payment_id), **changes)
            self.payments[payment_id] = updated
            return updated

    def find_payments_by_loan_id(self, loan_id: str) -> list[Payment]:
        """Get all payments for a loan, oldest first."""
        with self._lock:
            return [self.payments[pid] for pid in self._loan_payments.get(loan_id, [])]

    def list_payments(
        self,
        agent_id: str | None = None,
        include_reversed: bool = True,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> list[Payment]:
        """List payments matching all given filters."""
        return _newest_first(
            p
            for p in list(self.payments.values())
            if (agent_id is None or p.agent_id == agent_id)
            and (include_reversed or not p.reversed)
            and (created_from is None or p.created_at >= created_from)
            and (created_before is None or p.created_at < created_before)
        )

    # Tasks
    def add_task(self, task: Task) -> None:
        """Add a task to the store."""
        with self._lock:
            if task.agent_id not in self._agent_codes:
                raise ReferentialIntegrityError(f"Agent {task.agent_id} not found")
            self.tasks[task.task_id] = task

    def find_task_by_id(self, task_id: str) -> Task:
        """Get a task by id."""
        try:
            return self.tasks[task_id]
        except KeyError:
            raise EntityNotFoundError(f"Task {task_id} not found") from None

    def update_task(self, task_id: str, **changes: Any) -> Task:
        """Apply changes to a task."""
        with self._lock:
            updated = replace(self.find_task_by_id(task_id), **changes)
            self.tasks[task_id] = updated
            return updated

    def delete_task(self, task_id: str) -> Task:
        """Delete a task."""
        with self._lock:
            task = self.find_task_by_id(task_id)
            del self.tasks[task_id]
            return task

    def list_tasks(
        self,
        agent_id: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Task]:
        """List tasks matching all given filters."""
        return _newest_first(
            t
            for t in list(self.tasks.values())
            if (agent_id is None or t.agent_id == agent_id)
            and (status is None or t.status == status)
        )
