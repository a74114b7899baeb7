"""Manager-assigned tasks and computed repayment visits."""

import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta
from decimal import Decimal
from urllib.parse import quote

from loan_servicing.core.schedule import installments_due_on
from loan_servicing.exceptions import (
    EntityNotFoundError,
    ReferentialIntegrityError,
    ValidationError,
)
from loan_servicing.models import (
    Borrower,
    DueInstallment,
    Loan,
    LoanStatus,
    RepaymentTask,
    Task,
    TaskPriority,
    TaskStatus,
    new_id,
)
from loan_servicing.store.base import DocumentStore

logger = logging.getLogger(__name__)

MAPS_URL = "https://maps.google.com?q={query}"

# Loans an agent still visits for collection
COLLECTIBLE_STATUSES = (LoanStatus.ACTIVE, LoanStatus.APPROVED)


def format_rupees(amount: Decimal) -> str:
    """Format an amount with thousands separators, dropping a zero fraction."""
    if amount == amount.to_integral_value():
        return f"₹{int(amount):,}"
    return f"₹{amount:,}"


def maps_url(address: str) -> str | None:
    if not address:
        return None
    return MAPS_URL.format(query=quote(address, safe="!*'()"))


def repayment_task(
    agent_id: str,
    loan: Loan,
    borrower: Borrower | None,
    installment: DueInstallment,
    today: date,
) -> RepaymentTask:
    """Build the collection-visit view of a due installment."""
    name = borrower.display_name if borrower else "Borrower"
    address = borrower.location_address if borrower else ""
    return RepaymentTask(
        task_id=installment.installment_id,
        agent_id=agent_id,
        loan_id=loan.loan_id,
        borrower_id=loan.borrower_id,
        title=f"Collect EMI from {name}",
        description=(
            f"Loan: {format_rupees(loan.principal)} • "
            f"EMI {installment.sequence_number}/{installment.tenure_months}"
        ),
        due_date=installment.due_date,
        created_at=today,
        sequence_number=installment.sequence_number,
        location_address=address,
        location_url=maps_url(address),
    )


class TaskService:
    """Assign tasks to agents and derive their daily repayment visits."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.clock = clock

    def create_task(
        self,
        title: str,
        agent_id: str,
        due_date: datetime | date | None,
        description: str | None = None,
        priority: TaskPriority | str | None = None,
        notes: str | None = None,
        assigned_by: str = "manager",
    ) -> Task:
        """Assign a task to an existing agent.

        Raises
        ------
        ValidationError
            If title, agent or due date is missing, or the priority is unknown.
        ReferentialIntegrityError
            If the agent does not exist.
        """
        if not title or not agent_id or not due_date:
            raise ValidationError("Title, agent ID, and due date are required")
        if not self.store.agent_code_exists(agent_id):
            available = ", ".join(a.agent_id for a in self.store.list_agents())
            raise ReferentialIntegrityError(f"Agent not found. Available agents: {available}")
        try:
            priority = TaskPriority(priority or TaskPriority.MEDIUM)
        except ValueError as e:
            raise ValidationError(f"Invalid priority: {priority!r}") from e
        if not isinstance(due_date, datetime):
            due_date = datetime.combine(due_date, datetime.min.time())

        task = Task(
            task_id=new_id(),
            title=title,
            agent_id=agent_id,
            assigned_by=assigned_by,
            due_date=due_date,
            created_at=self.clock(),
            description=description or "",
            priority=priority,
            notes=notes or "",
        )
        self.store.add_task(task)
        logger.info("Assigned task %s to agent %s", task.task_id, agent_id)
        return task

    def list_tasks(
        self,
        agent_id: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Task]:
        """List tasks, newest first."""
        return self.store.list_tasks(agent_id=agent_id, status=status)

    def list_agent_tasks(self, agent_id: str, status: TaskStatus | None = None) -> list[Task]:
        """An agent's tasks, soonest due first."""
        tasks = self.store.list_tasks(agent_id=agent_id, status=status)
        return sorted(tasks, key=lambda t: t.due_date)

    def update_task_status(
        self,
        task_id: str,
        status: TaskStatus | str | None,
        notes: str | None = None,
    ) -> Task:
        """Change a task's status; completing it stamps ``completed_at``."""
        if not status:
            raise ValidationError("Status is required")
        try:
            status = TaskStatus(status)
        except ValueError as e:
            raise ValidationError(f"Invalid task status: {status!r}") from e

        changes: dict = {"status": status}
        if status == TaskStatus.COMPLETED:
            changes["completed_at"] = self.clock()
        if notes:
            changes["notes"] = notes
        return self.store.update_task(task_id, **changes)

    def delete_task(self, task_id: str) -> Task:
        task = self.store.delete_task(task_id)
        logger.info("Deleted task %s", task_id)
        return task

    def repayment_tasks_today(
        self,
        agent_id: str,
        today: date | None = None,
        force: bool = False,
    ) -> list[RepaymentTask]:
        """Collection visits due today for an agent's active and approved loans.

        Each loan contributes at most its first installment due in the
        window. With ``force`` the window spans all time, so every loan with
        a schedule yields its first installment.

        Parameters
        ----------
        agent_id : str
            Agent code.
        today : date | None
            Day to compute for; defaults to the clock's date.
        force : bool
            Ignore the due date.
        """
        today = today or self.clock().date()
        if force:
            window_start, window_end = date.min, date.max
        else:
            window_start, window_end = today, today + timedelta(days=1)

        tasks = []
        for loan in self.store.list_loans(status=COLLECTIBLE_STATUSES, assigned_agent=agent_id):
            due = installments_due_on(loan, window_start, window_end)
            if not due:
                continue
            try:
                borrower = self.store.find_borrower_by_id(loan.borrower_id)
            except EntityNotFoundError:
                borrower = None
            tasks.append(repayment_task(agent_id, loan, borrower, due[0], today))

        logger.debug("Agent %s has %d repayment visits on %s", agent_id, len(tasks), today)
        return tasks
