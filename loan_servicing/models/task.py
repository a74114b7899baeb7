"""Task models: assigned tasks and computed repayment visits."""

from dataclasses import dataclass
from datetime import date, datetime

from loan_servicing.models.enums import TaskPriority, TaskStatus


@dataclass
class Task:
    """Task assigned to an agent by a manager."""

    task_id: str
    title: str
    agent_id: str
    assigned_by: str
    due_date: datetime
    created_at: datetime
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    completed_at: datetime | None = None
    notes: str = ""


@dataclass
class DueInstallment:
    """An installment of a loan's schedule that falls due in a window.

    Never persisted; recomputed on every query.
    """

    installment_id: str  # "{loan_id}-{YYYY-MM-DD}"
    loan_id: str
    sequence_number: int  # 1, 2, 3, ...
    due_date: date
    tenure_months: int


@dataclass
class RepaymentTask:
    """Collection visit derived from a due installment."""

    task_id: str
    agent_id: str
    loan_id: str
    borrower_id: str
    title: str
    description: str
    due_date: date
    created_at: date
    sequence_number: int
    status: TaskStatus = TaskStatus.PENDING
    location_address: str = ""
    location_url: str | None = None
