"""Pytest configuration and fixtures."""

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

import pytest

from loan_servicing.core.reconciliation import Reconciler
from loan_servicing.models import (
    Agent,
    ApprovalStatus,
    Borrower,
    Frequency,
    Loan,
    LoanStatus,
    Payment,
)
from loan_servicing.sinks import MemorySink
from loan_servicing.store import InMemoryStore

FIXED_NOW = datetime(2024, 3, 15, 10, 30)


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def now() -> datetime:
    """Fixed 'current time' shared by services under test."""
    return FIXED_NOW


@pytest.fixture
def clock(now: datetime) -> Callable[[], datetime]:
    return lambda: now


@pytest.fixture
def store() -> InMemoryStore:
    """Create a fresh store for each test."""
    return InMemoryStore()


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def reconciler(store: InMemoryStore, sink: MemorySink) -> Reconciler:
    return Reconciler(store, sink)


@pytest.fixture
def agent(store: InMemoryStore) -> Agent:
    """An agent registered in the store."""
    agent = Agent(
        id="agent-internal-001",
        agent_id="AG100001",
        name="Ravi Kumar",
        created_at=datetime(2023, 1, 10),
        phone="9876543210",
    )
    store.add_agent(agent)
    return agent


@pytest.fixture
def borrower(store: InMemoryStore, agent: Agent) -> Borrower:
    """An approved borrower assigned to ``agent``."""
    borrower = Borrower(
        borrower_id="borrower-001",
        name="Lakshmi Devi",
        created_at=datetime(2024, 1, 5, 9, 0),
        first_name="Lakshmi",
        last_name="Devi",
        phone="9123456780",
        address="12 Temple Street",
        city="Madurai",
        state="Tamil Nadu",
        pincode="625001",
        assigned_agent=agent.agent_id,
        approval_status=ApprovalStatus.APPROVED,
    )
    store.add_borrower(borrower)
    return borrower


@pytest.fixture
def make_loan(store: InMemoryStore, borrower: Borrower) -> Callable[..., Loan]:
    """Factory adding a loan for ``borrower`` to the store."""
    counter = iter(range(1, 1000))

    def _make(
        principal: str = "1000.00",
        status: LoanStatus = LoanStatus.ACTIVE,
        created_at: datetime = datetime(2024, 1, 31, 11, 0),
        tenure_months: int | None = 3,
        frequency: Frequency = Frequency.MONTHLY,
        **fields,
    ) -> Loan:
        loan = Loan(
            loan_id=fields.pop("loan_id", f"loan-{next(counter):03d}"),
            borrower_id=fields.pop("borrower_id", borrower.borrower_id),
            principal=Decimal(principal),
            created_at=created_at,
            tenure_months=tenure_months,
            frequency=frequency,
            status=status,
            assigned_agent=fields.pop("assigned_agent", borrower.assigned_agent),
            **fields,
        )
        store.add_loan(loan)
        return loan

    return _make


@pytest.fixture
def make_payment(store: InMemoryStore, agent: Agent) -> Callable[..., Payment]:
    """Factory adding a payment against a loan to the store."""
    counter = iter(range(1, 1000))

    def _make(loan: Loan, amount: str, reversed: bool = False, **fields) -> Payment:
        payment = Payment(
            payment_id=fields.pop("payment_id", f"pay-{next(counter):03d}"),
            loan_id=loan.loan_id,
            borrower_id=loan.borrower_id,
            agent_id=fields.pop("agent_id", agent.agent_id),
            amount=Decimal(amount),
            created_at=fields.pop("created_at", FIXED_NOW),
            reversed=reversed,
            **fields,
        )
        store.add_payment(payment)
        return payment

    return _make
