"""Tests for administrative loan operations."""

from decimal import Decimal

import pytest

from loan_servicing.exceptions import EntityNotFoundError, InvalidEntityStateError
from loan_servicing.models import LoanStatus
from loan_servicing.services import LoanService


@pytest.fixture
def service(store, reconciler, sink, clock) -> LoanService:
    return LoanService(store, reconciler, sink, clock=clock)


class TestReviewLoan:
    """Tests for manager approval of pending loans."""

    def test_approve(self, service, make_loan, sink, now) -> None:
        """Test approval sets status, comment and timestamp."""
        loan = make_loan(status=LoanStatus.PENDING)

        updated = service.review_loan(loan.loan_id, approved=True, comment="Documents verified")

        assert updated.status == LoanStatus.APPROVED
        assert updated.manager_comment == "Documents verified"
        assert updated.updated_at == now
        [event] = sink.of_type("loan.status_changed")
        assert event.subject == loan.loan_id
        assert event.data == {
            "from": LoanStatus.PENDING,
            "to": LoanStatus.APPROVED,
            "reason": "manager_review",
        }

    def test_reject_without_comment(self, service, make_loan) -> None:
        loan = make_loan(status=LoanStatus.PENDING)

        updated = service.review_loan(loan.loan_id, approved=False, comment="")

        assert updated.status == LoanStatus.REJECTED
        assert updated.manager_comment is None

    @pytest.mark.parametrize("status", [LoanStatus.ACTIVE, LoanStatus.PAID, LoanStatus.REJECTED])
    def test_only_pending_loans(self, service, make_loan, sink, status) -> None:
        """Test a decided loan cannot be reviewed again."""
        loan = make_loan(status=status)

        with pytest.raises(InvalidEntityStateError):
            service.review_loan(loan.loan_id, approved=True)
        assert service.get_loan(loan.loan_id).status == status
        assert sink.events == []

    def test_missing_loan(self, service) -> None:
        with pytest.raises(EntityNotFoundError):
            service.review_loan("nope", approved=True)


class TestCancelLoan:
    """Tests for loan cancellation."""

    def test_cancel_active(self, service, make_loan) -> None:
        loan = make_loan()

        updated = service.cancel_loan(loan.loan_id, reason="Borrower relocated")

        assert updated.status == LoanStatus.CANCELLED
        assert updated.manager_comment == "Borrower relocated"

    def test_cancel_twice(self, service, make_loan) -> None:
        """Test an already cancelled loan is rejected."""
        loan = make_loan(status=LoanStatus.CANCELLED)

        with pytest.raises(InvalidEntityStateError):
            service.cancel_loan(loan.loan_id)

    def test_cancelled_loan_keeps_status_on_reconcile(
        self, service, make_loan, make_payment
    ) -> None:
        """Test reconciliation does not reopen a cancelled loan with a balance."""
        loan = make_loan("1000")
        make_payment(loan, "200")
        service.cancel_loan(loan.loan_id)

        updated = service.reconcile_loan(loan.loan_id)

        assert updated.status == LoanStatus.CANCELLED
        assert updated.total_paid == Decimal("200.00")


class TestListing:
    """Tests for loan listings."""

    def test_filter_by_status(self, service, make_loan) -> None:
        pending = make_loan(status=LoanStatus.PENDING)
        make_loan(status=LoanStatus.ACTIVE)

        assert service.list_loans(LoanStatus.PENDING) == [pending]
        assert len(service.list_loans()) == 2

    def test_agent_loans(self, service, make_loan) -> None:
        """Test only loans assigned to the agent are listed."""
        mine = make_loan()
        make_loan(assigned_agent="AG999999")

        assert service.list_agent_loans("AG100001") == [mine]


class TestReconcileAgentLoans:
    """Tests for fixing every loan of an agent."""

    def test_repairs_stale_balances(self, service, store, make_loan, make_payment) -> None:
        """Test each of the agent's loans is brought in line with its payments."""
        first = make_loan("1000")
        second = make_loan("500")
        make_payment(first, "250")
        make_payment(second, "500")

        results = service.reconcile_agent_loans("AG100001")

        assert {loan.loan_id for loan in results} == {first.loan_id, second.loan_id}
        assert store.find_loan_by_id(first.loan_id).remaining_amount == Decimal("750.00")
        assert store.find_loan_by_id(second.loan_id).status == LoanStatus.PAID

    def test_other_agents_untouched(self, service, store, make_loan, make_payment) -> None:
        other = make_loan("1000", assigned_agent="AG999999")
        make_payment(other, "100")

        assert service.reconcile_agent_loans("AG100001") == []
        assert store.find_loan_by_id(other.loan_id).total_paid == Decimal("0")
