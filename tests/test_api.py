"""Tests for the HTTP API."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from loan_servicing.api import create_app
from loan_servicing.config import ServiceConfig
from loan_servicing.models import LoanStatus

API = "/api/manager"


@pytest.fixture
def client(store, sink, clock, agent, borrower) -> TestClient:
    app = create_app(ServiceConfig(), store=store, sink=sink, clock=clock)
    with TestClient(app) as client:
        yield client


class TestRoot:
    """Tests for the service endpoints."""

    def test_root(self, client) -> None:
        assert client.get("/").json() == {"message": "Loan servicing API running"}

    def test_health(self, client) -> None:
        body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["store"] == "InMemoryStore"
        assert body["counts"]["agents"] == 1


class TestBorrowerEndpoints:
    """Tests for borrower routes."""

    def test_create_with_loan(self, client) -> None:
        """Test camelCase input and output with amounts as strings."""
        response = client.post(
            f"{API}/borrowers",
            json={
                "firstName": "Kavya",
                "lastName": "Iyer",
                "phoneNumber": "9000000002",
                "assignedAgent": "AG100001",
                "loanAmount": 50000,
                "tenure": 12,
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Kavya Iyer"
        assert body["approvalStatus"] == "pending"
        assert body["loan"]["principal"] == "50000.00"
        assert body["loan"]["status"] == "pending"
        assert body["loan"]["tenureMonths"] == 12

    def test_legacy_path(self, client) -> None:
        response = client.post(f"{API}/borrower", json={"name": "Geeta"})

        assert response.status_code == 201
        assert response.json()["loan"] is None

    def test_get_with_loans(self, client, borrower, make_loan) -> None:
        loan = make_loan()

        body = client.get(f"{API}/borrowers/{borrower.borrower_id}").json()

        assert body["borrowerId"] == borrower.borrower_id
        assert [item["loanId"] for item in body["loans"]] == [loan.loan_id]

    def test_list_include_loans(self, client, make_loan) -> None:
        make_loan()

        [body] = client.get(f"{API}/borrowers", params={"include": "loans"}).json()

        assert len(body["loans"]) == 1

    def test_not_found(self, client) -> None:
        response = client.get(f"{API}/borrowers/nope")

        assert response.status_code == 404
        assert "not found" in response.json()["error"]

    def test_update(self, client, borrower) -> None:
        response = client.patch(
            f"{API}/borrowers/{borrower.borrower_id}",
            json={"city": "Chennai", "status": "inactive"},
        )

        assert response.status_code == 200
        assert response.json()["city"] == "Chennai"
        assert response.json()["status"] == "inactive"

    def test_update_invalid_status(self, client, borrower) -> None:
        """Test body validation failures map to 400."""
        response = client.patch(f"{API}/borrowers/{borrower.borrower_id}", json={"status": "gone"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"

    def test_create_with_oversized_loan(self, client, store) -> None:
        """Test an amount too large for the ledger is a 400, not a server error."""
        response = client.post(f"{API}/borrowers", json={"name": "Geeta", "loanAmount": "1e30"})

        assert response.status_code == 400
        assert "Invalid amount" in response.json()["error"]
        assert [b.name for b in store.list_borrowers()] == ["Lakshmi Devi"]

    def test_delete(self, client, borrower, make_loan, make_payment) -> None:
        make_payment(make_loan(), "100")

        body = client.delete(f"{API}/borrowers/{borrower.borrower_id}").json()

        assert body == {
            "message": "Borrower deleted successfully",
            "borrowerId": borrower.borrower_id,
            "loansDeleted": 1,
            "paymentsDeleted": 1,
        }

    def test_approval_flow(self, client) -> None:
        """Test a pending applicant is listed, approved and its loan activated."""
        created = client.post(
            f"{API}/borrowers", json={"name": "Farida", "loanAmount": "20000"}
        ).json()

        [pending] = client.get(f"{API}/borrower-approvals").json()
        assert pending["borrowerId"] == created["borrowerId"]
        assert pending["loan"]["loanId"] == created["loan"]["loanId"]

        response = client.post(f"{API}/borrower-approvals/{created['borrowerId']}/approve")
        assert response.status_code == 200
        assert response.json()["approvedBy"] == "manager"

        loan = client.get(f"{API}/loans/{created['loan']['loanId']}").json()
        assert loan["status"] == "active"

        again = client.post(
            f"{API}/borrower-approvals/{created['borrowerId']}/reject",
            json={"rejectionReason": "Duplicate"},
        )
        assert again.status_code == 400


class TestAgentEndpoints:
    """Tests for agent routes."""

    def test_create_and_login(self, client) -> None:
        created = client.post(
            f"{API}/agents", json={"name": "Priya", "agentId": "AG555555", "phone": "9000000004"}
        )
        assert created.status_code == 201

        response = client.post(
            f"{API}/auth/agent", json={"mobile": "9000000004", "agentId": "AG555555"}
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["agent"]["agentId"] == "AG555555"

    def test_duplicate_code(self, client) -> None:
        response = client.post(f"{API}/agents", json={"name": "Clone", "agentId": "AG100001"})

        assert response.status_code == 400

    def test_bad_login(self, client) -> None:
        response = client.post(
            f"{API}/auth/agent", json={"mobile": "0000000000", "agentId": "AG100001"}
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid credentials"}

    def test_repayment_tasks(self, client, make_loan) -> None:
        loan = make_loan()

        [task] = client.get(
            f"{API}/agent/AG100001/repayment-tasks-today", params={"force": "true"}
        ).json()

        assert task["taskId"] == f"{loan.loan_id}-2024-02-29"
        assert task["dueDate"] == "2024-02-29"

    def test_fix_loans(self, client, store, make_loan, make_payment) -> None:
        """Test stale cached balances are recomputed for the agent."""
        loan = make_loan("1000")
        make_payment(loan, "1000")

        body = client.post(f"{API}/agent/AG100001/fix-loans").json()

        assert body["message"] == "Fixed 1 loans"
        assert store.find_loan_by_id(loan.loan_id).status == LoanStatus.PAID

    def test_agent_kpis(self, client, make_loan, make_payment) -> None:
        make_payment(make_loan(), "100")

        body = client.get(f"{API}/agent/AG100001/kpis").json()

        assert body["todayCollections"] == "100.00"
        assert body["todayPaymentsCount"] == 1


class TestLoanEndpoints:
    """Tests for loan routes."""

    def test_review(self, client, make_loan) -> None:
        loan = make_loan(status=LoanStatus.PENDING)

        response = client.post(
            f"{API}/loans/{loan.loan_id}/approve", json={"approved": True, "comment": "OK"}
        )

        assert response.json() == {"id": loan.loan_id, "status": "approved", "managerComment": "OK"}

    def test_review_requires_boolean(self, client, make_loan) -> None:
        loan = make_loan(status=LoanStatus.PENDING)

        response = client.post(f"{API}/loans/{loan.loan_id}/approve", json={"approved": "yes"})

        assert response.status_code == 400

    def test_filter_by_status(self, client, make_loan) -> None:
        make_loan(status=LoanStatus.PENDING)
        make_loan()

        assert len(client.get(f"{API}/loans", params={"status": "pending"}).json()) == 1

    def test_cancel(self, client, make_loan) -> None:
        loan = make_loan()

        body = client.post(f"{API}/loans/{loan.loan_id}/cancel", json={"reason": "Moved"}).json()

        assert body["status"] == "cancelled"


class TestPaymentEndpoints:
    """Tests for payment routes."""

    def test_record_and_reverse(self, client, borrower, make_loan) -> None:
        """Test a recorded payment updates the loan and a reversal restores it."""
        loan = make_loan("1000")

        created = client.post(
            f"{API}/payments",
            json={
                "borrowerId": borrower.borrower_id,
                "agentId": "AG100001",
                "amount": 400,
                "paymentMode": "upi",
                "location": {"latitude": 9.93, "longitude": 78.12},
            },
        )
        assert created.status_code == 201
        payment = created.json()
        assert payment["amount"] == "400.00"
        assert payment["location"] == {"latitude": 9.93, "longitude": 78.12}
        assert client.get(f"{API}/loans/{loan.loan_id}").json()["remainingAmount"] == "600.00"

        reversed_ = client.post(f"{API}/payments/{payment['paymentId']}/reverse").json()
        assert reversed_["message"] == "Payment reversed successfully"
        assert reversed_["loan"]["remainingAmount"] == "1000.00"
        assert "warning" not in reversed_

        again = client.post(f"{API}/payments/{payment['paymentId']}/reverse")
        assert again.status_code == 400
        assert again.json() == {"error": "Payment already reversed"}

    def test_missing_amount(self, client, borrower) -> None:
        response = client.post(
            f"{API}/payments", json={"borrowerId": borrower.borrower_id, "agentId": "AG100001"}
        )

        assert response.status_code == 400

    def test_list_by_day(self, client, make_loan, make_payment) -> None:
        loan = make_loan()
        make_payment(loan, "100")
        make_payment(loan, "100", created_at=datetime(2024, 3, 1))

        body = client.get(
            f"{API}/payments", params={"startDate": "2024-03-15", "endDate": "2024-03-15"}
        ).json()

        assert len(body) == 1

    def test_approve_edit_request(self, client, make_loan, make_payment) -> None:
        loan = make_loan("1000")
        payment = make_payment(loan, "100")

        body = client.post(
            f"{API}/agent-requests/req-1/approve",
            json={"requestType": "edit", "paymentId": payment.payment_id, "newAmount": 250},
        ).json()

        assert body["requestId"] == "req-1"
        assert body["payment"]["amount"] == "250.00"
        assert body["loan"]["totalPaid"] == "250.00"

    def test_reject_request(self, client) -> None:
        body = client.post(f"{API}/agent-requests/req-2/reject", json={"reason": "No proof"}).json()

        assert body == {"message": "Request rejected", "requestId": "req-2", "reason": "No proof"}


class TestTaskEndpoints:
    """Tests for task routes."""

    def test_lifecycle(self, client) -> None:
        created = client.post(
            f"{API}/tasks",
            json={"title": "Verify KYC", "agentId": "AG100001", "dueDate": "2024-03-20T09:00:00"},
        )
        assert created.status_code == 201
        task_id = created.json()["taskId"]

        listed = client.get(f"{API}/tasks", params={"agentId": "AG100001"}).json()
        assert [t["taskId"] for t in listed] == [task_id]

        updated = client.patch(f"{API}/tasks/{task_id}", json={"status": "completed"}).json()
        assert updated["completedAt"] == "2024-03-15T10:30:00"

        deleted = client.delete(f"{API}/tasks/{task_id}")
        assert deleted.json() == {"message": "Task deleted successfully"}
        assert client.delete(f"{API}/tasks/{task_id}").status_code == 404

    def test_unknown_agent(self, client) -> None:
        """Test a referential failure maps to 400, not 404."""
        response = client.post(
            f"{API}/tasks",
            json={"title": "Visit", "agentId": "AG000000", "dueDate": "2024-03-20T09:00:00"},
        )

        assert response.status_code == 400
        assert "Available agents" in response.json()["error"]


class TestReportEndpoints:
    """Tests for report routes."""

    def test_kpis(self, client, make_loan, make_payment) -> None:
        make_payment(make_loan("1000"), "300")

        body = client.get(f"{API}/kpis").json()

        assert body == {
            "totalBorrowers": 1,
            "activeLoans": 1,
            "totalDisbursed": "1000.00",
            "repaymentsThisMonth": "300.00",
        }

    def test_team_performance(self, client) -> None:
        [row] = client.get(f"{API}/team-performance").json()

        assert row["agentId"] == "AG100001"
        assert row["target"] == "100000"

    def test_collection_records(self, client) -> None:
        [row] = client.get(f"{API}/collection-records", params={"agentId": "AG100001"}).json()

        assert row["filterInfo"]["agentId"] == "AG100001"

    def test_trends(self, client) -> None:
        body = client.get(f"{API}/owner/trends", params={"days": 2}).json()

        assert [p["date"] for p in body] == ["2024-03-14", "2024-03-15"]
