"""Manager and agent endpoints under ``/api/manager``.

Responses are camelCase JSON with amounts serialized as strings.
"""

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query

from loan_servicing.api.dependencies import Services, get_services
from loan_servicing.api.schemas import (
    AgentCreate,
    AgentLogin,
    AgentRequestApproval,
    AgentRequestRejection,
    BorrowerApproval,
    BorrowerCreate,
    BorrowerRejection,
    BorrowerUpdate,
    LoanCancel,
    LoanReview,
    PaymentCreate,
    PaymentReverse,
    TaskCreate,
    TaskStatusUpdate,
)
from loan_servicing.models import LoanStatus, TaskStatus
from loan_servicing.services import BorrowerDetails, PaymentOutcome
from loan_servicing.sinks.serialization import to_json_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/manager", tags=["manager"])


def _with_loans(details: BorrowerDetails) -> dict[str, Any]:
    return {**to_json_dict(details.borrower), "loans": to_json_dict(details.loans)}


def _outcome(message: str, outcome: PaymentOutcome) -> dict[str, Any]:
    body = {
        "message": message,
        "payment": to_json_dict(outcome.payment),
        "loan": to_json_dict(outcome.loan) if outcome.loan else None,
    }
    if outcome.warning:
        body["warning"] = outcome.warning
    return body


# Borrowers


@router.get("/borrowers")
def list_borrowers(
    include: str = "",
    services: Services = Depends(get_services),
) -> list:
    if include == "loans":
        return [_with_loans(d) for d in services.borrowers.list_borrowers(include_loans=True)]
    return to_json_dict(services.borrowers.list_borrowers())


@router.post("/borrowers", status_code=201)
@router.post("/borrower", status_code=201, include_in_schema=False)
def create_borrower(body: BorrowerCreate, services: Services = Depends(get_services)) -> dict:
    borrower, loan = services.borrowers.create_borrower(body.model_dump())
    return {**to_json_dict(borrower), "loan": to_json_dict(loan) if loan else None}


@router.get("/borrowers/{borrower_id}")
def get_borrower(borrower_id: str, services: Services = Depends(get_services)) -> dict:
    return _with_loans(services.borrowers.get_borrower(borrower_id))


@router.patch("/borrowers/{borrower_id}")
def update_borrower(
    borrower_id: str,
    body: BorrowerUpdate,
    services: Services = Depends(get_services),
) -> dict:
    changes = body.model_dump(exclude_unset=True)
    return to_json_dict(services.borrowers.update_borrower(borrower_id, changes))


@router.delete("/borrowers/{borrower_id}")
def delete_borrower(borrower_id: str, services: Services = Depends(get_services)) -> dict:
    loans, payments = services.borrowers.delete_borrower(borrower_id)
    return {
        "message": "Borrower deleted successfully",
        "borrowerId": borrower_id,
        "loansDeleted": loans,
        "paymentsDeleted": payments,
    }


@router.get("/borrower-approvals")
def list_borrower_approvals(services: Services = Depends(get_services)) -> list:
    return [
        {**to_json_dict(borrower), "loan": to_json_dict(loan) if loan else None}
        for borrower, loan in services.borrowers.list_pending_approvals()
    ]


@router.post("/borrower-approvals/{borrower_id}/approve")
def approve_borrower(
    borrower_id: str,
    body: BorrowerApproval | None = None,
    services: Services = Depends(get_services),
) -> dict:
    body = body or BorrowerApproval()
    borrower = services.borrowers.approve_borrower(borrower_id, body.approved_by)
    return {
        "message": "Borrower approved successfully",
        "borrowerId": borrower_id,
        "approvedBy": borrower.approved_by,
        "approvedAt": to_json_dict(borrower.approved_at),
    }


@router.post("/borrower-approvals/{borrower_id}/reject")
def reject_borrower(
    borrower_id: str,
    body: BorrowerRejection | None = None,
    services: Services = Depends(get_services),
) -> dict:
    body = body or BorrowerRejection()
    borrower = services.borrowers.reject_borrower(
        borrower_id, body.rejected_by, body.rejection_reason
    )
    return {
        "message": "Borrower rejected successfully",
        "borrowerId": borrower_id,
        "rejectedBy": borrower.rejected_by,
        "rejectedAt": to_json_dict(borrower.rejected_at),
        "rejectionReason": borrower.rejection_reason,
    }


# Agents


@router.post("/agents", status_code=201)
def create_agent(body: AgentCreate, services: Services = Depends(get_services)) -> dict:
    agent = services.agents.create_agent(
        body.name, body.agent_id, phone=body.phone, email=body.email, status=body.status
    )
    return to_json_dict(agent)


@router.get("/agents")
def list_agents(services: Services = Depends(get_services)) -> list:
    return to_json_dict(services.agents.list_agents())


@router.post("/auth/agent")
def login_agent(body: AgentLogin, services: Services = Depends(get_services)) -> dict:
    agent = services.agents.authenticate(body.mobile, body.agent_id)
    return {"success": True, "agent": to_json_dict(agent), "message": "Login successful"}


@router.get("/agent/{agent_id}/borrowers")
def list_agent_borrowers(agent_id: str, services: Services = Depends(get_services)) -> list:
    return to_json_dict(services.borrowers.list_agent_borrowers(agent_id))


@router.get("/agent/{agent_id}/loans")
def list_agent_loans(agent_id: str, services: Services = Depends(get_services)) -> list:
    return to_json_dict(services.loans.list_agent_loans(agent_id))


@router.post("/agent/{agent_id}/fix-loans")
def fix_agent_loans(agent_id: str, services: Services = Depends(get_services)) -> dict:
    loans = services.loans.reconcile_agent_loans(agent_id)
    return {"message": f"Fixed {len(loans)} loans", "loans": to_json_dict(loans)}


@router.get("/agent/{agent_id}/repayment-tasks-today")
def repayment_tasks_today(
    agent_id: str,
    force: bool = False,
    services: Services = Depends(get_services),
) -> list:
    return to_json_dict(services.tasks.repayment_tasks_today(agent_id, force=force))


@router.get("/agent/{agent_id}/payments")
def list_agent_payments(
    agent_id: str,
    include_reversed: bool = Query(False, alias="includeReversed"),
    services: Services = Depends(get_services),
) -> list:
    return to_json_dict(services.payments.list_agent_payments(agent_id, include_reversed))


@router.get("/agent/{agent_id}/kpis")
def agent_kpis(agent_id: str, services: Services = Depends(get_services)) -> dict:
    return to_json_dict(services.reports.agent_kpis(agent_id))


@router.get("/agent/{agent_id}/tasks")
def list_agent_tasks(
    agent_id: str,
    status: TaskStatus | None = None,
    services: Services = Depends(get_services),
) -> list:
    return to_json_dict(services.tasks.list_agent_tasks(agent_id, status))


# Loans


@router.get("/loans")
def list_loans(
    status: LoanStatus | None = None,
    services: Services = Depends(get_services),
) -> list:
    return to_json_dict(services.loans.list_loans(status))


@router.get("/loans/{loan_id}")
def get_loan(loan_id: str, services: Services = Depends(get_services)) -> dict:
    return to_json_dict(services.loans.get_loan(loan_id))


@router.post("/loans/{loan_id}/approve")
def review_loan(
    loan_id: str,
    body: LoanReview,
    services: Services = Depends(get_services),
) -> dict:
    loan = services.loans.review_loan(loan_id, body.approved, body.comment)
    return {"id": loan.loan_id, "status": loan.status.value, "managerComment": loan.manager_comment}


@router.post("/loans/{loan_id}/cancel")
def cancel_loan(
    loan_id: str,
    body: LoanCancel | None = None,
    services: Services = Depends(get_services),
) -> dict:
    reason = body.reason if body else None
    return to_json_dict(services.loans.cancel_loan(loan_id, reason))


@router.post("/loans/{loan_id}/reconcile")
def reconcile_loan(loan_id: str, services: Services = Depends(get_services)) -> dict:
    return to_json_dict(services.loans.reconcile_loan(loan_id))


# Payments


@router.post("/payments", status_code=201)
def record_payment(body: PaymentCreate, services: Services = Depends(get_services)) -> dict:
    outcome = services.payments.record_payment(
        borrower_id=body.borrower_id,
        agent_id=body.agent_id,
        amount=body.amount,
        loan_id=body.loan_id,
        payment_mode=body.payment_mode,
        location=body.location.model_dump() if body.location else None,
        receipt_name=body.receipt_name,
    )
    return to_json_dict(outcome.payment)


@router.get("/payments")
def list_payments(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    include_reversed: bool = Query(False, alias="includeReversed"),
    services: Services = Depends(get_services),
) -> list:
    return to_json_dict(services.payments.list_payments(start_date, end_date, include_reversed))


@router.post("/payments/{payment_id}/reverse")
def reverse_payment(
    payment_id: str,
    body: PaymentReverse | None = None,
    services: Services = Depends(get_services),
) -> dict:
    body = body or PaymentReverse()
    outcome = services.payments.reverse_payment(payment_id, body.reversed_by, body.reason)
    return _outcome("Payment reversed successfully", outcome)


@router.post("/agent-requests/{request_id}/approve")
def approve_agent_request(
    request_id: str,
    body: AgentRequestApproval,
    services: Services = Depends(get_services),
) -> dict:
    logger.info("Approving agent request %s (%s)", request_id, body.request_type)
    outcome = services.payments.approve_agent_request(
        body.request_type,
        body.payment_id,
        reason=body.reason,
        new_amount=body.new_amount,
        new_payment_mode=body.new_payment_mode,
        new_location=body.new_location.model_dump() if body.new_location else None,
        new_receipt_name=body.new_receipt_name,
    )
    label = "reversal" if body.request_type == "reversal" else "edit"
    return {**_outcome(f"Payment {label} approved successfully", outcome), "requestId": request_id}


@router.post("/agent-requests/{request_id}/reject")
def reject_agent_request(
    request_id: str,
    body: AgentRequestRejection | None = None,
    services: Services = Depends(get_services),
) -> dict:
    reason = body.reason if body else None
    logger.info("Rejected agent request %s: %s", request_id, reason)
    return {"message": "Request rejected", "requestId": request_id, "reason": reason}


# Tasks


@router.post("/tasks", status_code=201)
def create_task(body: TaskCreate, services: Services = Depends(get_services)) -> dict:
    task = services.tasks.create_task(
        body.title,
        body.agent_id,
        body.due_date,
        description=body.description,
        priority=body.priority,
        notes=body.notes,
    )
    return to_json_dict(task)


@router.get("/tasks")
def list_tasks(
    agent_id: str | None = Query(None, alias="agentId"),
    status: TaskStatus | None = None,
    services: Services = Depends(get_services),
) -> list:
    return to_json_dict(services.tasks.list_tasks(agent_id, status))


@router.patch("/tasks/{task_id}")
def update_task(
    task_id: str,
    body: TaskStatusUpdate,
    services: Services = Depends(get_services),
) -> dict:
    return to_json_dict(services.tasks.update_task_status(task_id, body.status, body.notes))


@router.delete("/tasks/{task_id}")
def delete_task(task_id: str, services: Services = Depends(get_services)) -> dict:
    services.tasks.delete_task(task_id)
    return {"message": "Task deleted successfully"}


# Reports


@router.get("/kpis")
def portfolio_kpis(services: Services = Depends(get_services)) -> dict:
    return to_json_dict(services.reports.portfolio_kpis())


@router.get("/team-performance")
def team_performance(services: Services = Depends(get_services)) -> list:
    return to_json_dict(services.reports.team_performance())


@router.get("/collection-records")
def collection_records(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    agent_id: str | None = Query(None, alias="agentId"),
    services: Services = Depends(get_services),
) -> list:
    return to_json_dict(services.reports.collection_records(start_date, end_date, agent_id))


@router.get("/owner/trends")
def owner_trends(days: int = 7, services: Services = Depends(get_services)) -> list:
    return to_json_dict(services.reports.owner_trends(days))
