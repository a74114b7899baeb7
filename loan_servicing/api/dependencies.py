"""Service wiring shared by the app factory and the routes."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from fastapi import Request

from loan_servicing.core.reconciliation import Reconciler
from loan_servicing.services import (
    AgentService,
    BorrowerService,
    LoanService,
    PaymentService,
    ReportService,
    TaskService,
)
from loan_servicing.sinks.base import EventSink
from loan_servicing.store.base import DocumentStore


@dataclass
class Services:
    """Every service the routes call, built over one store and sink."""

    store: DocumentStore
    sink: EventSink
    reconciler: Reconciler
    borrowers: BorrowerService
    loans: LoanService
    agents: AgentService
    payments: PaymentService
    tasks: TaskService
    reports: ReportService

    @classmethod
    def build(
        cls,
        store: DocumentStore,
        sink: EventSink,
        clock: Callable[[], datetime] = datetime.now,
    ) -> "Services":
        reconciler = Reconciler(store, sink)
        loans = LoanService(store, reconciler, sink, clock=clock)
        return cls(
            store=store,
            sink=sink,
            reconciler=reconciler,
            borrowers=BorrowerService(store, loans, sink, clock=clock),
            loans=loans,
            agents=AgentService(store, clock=clock),
            payments=PaymentService(store, reconciler, sink, clock=clock),
            tasks=TaskService(store, clock=clock),
            reports=ReportService(store, clock=clock),
        )


def get_services(request: Request) -> Services:
    return request.app.state.services
