"""Portfolio and agent reporting.

All collection totals skip reversed payments and are summed as ``Decimal``.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from loan_servicing.core.ledger import ZERO, collected_total, to_amount
from loan_servicing.models import AgentStatus, BorrowerStatus, LoanStatus, Payment
from loan_servicing.services.payments import day_bounds
from loan_servicing.store.base import DocumentStore

logger = logging.getLogger(__name__)

MIN_AGENT_TARGET = Decimal("100000")
TARGET_RATIO = Decimal("0.8")
RECENT_PAYMENTS = 10


def percent(part: Decimal | int, whole: Decimal | int) -> int:
    """Whole-number percentage rounded half up; 0 when ``whole`` is 0."""
    if not whole:
        return 0
    ratio = Decimal(part) / Decimal(whole) * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class PortfolioKpis:
    total_borrowers: int
    active_loans: int
    total_disbursed: Decimal
    repayments_this_month: Decimal


@dataclass
class AgentKpis:
    today_collections: Decimal
    today_payments_count: int
    active_borrowers: int
    pending_visits: int
    success_rate: int


@dataclass
class AgentPerformance:
    id: str
    name: str
    agent_id: str
    collected: Decimal
    target: Decimal
    borrowers: int
    success_rate: int
    status: AgentStatus
    total_disbursed: Decimal


@dataclass
class CollectionRecord:
    agent_id: str
    agent_name: str
    status: AgentStatus
    total_collections: Decimal
    today_collections: Decimal
    month_collections: Decimal
    total_payments: int
    today_payments: int
    month_payments: int
    assigned_borrowers: int
    recent_payments: list[Payment] = field(default_factory=list)
    filter_info: dict = field(default_factory=dict)


@dataclass
class TrendPoint:
    date: date
    collections: Decimal
    loans: int
    borrowers: int


class ReportService:
    """Read-only aggregates over the store."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.clock = clock

    def _day_windows(self) -> tuple[datetime, datetime, datetime, datetime]:
        """Start of today, start of tomorrow, start of this and next month."""
        today = datetime.combine(self.clock().date(), time.min)
        tomorrow = today + timedelta(days=1)
        month_start = today.replace(day=1)
        if month_start.month == 12:
            next_month = month_start.replace(year=month_start.year + 1, month=1)
        else:
            next_month = month_start.replace(month=month_start.month + 1)
        return today, tomorrow, month_start, next_month

    def _collected(
        self,
        agent_id: str | None,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> list[Payment]:
        return self.store.list_payments(
            agent_id=agent_id,
            include_reversed=False,
            created_from=created_from,
            created_before=created_before,
        )

    def portfolio_kpis(self) -> PortfolioKpis:
        """Headline numbers for the manager dashboard."""
        _, _, month_start, next_month = self._day_windows()
        loans = self.store.list_loans()
        disbursed = sum(
            (to_amount(loan.principal) for loan in loans if loan.status != LoanStatus.CANCELLED),
            ZERO,
        )
        return PortfolioKpis(
            total_borrowers=len(self.store.list_borrowers()),
            active_loans=sum(1 for loan in loans if loan.status == LoanStatus.ACTIVE),
            total_disbursed=disbursed,
            repayments_this_month=collected_total(self._collected(None, month_start, next_month)),
        )

    def agent_kpis(self, agent_id: str) -> AgentKpis:
        """Dashboard numbers for one agent.

        ``success_rate`` is this month's payment count over this month's new
        loans, capped at 100.
        """
        today, tomorrow, month_start, next_month = self._day_windows()
        today_payments = self._collected(agent_id, today, tomorrow)
        month_payments = self._collected(agent_id, month_start, next_month)
        loans = self.store.list_loans(assigned_agent=agent_id)
        month_loans = sum(1 for loan in loans if month_start <= loan.created_at < next_month)
        active_borrowers = sum(
            1
            for b in self.store.list_borrowers(assigned_agent=agent_id)
            if b.status == BorrowerStatus.ACTIVE
        )
        return AgentKpis(
            today_collections=collected_total(today_payments),
            today_payments_count=len(today_payments),
            active_borrowers=active_borrowers,
            pending_visits=sum(1 for loan in loans if loan.status == LoanStatus.ACTIVE),
            success_rate=min(percent(len(month_payments), month_loans), 100),
        )

    def team_performance(self) -> list[AgentPerformance]:
        """Collections against target for every agent.

        The target is 80% of the agent's disbursed principal, at least
        ``MIN_AGENT_TARGET``.
        """
        result = []
        for agent in self.store.list_agents():
            loans = self.store.list_loans(assigned_agent=agent.agent_id)
            disbursed = sum((to_amount(loan.principal) for loan in loans), ZERO)
            collected = collected_total(self._collected(agent.agent_id))
            target = max((disbursed * TARGET_RATIO).quantize(Decimal("0.01")), MIN_AGENT_TARGET)
            result.append(
                AgentPerformance(
                    id=agent.id,
                    name=agent.name,
                    agent_id=agent.agent_id,
                    collected=collected,
                    target=target,
                    borrowers=len({loan.borrower_id for loan in loans}),
                    success_rate=min(percent(collected, disbursed), 100),
                    status=agent.status,
                    total_disbursed=disbursed,
                )
            )
        logger.debug("Team performance computed for %d agents", len(result))
        return result

    def collection_records(
        self,
        start: date | None = None,
        end: date | None = None,
        agent_id: str | None = None,
    ) -> list[CollectionRecord]:
        """Per-agent collections for ``[start, end]``, highest total first.

        Today and month figures always refer to the current day and month,
        regardless of the filter.
        """
        today, tomorrow, month_start, next_month = self._day_windows()
        created_from, created_before = day_bounds(start, end)
        if agent_id:
            agents = [a for a in self.store.list_agents() if a.agent_id == agent_id]
        else:
            agents = self.store.list_agents()

        records = []
        for agent in agents:
            payments = self._collected(agent.agent_id, created_from, created_before)
            today_payments = self._collected(agent.agent_id, today, tomorrow)
            month_payments = self._collected(agent.agent_id, month_start, next_month)
            loans = self.store.list_loans(assigned_agent=agent.agent_id)
            records.append(
                CollectionRecord(
                    agent_id=agent.agent_id,
                    agent_name=agent.name,
                    status=agent.status,
                    total_collections=collected_total(payments),
                    today_collections=collected_total(today_payments),
                    month_collections=collected_total(month_payments),
                    total_payments=len(payments),
                    today_payments=len(today_payments),
                    month_payments=len(month_payments),
                    assigned_borrowers=len({loan.borrower_id for loan in loans}),
                    recent_payments=payments[:RECENT_PAYMENTS],
                    filter_info={"start_date": start, "end_date": end, "agent_id": agent_id},
                )
            )
        records.sort(key=lambda r: r.total_collections, reverse=True)
        return records

    def owner_trends(self, days: int = 7) -> list[TrendPoint]:
        """Daily collections, new loans and new borrowers over the last ``days`` days."""
        days = max(days, 1)
        today = self.clock().date()
        start = today - timedelta(days=days - 1)
        since = datetime.combine(start, time.min)

        points = {
            start + timedelta(days=i): TrendPoint(start + timedelta(days=i), ZERO, 0, 0)
            for i in range(days)
        }
        for payment in self._collected(None, created_from=since):
            point = points.get(payment.created_at.date())
            if point:
                point.collections += to_amount(payment.amount)
        for loan in self.store.list_loans():
            point = points.get(loan.created_at.date())
            if point:
                point.loans += 1
        for borrower in self.store.list_borrowers():
            point = points.get(borrower.created_at.date())
            if point:
                point.borrowers += 1
        return list(points.values())
