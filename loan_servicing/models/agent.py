"""Field agent model."""

from dataclasses import dataclass
from datetime import datetime

from loan_servicing.models.enums import AgentStatus


@dataclass
class Agent:
    """Field agent collecting repayments."""

    id: str
    agent_id: str  # Unique external code (e.g. AG123456)
    name: str
    created_at: datetime
    phone: str | None = None
    email: str | None = None
    status: AgentStatus = AgentStatus.ACTIVE
