"""Field agent registration and login."""

import logging
import random
from collections.abc import Callable
from datetime import datetime

from loan_servicing.exceptions import (
    AuthenticationError,
    InvalidEntityStateError,
    LoanServicingError,
    ValidationError,
)
from loan_servicing.models import Agent, AgentStatus, new_id
from loan_servicing.store.base import DocumentStore

logger = logging.getLogger(__name__)

CODE_PREFIX = "AG"
CODE_ATTEMPTS = 5


class AgentService:
    """Create, list and authenticate field agents.

    Parameters
    ----------
    store : DocumentStore
        Backing store.
    rng : random.Random | None
        Source of generated agent codes.
    clock : Callable[[], datetime]
        Source of the current time.
    """

    def __init__(
        self,
        store: DocumentStore,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.rng = rng or random.Random()
        self.clock = clock

    def generate_code(self) -> str:
        """Return an unused ``AG`` + 6 digit code.

        Raises
        ------
        LoanServicingError
            If no free code was found within ``CODE_ATTEMPTS`` tries.
        """
        for _ in range(CODE_ATTEMPTS):
            candidate = f"{CODE_PREFIX}{self.rng.randint(100000, 999999)}"
            if not self.store.agent_code_exists(candidate):
                return candidate
        raise LoanServicingError("Failed to generate unique agent code")

    def create_agent(
        self,
        name: str,
        agent_id: str | None = None,
        phone: str | None = None,
        email: str | None = None,
        status: AgentStatus | str = AgentStatus.ACTIVE,
    ) -> Agent:
        """Register an agent, generating its code when none is given."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required")
        try:
            status = AgentStatus(status or AgentStatus.ACTIVE)
        except ValueError as e:
            raise ValidationError(f"Invalid agent status: {status!r}") from e

        code = (agent_id or "").strip() or self.generate_code()
        if self.store.agent_code_exists(code):
            raise InvalidEntityStateError(f"Agent code {code} already exists")

        agent = Agent(
            id=new_id(),
            agent_id=code,
            name=name,
            created_at=self.clock(),
            phone=phone.strip() if phone else None,
            email=email or None,
            status=status,
        )
        self.store.add_agent(agent)
        logger.info("Created agent %s (%s)", agent.agent_id, agent.name)
        return agent

    def list_agents(self) -> list[Agent]:
        return self.store.list_agents()

    def get_agent(self, agent_id: str) -> Agent:
        return self.store.find_agent_by_code(agent_id)

    def authenticate(self, mobile: str, agent_id: str) -> Agent:
        """Log an agent in by phone number and agent code.

        This is a plain field match with no credential hashing.
        """
        mobile = str(mobile or "").strip()
        agent_id = str(agent_id or "").strip()
        if not mobile or not agent_id:
            raise ValidationError("Mobile number and Agent ID are required")

        if self.store.agent_code_exists(agent_id):
            agent = self.store.find_agent_by_code(agent_id)
            if agent.phone == mobile:
                logger.info("Agent %s logged in", agent_id)
                return agent
        logger.warning("Failed login for agent code %s", agent_id)
        raise AuthenticationError("Invalid credentials")
