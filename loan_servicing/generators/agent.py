"""Field agent generator."""

import random
from datetime import datetime
from typing import Iterator

from loan_servicing.generators.base import BaseGenerator
from loan_servicing.models import Agent, AgentStatus, new_id


class AgentGenerator(BaseGenerator):
    """Generate field agents with unique ``AG`` codes."""

    STATUS_WEIGHTS = {
        AgentStatus.ACTIVE: 0.85,
        AgentStatus.ON_LEAVE: 0.10,
        AgentStatus.INACTIVE: 0.05,
    }

    def __init__(self, seed: int | None = None) -> None:
        super().__init__(seed)
        self._used_codes: set[str] = set()

    def _code(self) -> str:
        while True:
            code = f"AG{random.randint(100000, 999999)}"
            if code not in self._used_codes:
                self._used_codes.add(code)
                return code

    def generate(self, reference_date: datetime | None = None) -> Agent:
        """Generate an agent who joined within two years of ``reference_date``."""
        reference_date = reference_date or datetime.now()
        name = self.fake.name()
        return Agent(
            id=new_id(),
            agent_id=self._code(),
            name=name,
            created_at=self.days_before(reference_date, 30, 730),
            phone=self.mobile_number(),
            email=self.fake.email(),
            status=random.choices(
                list(self.STATUS_WEIGHTS), weights=list(self.STATUS_WEIGHTS.values()), k=1
            )[0],
        )

    def generate_batch(self, count: int) -> Iterator[Agent]:
        for _ in range(count):
            yield self.generate()
