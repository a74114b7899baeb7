"""Shared setup for the sample-data generators."""

import random
from abc import ABC
from datetime import datetime, timedelta

from faker import Faker


class BaseGenerator(ABC):
    """Base class for the agent, borrower, loan and payment generators.

    Names, addresses and pincodes come from Faker's Indian locale so that
    seeded field data looks like a microfinance branch's book. Seeding
    fixes both the Faker instance and the ``random`` module, which the
    generators use for amounts, dates and statuses.

    Parameters
    ----------
    seed : int | None
        Random seed for reproducibility.
    locale : str
        Faker locale (default ``en_IN``).
    """

    def __init__(self, seed: int | None = None, locale: str = "en_IN") -> None:
        self.fake = Faker(locale)
        if seed is not None:
            self.fake.seed_instance(seed)
            random.seed(seed)

    @staticmethod
    def mobile_number() -> str:
        """Ten-digit Indian mobile number starting with 6-9."""
        return f"{random.choice('6789')}{random.randint(0, 999_999_999):09d}"

    @staticmethod
    def days_before(reference_date: datetime, min_days: int, max_days: int) -> datetime:
        """A moment between ``min_days`` and ``max_days`` days before ``reference_date``."""
        return reference_date - timedelta(
            days=random.randint(min_days, max_days), minutes=random.randint(0, 600)
        )
