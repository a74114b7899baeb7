"""Base models shared across entities."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime


def new_id() -> str:
    """Generate a new opaque entity identifier."""
    return uuid.uuid4().hex


@dataclass
class Location:
    """GPS coordinates captured at the point of collection."""

    latitude: float | None = None
    longitude: float | None = None


@dataclass
class Event:
    """Standard event envelope for domain events."""

    event_id: str
    event_type: str  # entity.action (e.g., payment.reversed)
    event_time: datetime
    source: str  # Service/system that generated
    subject: str  # Entity ID affected
    data: dict
    metadata: dict = field(default_factory=dict)
