"""Event sink interface and in-process implementations."""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from loan_servicing.models import Event

EVENT_SOURCE = "loan-servicing"


def build_event(
    event_type: str,
    subject: str,
    data: dict[str, Any],
    metadata: dict[str, Any] | None = None,
) -> Event:
    """Wrap a domain change in the standard event envelope."""
    return Event(
        event_id=uuid.uuid4().hex,
        event_type=event_type,
        event_time=datetime.now(timezone.utc),
        source=EVENT_SOURCE,
        subject=subject,
        data=data,
        metadata=metadata or {},
    )


class EventSink(ABC):
    """Destination for domain events emitted by mutation paths."""

    @abstractmethod
    def emit(self, event: Event) -> None:
        """Publish a single event."""

    def close(self) -> None:
        """Flush and release resources."""


class NullSink(EventSink):
    """Discard every event."""

    def emit(self, event: Event) -> None:
        pass


class MemorySink(EventSink):
    """Keep events in a list; useful for scripts and tests."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def emit(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[Event]:
        """Return the collected events of one type."""
        return [e for e in self.events if e.event_type == event_type]
