"""Log-backed event sink for development and single-node deployments."""

import json
import logging

from loan_servicing.models import Event
from loan_servicing.sinks.base import EventSink
from loan_servicing.sinks.serialization import to_dict

logger = logging.getLogger(__name__)


class LogSink(EventSink):
    """Write events to a logger, one JSON document per event."""

    def __init__(self, level: int = logging.INFO, pretty: bool = False) -> None:
        """Initialize log sink.

        Parameters
        ----------
        level : int
            Level the events are logged at.
        pretty : bool
            Pretty-print JSON output.
        """
        self.level = level
        self.pretty = pretty
        self._counts: dict[str, int] = {}

    def emit(self, event: Event) -> None:
        """Log a single event."""
        data = to_dict(event)
        if self.pretty:
            payload = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        else:
            payload = json.dumps(data, ensure_ascii=False, default=str)
        logger.log(self.level, "%s %s %s", event.event_type, event.subject, payload)
        self._counts[event.event_type] = self._counts.get(event.event_type, 0) + 1

    def close(self) -> None:
        """Log summary."""
        for event_type, count in self._counts.items():
            logger.info("Emitted %d %s events", count, event_type)
