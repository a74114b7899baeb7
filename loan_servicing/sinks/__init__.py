"""Event sinks for domain events."""

from loan_servicing.config import ServiceConfig
from loan_servicing.sinks.base import EventSink, MemorySink, NullSink, build_event
from loan_servicing.sinks.console import LogSink


def create_sink(config: ServiceConfig) -> EventSink:
    """Build the event sink selected by ``config.events.sink``."""
    if config.events.sink == "kafka":
        from loan_servicing.sinks.kafka import KafkaSink

        return KafkaSink(config.kafka, topic_prefix=config.events.topic_prefix)
    if config.events.sink == "none":
        return NullSink()
    return LogSink()


__all__ = ["EventSink", "LogSink", "MemorySink", "NullSink", "build_event", "create_sink"]
