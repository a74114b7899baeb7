"""Kafka sink for streaming loan-servicing events to Kafka topics."""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from confluent_kafka import KafkaException, Producer

from loan_servicing.config import KafkaConfig
from loan_servicing.exceptions import SinkError
from loan_servicing.models import Event
from loan_servicing.sinks.base import EventSink
from loan_servicing.sinks.serialization import to_dict

logger = logging.getLogger(__name__)

# Entity prefix of the event type -> topic suffix
TOPICS = {
    "borrower": "borrowers",
    "loan": "loans",
    "payment": "payments",
}
FALLBACK_TOPIC = "events"


@dataclass
class ProducerStats:
    """Track producer delivery statistics."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0
    start_time: float | None = None
    end_time: float | None = None

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        total = self.delivered + self.failed
        return self.delivered / total if total > 0 else 0.0


class KafkaSink(EventSink):
    """Publish events to per-entity Kafka topics, keyed by subject.

    Parameters
    ----------
    config : KafkaConfig | str
        Producer configuration or bootstrap servers string.
    topic_prefix : str
        Prefix for topic names (``{prefix}.loans`` etc.).
    """

    def __init__(self, config: KafkaConfig | str, topic_prefix: str = "dev.loans") -> None:
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.topic_prefix = topic_prefix
        self.producer = self._create_producer()
        self.stats = ProducerStats(start_time=time.time())

    def _create_producer(self) -> Producer:
        """Create Kafka producer with configuration."""
        return Producer(self.config.to_dict())

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        """Handle delivery reports."""
        if err:
            self.stats.failed += 1
            logger.error("Delivery failed: %s", err)
        else:
            self.stats.delivered += 1
            logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def topic_for(self, event: Event) -> str:
        """Resolve the topic for an event type (``payment.reversed`` -> ``{prefix}.payments``)."""
        entity = event.event_type.split(".", 1)[0]
        return f"{self.topic_prefix}.{TOPICS.get(entity, FALLBACK_TOPIC)}"

    def emit(self, event: Event) -> None:
        """Send a single event."""
        topic = self.topic_for(event)
        value = json.dumps(to_dict(event), ensure_ascii=False, default=str).encode("utf-8")
        try:
            self.producer.produce(
                topic=topic,
                key=event.subject.encode("utf-8") if event.subject else None,
                value=value,
                callback=self._delivery_callback,
            )
        except (KafkaException, BufferError) as e:
            self.stats.failed += 1
            raise SinkError(f"Failed to publish {event.event_type} to {topic}: {e}") from e
        self.stats.sent += 1
        self.producer.poll(0)

    def flush(self, timeout: float = 30.0) -> None:
        """Flush pending messages."""
        self.producer.flush(timeout)

    def close(self) -> None:
        """Flush and close the producer."""
        self.flush()
        self.stats.end_time = time.time()
        logger.info(
            "Kafka sink closed: sent=%d, delivered=%d, failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )
