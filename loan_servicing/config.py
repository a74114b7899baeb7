"""Configuration management for loan-servicing."""

from dataclasses import dataclass, field
from typing import Any

from loan_servicing.exceptions import ConfigurationError

EVENT_SINKS = ("log", "kafka", "none")
LOG_FORMATS = ("standard", "json")


@dataclass
class MongoConfig:
    """MongoDB connection configuration."""

    uri: str | None = None
    database: str = "loan_servicing"
    server_selection_timeout_ms: int = 5000

    @property
    def enabled(self) -> bool:
        """Whether a MongoDB URI has been configured."""
        return bool(self.uri)


@dataclass
class KafkaConfig:
    """Kafka producer configuration."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    batch_size: int = 16384
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "batch.size": self.batch_size,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
        }


@dataclass
class EventsConfig:
    """Domain event emission configuration."""

    sink: str = "log"
    topic_prefix: str = "dev.loans"


@dataclass
class ServerConfig:
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class ServiceConfig:
    """Main configuration for loan-servicing."""

    mongo: MongoConfig = field(default_factory=MongoConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    events: EventsConfig = field(default_factory=EventsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: str = "INFO"
    log_format: str = "standard"
    silence_logs: bool = False
    seed: int | None = None

    def __post_init__(self) -> None:
        if self.events.sink not in EVENT_SINKS:
            raise ConfigurationError(
                f"Unknown event sink {self.events.sink!r}; expected one of {', '.join(EVENT_SINKS)}"
            )
        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError(
                f"Unknown log format {self.log_format!r}; expected one of {', '.join(LOG_FORMATS)}"
            )

    @property
    def effective_log_level(self) -> str:
        """Log level after applying ``silence_logs``."""
        if self.silence_logs and self.log_level.upper() in ("DEBUG", "INFO"):
            return "WARNING"
        return self.log_level

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Create config from environment variables."""
        import os

        mongo = MongoConfig(
            uri=os.getenv("MONGODB_URI") or None,
            database=os.getenv("MONGODB_DB", "loan_servicing"),
            server_selection_timeout_ms=_int_env("MONGODB_TIMEOUT_MS", "5000"),
        )

        kafka = KafkaConfig(
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            acks=os.getenv("KAFKA_ACKS", "all"),
        )

        events = EventsConfig(
            sink=os.getenv("EVENT_SINK", "log").lower(),
            topic_prefix=os.getenv("EVENT_TOPIC_PREFIX", "dev.loans"),
        )

        cors = os.getenv("CORS_ORIGINS")
        server = ServerConfig(
            host=os.getenv("HOST", "0.0.0.0"),
            port=_int_env("PORT", "5000"),
            cors_origins=[o.strip() for o in cors.split(",") if o.strip()] if cors else ["*"],
        )

        return cls(
            mongo=mongo,
            kafka=kafka,
            events=events,
            server=server,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard").lower(),
            silence_logs=os.getenv("SILENCE_LOGS", "false").lower() == "true",
            seed=_int_env("SEED", None),
        )


def _int_env(name: str, default: str | None) -> int | None:
    """Read an integer environment variable, raising ConfigurationError on junk."""
    import os

    raw = os.getenv(name) or default
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
