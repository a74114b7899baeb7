"""Logging setup for the servicing API, the seed script and the services.

Loan and payment mutations attach their identifiers to log records through
``extra``::

    logger.info(
        "Reversed payment %s", payment_id,
        extra={"event_type": "payment.reversed", "loan_id": loan_id},
    )

Both formatters surface those fields, so a collection can be followed from
the payment write to the reconciled balance.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Record attributes surfaced by the formatters, in output order
CONTEXT_FIELDS = (
    "event_type",
    "loan_id",
    "borrower_id",
    "payment_id",
    "agent_id",
    "amount",
    "status",
)

# Driver loggers kept at WARNING regardless of the configured level
QUIET_LOGGERS = ("pymongo", "confluent_kafka", "uvicorn.access")


def log_context(record: logging.LogRecord) -> dict[str, Any]:
    """Servicing identifiers attached to ``record``, skipping unset ones."""
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class ContextFormatter(logging.Formatter):
    """Plain-text formatter that appends servicing identifiers as ``key=value``."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = log_context(record)
        if context:
            line += " | " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


class JsonFormatter(logging.Formatter):
    """One JSON document per record with servicing identifiers as top-level keys.

    Decimal amounts are written as strings so they keep their two places.
    """

    def format(self, record: logging.LogRecord) -> str:
        document: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        document.update(log_context(record))
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps(document, default=str)


def setup_logging(level: str = "INFO", format_type: str = "standard") -> logging.Handler:
    """Route all records to stdout with one handler.

    Parameters
    ----------
    level : str
        Log level name; unknown names fall back to INFO.
    format_type : str
        ``"standard"`` for text lines or ``"json"`` for one document per line.

    Returns
    -------
    logging.Handler
        The installed stdout handler.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JsonFormatter() if format_type == "json" else ContextFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    logging.getLogger("loan_servicing").setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
