"""Document stores for servicing entities."""

from loan_servicing.config import ServiceConfig
from loan_servicing.store.base import DocumentStore
from loan_servicing.store.memory import InMemoryStore


def create_store(config: ServiceConfig) -> DocumentStore:
    """Use MongoDB when a URI is configured, otherwise keep data in memory."""
    if config.mongo.enabled:
        from loan_servicing.store.mongo import MongoStore

        return MongoStore.from_config(config.mongo)
    return InMemoryStore()


__all__ = ["DocumentStore", "InMemoryStore", "create_store"]
