"""MongoDB-backed document store."""

import logging
import typing
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import fields, is_dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar

from bson.decimal128 import Decimal128
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from loan_servicing.config import MongoConfig
from loan_servicing.exceptions import (
    EntityNotFoundError,
    InvalidEntityStateError,
    ReferentialIntegrityError,
    StoreError,
)
from loan_servicing.models import (
    Agent,
    ApprovalStatus,
    Borrower,
    Loan,
    LoanStatus,
    Payment,
    Task,
    TaskStatus,
)
from loan_servicing.store.base import DocumentStore, status_set

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Entity class -> (collection name, id field)
COLLECTIONS: dict[type, tuple[str, str]] = {
    Borrower: ("borrowers", "borrower_id"),
    Loan: ("loans", "loan_id"),
    Agent: ("agents", "id"),
    Payment: ("payments", "payment_id"),
    Task: ("tasks", "task_id"),
}


def encode_value(value: Any) -> Any:
    """Convert a Python value to its BSON-storable form."""
    if isinstance(value, Decimal):
        return Decimal128(value)
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, datetime):
        return value
    elif isinstance(value, date):
        # BSON has no date-only type
        return datetime.combine(value, time.min)
    elif is_dataclass(value) and not isinstance(value, type):
        return {f.name: encode_value(getattr(value, f.name)) for f in fields(value)}
    elif isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def decode_value(hint: Any, value: Any) -> Any:
    """Convert a stored BSON value back to the type named by ``hint``."""
    if value is None:
        return None
    args = typing.get_args(hint)
    if type(None) in args:
        hint = next(a for a in args if a is not type(None))

    if hint is Decimal:
        return value.to_decimal() if isinstance(value, Decimal128) else Decimal(str(value))
    if hint is date:
        return value.date() if isinstance(value, datetime) else value
    if isinstance(hint, type) and issubclass(hint, Enum):
        return hint(value)
    if is_dataclass(hint) and isinstance(value, dict):
        return from_fields(hint, value)
    return value


def from_fields(cls: type[T], data: dict[str, Any], id_field: str | None = None) -> T:
    """Build a dataclass from a stored mapping, ignoring unknown keys."""
    hints = typing.get_type_hints(cls)
    kwargs = {}
    for f in fields(cls):
        key = "_id" if f.name == id_field else f.name
        if key in data:
            kwargs[f.name] = decode_value(hints[f.name], data[key])
    return cls(**kwargs)


def to_document(entity: Any) -> dict[str, Any]:
    """Serialize an entity to a MongoDB document keyed by ``_id``."""
    _, id_field = COLLECTIONS[type(entity)]
    doc = encode_value(entity)
    doc["_id"] = doc.pop(id_field)
    return doc


def from_document(cls: type[T], doc: dict[str, Any]) -> T:
    """Deserialize a MongoDB document to an entity."""
    _, id_field = COLLECTIONS[cls]
    return from_fields(cls, doc, id_field=id_field)


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Re-raise driver failures as ``StoreError``."""
    try:
        yield
    except DuplicateKeyError as e:
        raise InvalidEntityStateError(f"{operation}: duplicate key") from e
    except PyMongoError as e:
        logger.error("MongoDB %s failed: %s", operation, e)
        raise StoreError(f"{operation} failed: {e}") from e


class MongoStore(DocumentStore):
    """Document store over a pymongo ``Database``.

    Parameters
    ----------
    database : Database
        Target database; one collection per entity type.
    client : MongoClient | None
        Owning client, closed by :meth:`close` when given.
    """

    def __init__(self, database: Database, client: MongoClient | None = None) -> None:
        self.db = database
        self.client = client

    @classmethod
    def from_config(cls, config: MongoConfig) -> "MongoStore":
        """Connect using a ``MongoConfig`` and ensure indexes."""
        if not config.uri:
            raise StoreError("MongoDB URI is not configured")
        client: MongoClient = MongoClient(
            config.uri,
            serverSelectionTimeoutMS=config.server_selection_timeout_ms,
        )
        store = cls(client[config.database], client=client)
        store.ensure_indexes()
        logger.info("MongoDB connected: database=%s", config.database)
        return store

    def ensure_indexes(self) -> None:
        """Create the agent-code unique index and foreign-key lookup indexes."""
        with translate_errors("create indexes"):
            self.db.agents.create_index([("agent_id", ASCENDING)], unique=True)
            self.db.loans.create_index([("borrower_id", ASCENDING)])
            self.db.loans.create_index([("assigned_agent", ASCENDING), ("status", ASCENDING)])
            self.db.payments.create_index([("loan_id", ASCENDING)])
            self.db.payments.create_index([("agent_id", ASCENDING), ("created_at", DESCENDING)])
            self.db.tasks.create_index([("agent_id", ASCENDING)])

    def _insert(self, entity: Any) -> None:
        collection, _ = COLLECTIONS[type(entity)]
        with translate_errors(f"insert into {collection}"):
            self.db[collection].insert_one(to_document(entity))

    def _find_one(self, cls: type[T], entity_id: str) -> T:
        collection, _ = COLLECTIONS[cls]
        with translate_errors(f"read {collection}"):
            doc = self.db[collection].find_one({"_id": entity_id})
        if doc is None:
            raise EntityNotFoundError(f"{cls.__name__} {entity_id} not found")
        return from_document(cls, doc)

    def _update(self, cls: type[T], entity_id: str, changes: dict[str, Any]) -> T:
        collection, _ = COLLECTIONS[cls]
        with translate_errors(f"update {collection}"):
            doc = self.db[collection].find_one_and_update(
                {"_id": entity_id},
                {"$set": encode_value(changes)},
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise EntityNotFoundError(f"{cls.__name__} {entity_id} not found")
        return from_document(cls, doc)

    def _find(
        self,
        cls: type[T],
        query: dict[str, Any],
        sort_field: str = "created_at",
        direction: int = DESCENDING,
    ) -> list[T]:
        collection, _ = COLLECTIONS[cls]
        with translate_errors(f"query {collection}"):
            docs = list(self.db[collection].find(query).sort(sort_field, direction))
        return [from_document(cls, doc) for doc in docs]

    def _exists(self, collection: str, query: dict[str, Any]) -> bool:
        with translate_errors(f"query {collection}"):
            return self.db[collection].count_documents(query, limit=1) > 0

    # Borrowers
    def add_borrower(self, borrower: Borrower) -> None:
        self._insert(borrower)

    def find_borrower_by_id(self, borrower_id: str) -> Borrower:
        return self._find_one(Borrower, borrower_id)

    def update_borrower(self, borrower_id: str, **changes: Any) -> Borrower:
        return self._update(Borrower, borrower_id, changes)

    def list_borrowers(
        self,
        assigned_agent: str | None = None,
        approval_status: ApprovalStatus | None = None,
    ) -> list[Borrower]:
        query: dict[str, Any] = {}
        if assigned_agent is not None:
            query["assigned_agent"] = assigned_agent
        if approval_status is not None:
            query["approval_status"] = ApprovalStatus(approval_status).value
        return self._find(Borrower, query)

    def delete_borrower_cascade(self, borrower_id: str) -> tuple[int, int]:
        """Delete a borrower, its loans and their payments.

        The three deletes are not wrapped in a transaction; a failure part way
        leaves orphans that a retry of the same call removes.
        """
        self.find_borrower_by_id(borrower_id)
        with translate_errors("delete borrower"):
            loan_ids = self.db.loans.distinct("_id", {"borrower_id": borrower_id})
            payments = self.db.payments.delete_many(
                {"$or": [{"borrower_id": borrower_id}, {"loan_id": {"$in": loan_ids}}]}
            )
            loans = self.db.loans.delete_many({"borrower_id": borrower_id})
            self.db.borrowers.delete_one({"_id": borrower_id})
        return loans.deleted_count, payments.deleted_count

    # Loans
    def add_loan(self, loan: Loan) -> None:
        if not self._exists("borrowers", {"_id": loan.borrower_id}):
            raise ReferentialIntegrityError(f"Borrower {loan.borrower_id} not found")
        self._insert(loan)

    def find_loan_by_id(self, loan_id: str) -> Loan:
        return self._find_one(Loan, loan_id)

    def update_loan(self, loan_id: str, **changes: Any) -> Loan:
        return self._update(Loan, loan_id, changes)

    def list_loans(
        self,
        status: LoanStatus | Iterable[LoanStatus] | None = None,
        borrower_id: str | None = None,
        assigned_agent: str | None = None,
    ) -> list[Loan]:
        query: dict[str, Any] = {}
        statuses = status_set(status)
        if statuses is not None:
            query["status"] = {"$in": sorted(s.value for s in statuses)}
        if borrower_id is not None:
            query["borrower_id"] = borrower_id
        if assigned_agent is not None:
            query["assigned_agent"] = assigned_agent
        return self._find(Loan, query)

    # Agents
    def add_agent(self, agent: Agent) -> None:
        try:
            self._insert(agent)
        except InvalidEntityStateError as e:
            raise InvalidEntityStateError(f"Agent code {agent.agent_id} already exists") from e

    def find_agent_by_code(self, agent_id: str) -> Agent:
        with translate_errors("read agents"):
            doc = self.db.agents.find_one({"agent_id": agent_id})
        if doc is None:
            raise EntityNotFoundError(f"Agent {agent_id} not found")
        return from_document(Agent, doc)

    def list_agents(self) -> list[Agent]:
        return self._find(Agent, {})

    # Payments
    def add_payment(self, payment: Payment) -> None:
        if not self._exists("loans", {"_id": payment.loan_id}):
            raise ReferentialIntegrityError(f"Loan {payment.loan_id} not found")
        self._insert(payment)

    def find_payment_by_id(self, payment_id: str) -> Payment:
        return self._find_one(Payment, payment_id)

    def update_payment(self, payment_id: str, **changes: Any) -> Payment:
        return self._update(Payment, payment_id, changes)

    def find_payments_by_loan_id(self, loan_id: str) -> list[Payment]:
        return self._find(Payment, {"loan_id": loan_id}, direction=ASCENDING)

    def list_payments(
        self,
        agent_id: str | None = None,
        include_reversed: bool = True,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> list[Payment]:
        query: dict[str, Any] = {}
        if agent_id is not None:
            query["agent_id"] = agent_id
        if not include_reversed:
            query["reversed"] = {"$ne": True}
        if created_from is not None or created_before is not None:
            query["created_at"] = {}
            if created_from is not None:
                query["created_at"]["$gte"] = created_from
            if created_before is not None:
                query["created_at"]["$lt"] = created_before
        return self._find(Payment, query)

    # Tasks
    def add_task(self, task: Task) -> None:
        if not self._exists("agents", {"agent_id": task.agent_id}):
            raise ReferentialIntegrityError(f"Agent {task.agent_id} not found")
        self._insert(task)

    def find_task_by_id(self, task_id: str) -> Task:
        return self._find_one(Task, task_id)

    def update_task(self, task_id: str, **changes: Any) -> Task:
        return self._update(Task, task_id, changes)

    def delete_task(self, task_id: str) -> Task:
        with translate_errors("delete task"):
            doc = self.db.tasks.find_one_and_delete({"_id": task_id})
        if doc is None:
            raise EntityNotFoundError(f"Task {task_id} not found")
        return from_document(Task, doc)

    def list_tasks(
        self,
        agent_id: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Task]:
        query: dict[str, Any] = {}
        if agent_id is not None:
            query["agent_id"] = agent_id
        if status is not None:
            query["status"] = TaskStatus(status).value
        return self._find(Task, query)

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
