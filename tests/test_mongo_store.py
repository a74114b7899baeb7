"""Tests for the MongoDB store with a mocked database."""

from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from bson.decimal128 import Decimal128
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from loan_servicing.config import MongoConfig
from loan_servicing.exceptions import (
    EntityNotFoundError,
    InvalidEntityStateError,
    ReferentialIntegrityError,
    StoreError,
)
from loan_servicing.models import (
    Agent,
    Borrower,
    Loan,
    LoanStatus,
    Location,
    Payment,
    PaymentMode,
)
from loan_servicing.store.mongo import MongoStore, from_document, to_document


@pytest.fixture
def db() -> MagicMock:
    """Mock database whose item and attribute access return the same collection."""
    database = MagicMock()
    database.__getitem__.side_effect = lambda name: getattr(database, name)
    return database


@pytest.fixture
def mongo(db: MagicMock) -> MongoStore:
    return MongoStore(db)


@pytest.fixture
def loan() -> Loan:
    return Loan(
        loan_id="loan-001",
        borrower_id="borrower-001",
        principal=Decimal("1000.00"),
        created_at=datetime(2024, 1, 31, 11, 0),
        tenure_months=3,
        status=LoanStatus.ACTIVE,
    )


class TestDocumentCodec:
    """Tests for entity <-> document conversion."""

    def test_loan_document(self, loan: Loan) -> None:
        """Test ids, decimals and enums are stored in BSON-friendly form."""
        doc = to_document(loan)

        assert doc["_id"] == "loan-001"
        assert "loan_id" not in doc
        assert doc["principal"] == Decimal128("1000.00")
        assert doc["status"] == "active"
        assert doc["frequency"] == "monthly"

    def test_loan_round_trip(self, loan: Loan) -> None:
        """Test a stored loan decodes back to an equal entity."""
        assert from_document(Loan, to_document(loan)) == loan

    def test_payment_with_location(self) -> None:
        """Test nested dataclasses decode back to their type."""
        payment = Payment(
            payment_id="pay-1",
            loan_id="loan-001",
            borrower_id="borrower-001",
            agent_id="AG100001",
            amount=Decimal("250.50"),
            created_at=datetime(2024, 3, 1, 12, 0),
            payment_mode=PaymentMode.UPI,
            location=Location(latitude=9.93, longitude=78.12),
        )

        doc = to_document(payment)
        decoded = from_document(Payment, doc)

        assert doc["location"] == {"latitude": 9.93, "longitude": 78.12}
        assert decoded.location == Location(latitude=9.93, longitude=78.12)
        assert decoded.amount == Decimal("250.50")
        assert decoded.payment_mode == PaymentMode.UPI

    def test_date_stored_as_datetime(self) -> None:
        """Test date-only fields are stored as midnight datetimes and restored as dates."""
        borrower = Borrower(
            borrower_id="b-1",
            name="Asha",
            created_at=datetime(2024, 1, 1),
            date_of_birth=date(1990, 5, 17),
        )

        doc = to_document(borrower)

        assert doc["date_of_birth"] == datetime(1990, 5, 17)
        assert from_document(Borrower, doc).date_of_birth == date(1990, 5, 17)

    def test_unknown_keys_ignored(self, loan: Loan) -> None:
        """Test extra fields written by other tools do not break decoding."""
        doc = to_document(loan)
        doc["legacy_field"] = "x"

        assert from_document(Loan, doc).loan_id == "loan-001"


class TestMongoStoreReads:
    """Tests for lookups and listings."""

    def test_find_loan(self, mongo: MongoStore, db: MagicMock, loan: Loan) -> None:
        db.loans.find_one.return_value = to_document(loan)

        assert mongo.find_loan_by_id("loan-001") == loan
        db.loans.find_one.assert_called_once_with({"_id": "loan-001"})

    def test_find_missing(self, mongo: MongoStore, db: MagicMock) -> None:
        """Test a missing document raises EntityNotFoundError."""
        db.loans.find_one.return_value = None

        with pytest.raises(EntityNotFoundError):
            mongo.find_loan_by_id("nope")

    def test_driver_error_wrapped(self, mongo: MongoStore, db: MagicMock) -> None:
        """Test driver failures surface as StoreError."""
        db.loans.find_one.side_effect = ServerSelectionTimeoutError("no servers")

        with pytest.raises(StoreError, match="no servers"):
            mongo.find_loan_by_id("loan-001")

    def test_list_loans_query(self, mongo: MongoStore, db: MagicMock, loan: Loan) -> None:
        """Test status sets and agent filters become a Mongo query sorted newest first."""
        db.loans.find.return_value.sort.return_value = [to_document(loan)]

        result = mongo.list_loans(
            status=[LoanStatus.APPROVED, LoanStatus.ACTIVE], assigned_agent="AG100001"
        )

        assert result == [loan]
        db.loans.find.assert_called_once_with(
            {"status": {"$in": ["active", "approved"]}, "assigned_agent": "AG100001"}
        )
        db.loans.find.return_value.sort.assert_called_once_with("created_at", DESCENDING)

    def test_payments_by_loan_oldest_first(self, mongo: MongoStore, db: MagicMock) -> None:
        db.payments.find.return_value.sort.return_value = []

        mongo.find_payments_by_loan_id("loan-001")

        db.payments.find.assert_called_once_with({"loan_id": "loan-001"})
        db.payments.find.return_value.sort.assert_called_once_with("created_at", ASCENDING)

    def test_list_payments_query(self, mongo: MongoStore, db: MagicMock) -> None:
        """Test reversal and time range filters."""
        db.payments.find.return_value.sort.return_value = []
        start, end = datetime(2024, 3, 1), datetime(2024, 3, 2)

        mongo.list_payments(
            agent_id="AG100001", include_reversed=False, created_from=start, created_before=end
        )

        db.payments.find.assert_called_once_with(
            {
                "agent_id": "AG100001",
                "reversed": {"$ne": True},
                "created_at": {"$gte": start, "$lt": end},
            }
        )

    def test_find_agent_by_code(self, mongo: MongoStore, db: MagicMock) -> None:
        """Test agents are looked up through the code field, not _id."""
        agent = Agent(id="int-1", agent_id="AG100001", name="Ravi", created_at=datetime(2024, 1, 1))
        db.agents.find_one.return_value = to_document(agent)

        assert mongo.find_agent_by_code("AG100001") == agent
        db.agents.find_one.assert_called_once_with({"agent_id": "AG100001"})


class TestMongoStoreWrites:
    """Tests for inserts, updates and deletes."""

    def test_add_loan_requires_borrower(self, mongo: MongoStore, db: MagicMock, loan: Loan):
        """Test a loan for an unknown borrower is rejected before insert."""
        db.borrowers.count_documents.return_value = 0

        with pytest.raises(ReferentialIntegrityError):
            mongo.add_loan(loan)
        db.loans.insert_one.assert_not_called()

    def test_add_loan(self, mongo: MongoStore, db: MagicMock, loan: Loan) -> None:
        db.borrowers.count_documents.return_value = 1

        mongo.add_loan(loan)

        db.loans.insert_one.assert_called_once_with(to_document(loan))

    def test_duplicate_agent_code(self, mongo: MongoStore, db: MagicMock) -> None:
        """Test the unique index violation maps to InvalidEntityStateError."""
        db.agents.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")
        agent = Agent(id="int-2", agent_id="AG100001", name="Clone", created_at=datetime.now())

        with pytest.raises(InvalidEntityStateError, match="AG100001"):
            mongo.add_agent(agent)

    def test_update_loan(self, mongo: MongoStore, db: MagicMock, loan: Loan) -> None:
        """Test updates encode values and return the stored version."""
        doc = to_document(loan)
        doc.update(total_paid=Decimal128("400.00"), remaining_amount=Decimal128("600.00"))
        db.loans.find_one_and_update.return_value = doc

        updated = mongo.update_loan(
            "loan-001", total_paid=Decimal("400.00"), status=LoanStatus.ACTIVE
        )

        assert updated.total_paid == Decimal("400.00")
        assert updated.remaining_amount == Decimal("600.00")
        args, _ = db.loans.find_one_and_update.call_args
        assert args[1] == {"$set": {"total_paid": Decimal128("400.00"), "status": "active"}}

    def test_update_missing(self, mongo: MongoStore, db: MagicMock) -> None:
        db.payments.find_one_and_update.return_value = None

        with pytest.raises(EntityNotFoundError):
            mongo.update_payment("nope", reversed=True)

    def test_delete_cascade(self, mongo: MongoStore, db: MagicMock) -> None:
        """Test payments, loans and the borrower are removed."""
        db.borrowers.find_one.return_value = to_document(
            Borrower(borrower_id="b-1", name="Asha", created_at=datetime(2024, 1, 1))
        )
        db.loans.distinct.return_value = ["loan-1", "loan-2"]
        db.payments.delete_many.return_value.deleted_count = 5
        db.loans.delete_many.return_value.deleted_count = 2

        assert mongo.delete_borrower_cascade("b-1") == (2, 5)
        db.payments.delete_many.assert_called_once_with(
            {"$or": [{"borrower_id": "b-1"}, {"loan_id": {"$in": ["loan-1", "loan-2"]}}]}
        )
        db.borrowers.delete_one.assert_called_once_with({"_id": "b-1"})


class TestMongoStoreSetup:
    """Tests for connection and index setup."""

    def test_ensure_indexes(self, mongo: MongoStore, db: MagicMock) -> None:
        """Test agent codes get a unique index."""
        mongo.ensure_indexes()

        db.agents.create_index.assert_called_once_with([("agent_id", ASCENDING)], unique=True)

    @patch("loan_servicing.store.mongo.MongoClient")
    def test_from_config(self, mock_client_class: MagicMock) -> None:
        """Test the client is built from MongoConfig."""
        config = MongoConfig(uri="mongodb://db:27017", database="loans_test")

        store = MongoStore.from_config(config)

        mock_client_class.assert_called_once_with(
            "mongodb://db:27017", serverSelectionTimeoutMS=5000
        )
        mock_client_class.return_value.__getitem__.assert_called_once_with("loans_test")
        assert store.client is mock_client_class.return_value

    def test_from_config_without_uri(self) -> None:
        with pytest.raises(StoreError):
            MongoStore.from_config(MongoConfig())

    def test_close(self) -> None:
        client = MagicMock()

        MongoStore(MagicMock(), client=client).close()

        client.close.assert_called_once()
