"""Tests for event and response serialization."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from loan_servicing.models import Location, Payment, PaymentMode
from loan_servicing.sinks.serialization import (
    camel_case,
    serialize_value,
    to_dict,
    to_json_dict,
)


@dataclass
class _Sample:
    loan_id: str
    remaining_amount: Decimal


class TestToDict:
    """Tests for to_dict."""

    def test_dataclass(self) -> None:
        assert to_dict(_Sample("loan-1", Decimal("10.50"))) == {
            "loan_id": "loan-1",
            "remaining_amount": "10.50",
        }

    def test_dict(self) -> None:
        assert to_dict({"when": date(2024, 3, 1)}) == {"when": "2024-03-01"}

    def test_other_type(self) -> None:
        assert to_dict(42) == {"value": "42"}


class TestSerializeValue:
    """Tests for serialize_value."""

    def test_decimal_keeps_scale(self) -> None:
        assert serialize_value(Decimal("100.00")) == "100.00"

    def test_datetime(self) -> None:
        assert serialize_value(datetime(2024, 3, 15, 10, 30)) == "2024-03-15T10:30:00"

    def test_enum(self) -> None:
        assert serialize_value(PaymentMode.UPI) == "upi"

    def test_nested(self) -> None:
        value = {"items": [Decimal("1.10"), {"at": date(2024, 1, 1)}]}

        assert serialize_value(value) == {"items": ["1.10", {"at": "2024-01-01"}]}

    def test_passthrough(self) -> None:
        assert serialize_value(None) is None
        assert serialize_value(3) == 3


class TestCamelCase:
    """Tests for camelCase key conversion."""

    def test_conversion(self) -> None:
        assert camel_case("interest_rate_percent") == "interestRatePercent"
        assert camel_case("status") == "status"

    def test_payment_json(self) -> None:
        """Test nested dataclasses and lists get camelCase keys too."""
        payment = Payment(
            payment_id="pay-1",
            loan_id="loan-1",
            borrower_id="b-1",
            agent_id="AG100001",
            amount=Decimal("250.00"),
            created_at=datetime(2024, 3, 15, 10, 30),
            location=Location(latitude=9.93, longitude=78.12),
        )

        [body] = to_json_dict([payment])

        assert body["paymentId"] == "pay-1"
        assert body["amount"] == "250.00"
        assert body["paymentMode"] == "cash"
        assert body["createdAt"] == "2024-03-15T10:30:00"
        assert body["location"] == {"latitude": 9.93, "longitude": 78.12}
        assert body["reversed"] is False

    def test_dict_keys(self) -> None:
        assert to_json_dict({"loans_deleted": 2}) == {"loansDeleted": 2}
