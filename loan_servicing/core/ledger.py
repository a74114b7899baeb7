"""Loan balance arithmetic over a set of payments.

All amounts are ``Decimal`` values quantized to the currency's minor unit
so that repeated summation never drifts the way binary floats do.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from loan_servicing.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_amount(value: Any) -> Decimal:
    """Coerce a number or numeric string to a two-place ``Decimal``.

    Floats are converted through ``str`` to avoid carrying their binary
    representation error into the ledger.

    Raises
    ------
    ValidationError
        If the value is not numeric, not finite, or too large to hold to the cent.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount: {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
        if not amount.is_finite():
            raise ValidationError(f"Invalid amount: {value!r}")
        # Magnitudes beyond the context precision cannot be quantized
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid amount: {value!r}") from e


@dataclass(frozen=True)
class LedgerBalance:
    """Derived balance of a loan."""

    total_paid: Decimal
    remaining_amount: Decimal
    is_fully_paid: bool


def collected_total(payments: Iterable[Any]) -> Decimal:
    """Sum the amounts of payments that have not been reversed."""
    total = ZERO
    for payment in payments:
        if not payment.reversed:
            total += to_amount(payment.amount)
    return total


def reconcile(principal: Decimal, payments: Iterable[Any]) -> LedgerBalance:
    """Compute a loan's balance from its full payment history.

    Parameters
    ----------
    principal : Decimal
        Original loan principal.
    payments : Iterable
        Objects exposing ``amount`` and ``reversed``.

    Returns
    -------
    LedgerBalance
        ``total_paid`` is clamped to the principal, so an over-collected loan
        never reports a negative remaining balance.
    """
    principal = to_amount(principal)
    total_paid = min(collected_total(payments), principal)
    remaining = principal - total_paid
    return LedgerBalance(
        total_paid=total_paid,
        remaining_amount=remaining,
        is_fully_paid=remaining <= ZERO,
    )
