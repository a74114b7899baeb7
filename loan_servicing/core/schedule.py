"""Monthly repayment schedule derivation."""

import calendar
from datetime import date, datetime
from typing import Iterator

from loan_servicing.models import DueInstallment, Frequency, Loan


def add_months(anchor: date, months: int) -> date:
    """Advance a date by calendar months, clamping to the month's last day.

    >>> add_months(date(2024, 1, 31), 1)
    datetime.date(2024, 2, 29)
    """
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor.day, last_day))


def _as_date(value: date | datetime) -> date:
    """Reduce a datetime, naive or aware, to its calendar day."""
    if isinstance(value, datetime):
        return value.date()
    return value


def installment_dates(loan: Loan) -> Iterator[tuple[int, date]]:
    """Yield ``(sequence_number, due_date)`` for every installment of a loan.

    Only monthly loans with a positive tenure have a schedule; daily and
    weekly cadences yield nothing.
    """
    if loan.frequency != Frequency.MONTHLY or not loan.tenure_months or loan.tenure_months <= 0:
        return
    anchor = _as_date(loan.created_at)
    for i in range(1, loan.tenure_months + 1):
        yield i, add_months(anchor, i)


def installments_due_on(
    loan: Loan,
    window_start: date | datetime,
    window_end: date | datetime,
) -> list[DueInstallment]:
    """Return the first installment of ``loan`` due in ``[window_start, window_end)``.

    At most one installment is returned per loan, so a borrower with several
    missed installments surfaces only the earliest one matching the window.
    Installments fall due on calendar days, so datetime bounds, naive or
    timezone-aware, are compared by their date.

    Parameters
    ----------
    loan : Loan
        Loan whose schedule is anchored on ``created_at``.
    window_start : date | datetime
        Inclusive lower bound.
    window_end : date | datetime
        Exclusive upper bound.

    Returns
    -------
    list[DueInstallment]
        Empty, or a single computed installment.
    """
    start = _as_date(window_start)
    end = _as_date(window_end)
    for sequence_number, due in installment_dates(loan):
        if start <= due < end:
            return [
                DueInstallment(
                    installment_id=f"{loan.loan_id}-{due.isoformat()}",
                    loan_id=loan.loan_id,
                    sequence_number=sequence_number,
                    due_date=due,
                    tenure_months=loan.tenure_months or 0,
                )
            ]
    return []


due_installments = installments_due_on
