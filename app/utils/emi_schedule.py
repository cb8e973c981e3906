"""
EMI schedule generation and status projection.

Everything here is a pure function of (plan definition, ledger snapshot,
current time). Nothing is persisted: installment status, paid amounts,
overdue count, completion percentage and next due installment are
recomputed on every read.

Allocation policy is strictly sequential. Payments beyond the down payment
fill installment 1 first, then 2, and so on; a later installment never
receives credit while an earlier one is underfunded.
"""

import math
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel

from app.core.exceptions import InvalidInputError
from app.models.base import as_utc
from app.models.emi_plan import (
    EMIFrequency,
    Installment,
    InstallmentStatus,
    MAX_INSTALLMENTS,
    MIN_INSTALLMENTS,
)

MIN_INTERVAL_DAYS = 1
MAX_INTERVAL_DAYS = 365

_FIXED_DAY_INTERVALS = {
    EMIFrequency.WEEKLY: 7,
    EMIFrequency.BI_WEEKLY: 14,
}
_MONTH_INTERVALS = {
    EMIFrequency.MONTHLY: 1,
    EMIFrequency.QUARTERLY: 3,
}


class InstallmentProgress(BaseModel):
    """An installment with its live-derived payment state."""
    installment_number: int
    amount: float
    due_date: datetime
    status: InstallmentStatus
    paid_amount: float = 0
    paid_date: Optional[datetime] = None


class PlanProgress(BaseModel):
    installments: List[InstallmentProgress]
    overdue_count: int
    completion_percentage: int
    next_due: Optional[InstallmentProgress] = None


def validate_installment_count(count: int) -> None:
    if not isinstance(count, int) or isinstance(count, bool) or not (
        MIN_INSTALLMENTS <= count <= MAX_INSTALLMENTS
    ):
        raise InvalidInputError(
            f"Number of installments must be between {MIN_INSTALLMENTS} and {MAX_INSTALLMENTS}",
            {"numberOfInstallments": count}
        )


def validate_interval_days(frequency: EMIFrequency, interval_days: Optional[int]) -> Optional[int]:
    """Custom plans need a day interval; other frequencies ignore it."""
    if frequency != EMIFrequency.CUSTOM:
        return None
    if interval_days is None or isinstance(interval_days, bool) or not (
        MIN_INTERVAL_DAYS <= interval_days <= MAX_INTERVAL_DAYS
    ):
        raise InvalidInputError(
            f"Custom frequency requires intervalDays between {MIN_INTERVAL_DAYS} and {MAX_INTERVAL_DAYS}",
            {"intervalDays": interval_days}
        )
    return interval_days


def due_date_for(
    start_date: datetime,
    frequency: EMIFrequency,
    installment_number: int,
    interval_days: Optional[int] = None
) -> datetime:
    """start + installment_number x interval. Months are calendar months."""
    if frequency in _FIXED_DAY_INTERVALS:
        return start_date + timedelta(days=_FIXED_DAY_INTERVALS[frequency] * installment_number)
    if frequency in _MONTH_INTERVALS:
        return start_date + relativedelta(months=_MONTH_INTERVALS[frequency] * installment_number)
    return start_date + timedelta(days=interval_days * installment_number)


def split_installments(remaining_amount: float, count: int) -> List[float]:
    """
    Split into `count` whole-number installments; the final one absorbs the
    remainder so the amounts sum to `remaining_amount` exactly.

    >>> split_installments(10000, 3)
    [3333, 3333, 3334]
    """
    validate_installment_count(count)
    base = math.floor(remaining_amount / count)
    if base <= 0:
        raise InvalidInputError(
            "Remaining amount is too small for the number of installments",
            {"remainingAmount": remaining_amount, "numberOfInstallments": count}
        )
    last = round(remaining_amount - base * (count - 1), 2)
    if last == int(last):
        last = int(last)
    return [base] * (count - 1) + [last]


def build_schedule(
    remaining_amount: float,
    count: int,
    frequency: EMIFrequency,
    start_date: datetime,
    interval_days: Optional[int] = None
) -> List[Installment]:
    amounts = split_installments(remaining_amount, count)
    return [
        Installment(
            installment_number=number,
            amount=amount,
            due_date=due_date_for(start_date, frequency, number, interval_days),
        )
        for number, amount in enumerate(amounts, start=1)
    ]


def _paid_date_for(threshold: float, credits: Sequence[Tuple[datetime, float]]) -> Optional[datetime]:
    running = 0.0
    for date, amount in credits:
        running = round(running + amount, 2)
        if running >= threshold:
            return as_utc(date)
    return None


def derive_installments(
    installments: Sequence[Installment],
    down_payment: float,
    fees_paid: float,
    now: datetime,
    credits: Sequence[Tuple[datetime, float]] = ()
) -> List[InstallmentProgress]:
    """
    Project the cumulative paid amount onto the schedule.

    `credits` is the (date, amount) list of Completed credits in ledger
    order and is only used to date each installment's payment.
    """
    now = as_utc(now)
    paid = round(fees_paid, 2)
    previous_threshold = round(down_payment, 2)
    result = []

    for installment in sorted(installments, key=lambda i: i.installment_number):
        threshold = round(previous_threshold + installment.amount, 2)

        if paid >= threshold:
            status = InstallmentStatus.PAID
        elif previous_threshold < paid < threshold:
            status = InstallmentStatus.PARTIALLY_PAID
        elif installment.due_date < now:
            status = InstallmentStatus.OVERDUE
        else:
            status = InstallmentStatus.PENDING

        paid_amount = round(min(max(paid - previous_threshold, 0), installment.amount), 2)
        paid_date = _paid_date_for(threshold, credits) if status == InstallmentStatus.PAID else None

        result.append(InstallmentProgress(
            installment_number=installment.installment_number,
            amount=installment.amount,
            due_date=installment.due_date,
            status=status,
            paid_amount=paid_amount,
            paid_date=paid_date,
        ))
        previous_threshold = threshold

    return result


def summarize(progress: List[InstallmentProgress]) -> PlanProgress:
    total = len(progress)
    paid_count = sum(1 for i in progress if i.status == InstallmentStatus.PAID)
    overdue_count = sum(1 for i in progress if i.status == InstallmentStatus.OVERDUE)

    completion = 0
    if total:
        completion = int(
            (Decimal(paid_count * 100) / Decimal(total)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        )

    next_due = next(
        (
            i for i in progress
            if i.status in (InstallmentStatus.PENDING, InstallmentStatus.PARTIALLY_PAID)
        ),
        None
    )

    return PlanProgress(
        installments=progress,
        overdue_count=overdue_count,
        completion_percentage=completion,
        next_due=next_due,
    )
