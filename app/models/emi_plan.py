"""
EMI plan model - the stored installment schedule for one student.

Only the schedule itself (number, amount, due date) is persisted.
Installment status, paid amounts and plan progress are projected from the
ledger on every read, see app.utils.emi_schedule.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.base import MongoModel, PyObjectId, as_utc


class EMIFrequency(str, Enum):
    WEEKLY = "Weekly"
    BI_WEEKLY = "Bi-Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    CUSTOM = "Custom"


class InstallmentStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"
    PARTIALLY_PAID = "Partially Paid"


MIN_INSTALLMENTS = 1
MAX_INSTALLMENTS = 24


# Embedded document, no separate _id
class Installment(BaseModel):
    installment_number: int = Field(..., ge=1)
    amount: float = Field(..., gt=0)
    due_date: datetime

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class EMIPlan(MongoModel):
    student_id: PyObjectId
    total_amount: float = Field(..., gt=0)
    down_payment: float = Field(0, ge=0)
    remaining_amount: float
    number_of_installments: int = Field(..., ge=MIN_INSTALLMENTS, le=MAX_INSTALLMENTS)
    frequency: EMIFrequency = EMIFrequency.MONTHLY
    interval_days: Optional[int] = None   # Custom frequency only
    start_date: datetime
    installments: List[Installment] = []
    is_active: bool = True
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("start_date")
    @classmethod
    def _start_date_utc(cls, value: datetime) -> datetime:
        return as_utc(value)
