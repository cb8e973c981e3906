"""
Student model - the fee-paying entity.

`fees_paid` is a cached projection of the ledger: only the payment
recorder, the void path and reconciliation write it. `down_payment`,
`code` and `joined_date` are fixed at enrollment.
"""

from enum import Enum

from pydantic import Field

from app.models.base import MongoModel


class StudentStatus(str, Enum):
    ACTIVE = "Active"
    PENDING = "Pending"
    INACTIVE = "Inactive"


# Never accepted by the general update path
PROTECTED_FIELDS = frozenset({"fees_paid", "down_payment", "code", "joined_date"})


class Student(MongoModel):
    code: str                 # Stable human code, e.g. STU001
    name: str
    email: str
    course: str
    status: StudentStatus = StudentStatus.ACTIVE
    joined_date: str          # DD/MM/YYYY

    fee_offered: float = Field(..., ge=0)
    down_payment: float = Field(0, ge=0)
    fees_paid: float = Field(0, ge=0)
    emi_months: int = Field(0, ge=0, le=24)

    phone: str = ""
    address: str = ""

    @property
    def pending_amount(self) -> float:
        return max(0.0, self.fee_offered - self.fees_paid)

    @property
    def payment_percentage(self) -> float:
        if self.fee_offered == 0:
            return 0.0
        return min(100.0, (self.fees_paid / self.fee_offered) * 100)
