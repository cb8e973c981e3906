"""
Transaction model - one immutable money movement in the ledger.

Design principles:
- Append-only: entries are never deleted, a void is a status change
- Write-once: student, amount, type, date, mode, recorder and balance
  snapshots never change after insert
- Only `status` (through the state machine below) and `notes` are mutable
- Every entry carries a receipt number unique per calendar month prefix
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, FrozenSet

from pydantic import Field, field_validator

from app.models.base import MongoModel, PyObjectId, as_utc, utcnow


class TransactionType(str, Enum):
    CREDIT = "Credit"
    DEBIT = "Debit"
    REFUND = "Refund"


class TransactionStatus(str, Enum):
    COMPLETED = "Completed"
    PENDING = "Pending"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


class PaymentMode(str, Enum):
    CASH = "Cash"
    CHEQUE = "Cheque"
    UPI = "UPI"
    ONLINE_TRANSFER = "Online Transfer"
    OTHER = "Other"


ALLOWED_TRANSITIONS: Dict[TransactionStatus, FrozenSet[TransactionStatus]] = {
    TransactionStatus.COMPLETED: frozenset({
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    }),
    TransactionStatus.FAILED: frozenset(),
    TransactionStatus.CANCELLED: frozenset(),
    # Nothing writes Pending entries and none may leave it
    TransactionStatus.PENDING: frozenset(),
}

MUTABLE_FIELDS = frozenset({"status", "notes"})

DEFAULT_DESCRIPTION = "Fee Payment"
DOWN_PAYMENT_DESCRIPTION = "Initial enrollment down payment"


def can_transition(current: TransactionStatus, target: TransactionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class Transaction(MongoModel):
    student_id: PyObjectId
    student_name: str         # Snapshot, survives student deletion

    amount: float = Field(..., gt=0)
    type: TransactionType = TransactionType.CREDIT
    date: datetime = Field(default_factory=utcnow)
    status: TransactionStatus = TransactionStatus.COMPLETED
    payment_mode: PaymentMode = PaymentMode.CASH
    recorded_by: str

    receipt_number: Optional[str] = None
    previous_balance: float = 0
    new_balance: float = 0

    description: str = Field(DEFAULT_DESCRIPTION, max_length=500)
    notes: str = ""
    is_verified: bool = False

    @field_validator("date")
    @classmethod
    def _date_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def counts_toward_balance(self) -> bool:
        """Only completed credits make up a student's paid amount."""
        return (
            self.status == TransactionStatus.COMPLETED
            and self.type == TransactionType.CREDIT
        )
