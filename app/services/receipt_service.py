"""
ReceiptService - receipt numbering and receipt rendering.

Numbering: RCP-{YY}{MM}-{NNNNN}, one sequence per calendar month.
1. Take the next value from the month's counter (atomic $inc, upsert)
2. Insert the entry carrying that number; the unique index on
   receipt_number makes the insert itself the claim
3. On a collision (counter behind existing data, e.g. after an import)
   raise the counter to the highest stored number and try again
"""

import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from app.core.config import settings
from app.core.exceptions import NotFoundError, PersistenceError
from app.models.transaction import Transaction
from app.repositories.counter_repo import CounterRepository
from app.repositories.student_repo import StudentRepository
from app.repositories.transaction_repo import TransactionRepository
from app.utils.formatters import (
    amount_in_words,
    format_receipt_number,
    receipt_counter_key,
    receipt_prefix,
)

logger = logging.getLogger(__name__)


class ReceiptView(BaseModel):
    """Everything printed on a receipt."""
    receipt_number: Optional[str]
    date: datetime
    transaction_id: str
    student_id: str
    student_code: Optional[str] = None
    student_name: str
    student_email: Optional[str] = None
    course: Optional[str] = None
    amount: float
    amount_in_words: str
    type: str
    payment_mode: str
    description: str
    notes: str
    status: str
    previous_balance: float
    new_balance: float
    total_fee: Optional[float] = None
    total_paid: float
    pending_amount: Optional[float] = None
    recorded_by: str
    organization_name: str
    organization_address: str
    organization_phone: str
    organization_email: str


class ReceiptService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.transactions = TransactionRepository(db)
        self.counters = CounterRepository(db)
        self.students = StudentRepository(db)

    async def insert_with_receipt_number(self, transaction: Transaction) -> Transaction:
        """Assign a fresh receipt number and append the entry in one step."""
        prefix = receipt_prefix(transaction.date)
        counter_key = receipt_counter_key(transaction.date)

        for attempt in range(1, settings.RECEIPT_NUMBER_MAX_RETRIES + 1):
            sequence = await self.counters.next_value(counter_key)
            transaction.receipt_number = format_receipt_number(transaction.date, sequence)
            try:
                return await self.transactions.insert(transaction)
            except DuplicateKeyError:
                logger.warning(
                    "Receipt number %s already taken (attempt %d), regenerating",
                    transaction.receipt_number, attempt
                )
                highest = await self.transactions.highest_receipt_sequence(prefix)
                await self.counters.ensure_at_least(counter_key, highest)

        transaction.receipt_number = None
        raise PersistenceError(
            "Could not assign a unique receipt number",
            {"prefix": prefix, "attempts": settings.RECEIPT_NUMBER_MAX_RETRIES}
        )

    async def render(self, transaction_id: ObjectId) -> ReceiptView:
        """
        Build the printable receipt.

        Entry fields come from the immutable snapshot; fee totals come from
        the student's current ledger state. When the student is gone the
        totals fall back to the snapshot.
        """
        transaction = await self.transactions.get(transaction_id)
        if transaction is None:
            raise NotFoundError(
                "Transaction not found",
                {"transactionId": str(transaction_id)}
            )

        student = await self.students.get_by_id(transaction.student_id)

        return ReceiptView(
            receipt_number=transaction.receipt_number,
            date=transaction.date,
            transaction_id=str(transaction.id),
            student_id=str(transaction.student_id),
            student_code=student.code if student else None,
            student_name=transaction.student_name,
            student_email=student.email if student else None,
            course=student.course if student else None,
            amount=transaction.amount,
            amount_in_words=amount_in_words(transaction.amount),
            type=transaction.type.value,
            payment_mode=transaction.payment_mode.value,
            description=transaction.description,
            notes=transaction.notes,
            status=transaction.status.value,
            previous_balance=transaction.previous_balance,
            new_balance=transaction.new_balance,
            total_fee=student.fee_offered if student else None,
            total_paid=student.fees_paid if student else transaction.new_balance,
            pending_amount=student.pending_amount if student else None,
            recorded_by=transaction.recorded_by,
            organization_name=settings.ORGANIZATION_NAME,
            organization_address=settings.ORGANIZATION_ADDRESS,
            organization_phone=settings.ORGANIZATION_PHONE,
            organization_email=settings.ORGANIZATION_EMAIL,
        )
