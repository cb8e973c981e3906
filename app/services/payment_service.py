"""
PaymentService - collect a fee payment.

Critical path:
1. Resolve the student (internal id, then code)
2. Validate amount and payment mode
3. Snapshot previous/new balance from the current fees_paid
4. Append a Completed Credit with a fresh receipt number
5. Compare-and-swap fees_paid from previous to previous + amount
6. If the swap loses to a concurrent write, mark the entry Failed and
   ask the caller to retry

The entry is written before the balance so money is never recorded on the
balance without a ledger row behind it.
"""

import logging
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo.errors import PyMongoError

from app.core.exceptions import (
    ConcurrentModificationError,
    InvalidInputError,
    NotFoundError,
    PersistenceError,
)
from app.models.student import Student
from app.models.transaction import (
    DEFAULT_DESCRIPTION,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from app.models.user import User
from app.repositories.student_repo import StudentRepository
from app.repositories.transaction_repo import TransactionRepository
from app.services.receipt_service import ReceiptService
from app.utils.payment_validation import parse_amount, validate_payment_mode, validate_text

logger = logging.getLogger(__name__)

CONCURRENT_UPDATE_NOTE = "Balance changed by a concurrent payment before this one was applied; not counted."


class CollectResult(BaseModel):
    transaction: Transaction
    student: Student
    warning: Optional[str] = None


class PaymentService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.students = StudentRepository(db)
        self.transactions = TransactionRepository(db)
        self.receipts = ReceiptService(db)

    async def collect(
        self,
        student_id: Any,
        amount: Any,
        actor: User,
        payment_mode: Any = None,
        description: Any = None,
        notes: Any = None
    ) -> CollectResult:
        if not student_id or not isinstance(student_id, str):
            raise InvalidInputError("Student ID is required", {"studentId": student_id})

        amount = parse_amount(amount)
        mode = validate_payment_mode(payment_mode)
        description = validate_text("description", description)
        notes = validate_text("notes", notes)

        try:
            return await self._collect(student_id, amount, mode, description, notes, actor)
        except PyMongoError as e:
            logger.exception("Payment collection failed for %s", student_id)
            raise PersistenceError(
                "Could not record the payment, please verify before retrying",
                {"studentId": student_id, "amount": amount, "reason": type(e).__name__}
            )

    async def _collect(self, student_id, amount, mode, description, notes, actor) -> CollectResult:
        student = await self.students.resolve(student_id)
        if student is None:
            raise NotFoundError("Student not found", {"studentId": student_id})

        previous_balance = student.fees_paid
        new_balance = previous_balance + amount

        warning = None
        if new_balance > student.fee_offered:
            warning = (
                f"Payment exceeds the total fee by {new_balance - student.fee_offered:.2f}"
            )
            logger.warning(
                "Overpayment for %s: new balance %.2f over fee %.2f",
                student.code, new_balance, student.fee_offered
            )

        transaction = Transaction(
            student_id=student.id,
            student_name=student.name,
            amount=amount,
            type=TransactionType.CREDIT,
            status=TransactionStatus.COMPLETED,
            payment_mode=mode,
            recorded_by=actor.display_name,
            previous_balance=previous_balance,
            new_balance=new_balance,
            description=description or DEFAULT_DESCRIPTION,
            notes=notes or "",
        )
        transaction = await self.receipts.insert_with_receipt_number(transaction)

        updated = await self.students.inc_fees_paid_if(student.id, previous_balance, amount)
        if updated is None:
            logger.warning(
                "Concurrent balance update for %s, attempted amount %.2f, receipt %s marked Failed",
                student.code, amount, transaction.receipt_number
            )
            await self.transactions.transition_status(
                transaction.id, TransactionStatus.FAILED, CONCURRENT_UPDATE_NOTE
            )
            raise ConcurrentModificationError(
                "The student's balance was updated by another payment. Please retry.",
                {
                    "studentId": student.code,
                    "amount": amount,
                    "transactionId": str(transaction.id),
                    "receiptNumber": transaction.receipt_number,
                }
            )

        logger.info(
            "Payment collected: %s for %s, amount %.2f",
            transaction.receipt_number, student.code, amount
        )
        return CollectResult(transaction=transaction, student=updated, warning=warning)
