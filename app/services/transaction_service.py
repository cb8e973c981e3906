import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.exceptions import (
    InvalidInputError,
    InvalidStatusTransitionError,
    NotFoundError,
)
from app.models.base import parse_object_id
from app.models.transaction import Transaction, TransactionStatus, TransactionType
from app.models.user import User
from app.repositories.student_repo import StudentRepository
from app.repositories.transaction_repo import TransactionRepository
from app.utils.payment_validation import validate_text

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 500


class TransactionService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.transactions = TransactionRepository(db)
        self.students = StudentRepository(db)

    async def list_recent(self, limit: int = DEFAULT_LIST_LIMIT, status: Optional[str] = None) -> List[Transaction]:
        if limit < 1 or limit > MAX_LIST_LIMIT:
            raise InvalidInputError(
                f"limit must be between 1 and {MAX_LIST_LIMIT}",
                {"limit": limit}
            )
        status_filter = None
        if status:
            try:
                status_filter = TransactionStatus(status)
            except ValueError:
                raise InvalidInputError("Invalid transaction status", {"status": status})
        return await self.transactions.list_recent(limit, status_filter)

    async def list_for_student(self, identifier: str) -> List[Transaction]:
        """
        History for a student, newest first. An internal id still returns
        history after the student record is deleted.
        """
        student = await self.students.resolve(identifier)
        if student is not None:
            return await self.transactions.list_by_student(student.id)

        oid = parse_object_id(identifier)
        if oid is not None:
            history = await self.transactions.list_by_student(oid)
            if history:
                return history

        raise NotFoundError("Student not found", {"studentId": identifier})

    async def get(self, transaction_id: str) -> Transaction:
        oid = parse_object_id(transaction_id)
        transaction = await self.transactions.get(oid) if oid else None
        if transaction is None:
            raise NotFoundError("Transaction not found", {"transactionId": transaction_id})
        return transaction

    async def cancel(self, transaction_id: str, reason: Any, actor: User) -> Transaction:
        """
        Void a Completed entry. A voided credit no longer counts toward the
        balance, so fees_paid is decremented by the same amount.
        """
        reason = validate_text("reason", reason)
        transaction = await self.get(transaction_id)

        if transaction.status != TransactionStatus.COMPLETED:
            raise InvalidStatusTransitionError(
                f"Only Completed transactions can be cancelled (current: {transaction.status.value})",
                {"transactionId": transaction_id, "from": transaction.status.value}
            )

        note = f"Cancelled by {actor.display_name}"
        if reason:
            note = f"{note}: {reason}"

        cancelled = await self.transactions.transition_status(
            transaction.id, TransactionStatus.CANCELLED, note
        )

        if transaction.type == TransactionType.CREDIT:
            student = await self.students.inc_fees_paid(transaction.student_id, -transaction.amount)
            if student is None:
                logger.warning(
                    "Cancelled %s for a student that no longer exists", transaction.receipt_number
                )

        logger.info(
            "Transaction %s cancelled by %s", transaction.receipt_number, actor.display_name
        )
        return cancelled

    async def update_notes(self, transaction_id: str, payload: Dict[str, Any]) -> Transaction:
        if "notes" in payload:
            validate_text("notes", payload["notes"])
        transaction = await self.get(transaction_id)
        if not payload:
            return transaction
        return await self.transactions.update(transaction.id, payload)
