"""
TransactionRepository - the append-only ledger.

Rules enforced here rather than by convention:
1. There is no delete operation
2. Only `status` and `notes` can change after insert
3. Status changes follow ALLOWED_TRANSITIONS and are guarded by the
   status read, so two concurrent voids cannot both succeed
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from app.core.exceptions import (
    ImmutableFieldError,
    InvalidStatusTransitionError,
    NotFoundError,
)
from app.models.transaction import (
    MUTABLE_FIELDS,
    Transaction,
    TransactionStatus,
    TransactionType,
    can_transition,
)


def _append_note(existing: str, note: Optional[str]) -> str:
    if not note:
        return existing
    if existing:
        return f"{existing}\n{note}"
    return note


class TransactionRepository:
    """Repository for ledger entries."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["transactions"]

    async def insert(self, transaction: Transaction) -> Transaction:
        """
        Append one entry.

        Raises DuplicateKeyError when the receipt number is already taken;
        the caller regenerates the number and retries.
        """
        doc = transaction.to_document()
        if doc.get("receipt_number") is None:
            # Sparse unique index: absent field, never a stored null
            doc.pop("receipt_number", None)
        await self.collection.insert_one(doc)
        return transaction

    async def get(self, transaction_id: ObjectId) -> Optional[Transaction]:
        doc = await self.collection.find_one({"_id": transaction_id})
        if doc:
            return Transaction(**doc)
        return None

    async def list_by_student(self, student_id: ObjectId) -> List[Transaction]:
        """Full history for one student, newest first."""
        cursor = self.collection.find({"student_id": student_id}).sort(
            [("date", DESCENDING), ("_id", DESCENDING)]
        )
        docs = await cursor.to_list(None)
        return [Transaction(**doc) for doc in docs]

    async def list_recent(
        self,
        limit: int = 50,
        status: Optional[TransactionStatus] = None
    ) -> List[Transaction]:
        query: Dict[str, Any] = {}
        if status is not None:
            query["status"] = status.value
        cursor = self.collection.find(query).sort(
            [("date", DESCENDING), ("_id", DESCENDING)]
        ).limit(limit)
        docs = await cursor.to_list(None)
        return [Transaction(**doc) for doc in docs]

    async def completed_credits_for(self, student_id: ObjectId) -> List[Transaction]:
        """Completed credits for one student in ledger order (oldest first)."""
        cursor = self.collection.find({
            "student_id": student_id,
            "status": TransactionStatus.COMPLETED.value,
            "type": TransactionType.CREDIT.value,
        }).sort([("date", 1), ("_id", 1)])
        docs = await cursor.to_list(None)
        return [Transaction(**doc) for doc in docs]

    async def completed_credit_totals(self) -> Dict[ObjectId, float]:
        """Sum of Completed Credit amounts grouped by student."""
        rows = await self.collection.aggregate([
            {"$match": {
                "status": TransactionStatus.COMPLETED.value,
                "type": TransactionType.CREDIT.value,
            }},
            {"$group": {"_id": "$student_id", "total": {"$sum": "$amount"}}},
        ]).to_list(None)
        return {row["_id"]: row["total"] for row in rows}

    async def highest_receipt_sequence(self, prefix: str) -> int:
        """Largest NNNNN already stored under a `RCP-YYMM-` prefix."""
        doc = await self.collection.find_one(
            {"receipt_number": {"$regex": f"^{prefix}"}},
            sort=[("receipt_number", DESCENDING)]
        )
        if not doc:
            return 0
        suffix = doc["receipt_number"][len(prefix):]
        return int(suffix) if suffix.isdigit() else 0

    async def transition_status(
        self,
        transaction_id: ObjectId,
        target: TransactionStatus,
        note: Optional[str] = None
    ) -> Transaction:
        """
        Move an entry along the status state machine.

        The update only matches while the status is still the one read, so a
        concurrent transition makes this one fail instead of overwriting it.
        """
        current = await self.get(transaction_id)
        if current is None:
            raise NotFoundError(
                "Transaction not found",
                {"transactionId": str(transaction_id)}
            )

        if not can_transition(current.status, target):
            raise InvalidStatusTransitionError(
                f"Cannot change transaction status from {current.status.value} to {target.value}",
                {
                    "transactionId": str(transaction_id),
                    "from": current.status.value,
                    "to": target.value,
                }
            )

        result = await self.collection.update_one(
            {"_id": transaction_id, "status": current.status.value},
            {"$set": {
                "status": target.value,
                "notes": _append_note(current.notes, note),
                "updated_at": datetime.now(timezone.utc),
            }}
        )
        if result.modified_count == 0:
            raise InvalidStatusTransitionError(
                "Transaction status changed concurrently",
                {"transactionId": str(transaction_id), "to": target.value}
            )

        return await self.get(transaction_id)

    async def update(self, transaction_id: ObjectId, fields: Dict[str, Any]) -> Transaction:
        """
        Update mutable fields. Only `notes` goes through here; status has
        its own guarded path.
        """
        rejected = sorted(set(fields) - MUTABLE_FIELDS)
        if rejected:
            raise ImmutableFieldError(
                f"Transaction fields are immutable: {', '.join(rejected)}",
                {"transactionId": str(transaction_id), "fields": rejected}
            )
        if "status" in fields:
            raise ImmutableFieldError(
                "Use the status transition operation to change status",
                {"transactionId": str(transaction_id), "fields": ["status"]}
            )

        result = await self.collection.update_one(
            {"_id": transaction_id},
            {"$set": {
                "notes": fields.get("notes") or "",
                "updated_at": datetime.now(timezone.utc),
            }}
        )
        if result.matched_count == 0:
            raise NotFoundError(
                "Transaction not found",
                {"transactionId": str(transaction_id)}
            )
        return await self.get(transaction_id)

    # Analytics

    async def monthly_revenue(self, since: datetime) -> List[Dict[str, Any]]:
        """Completed credits since `since`, grouped by calendar month."""
        return await self.collection.aggregate([
            {"$match": {
                "status": TransactionStatus.COMPLETED.value,
                "type": TransactionType.CREDIT.value,
                "date": {"$gte": since},
            }},
            {"$group": {
                "_id": {"year": {"$year": "$date"}, "month": {"$month": "$date"}},
                "revenue": {"$sum": "$amount"},
                "count": {"$sum": 1},
            }},
            {"$sort": {"_id.year": 1, "_id.month": 1}},
        ]).to_list(None)

    async def revenue_by_payment_mode(self) -> List[Dict[str, Any]]:
        """Completed credits grouped by payment mode, largest first."""
        return await self.collection.aggregate([
            {"$match": {
                "status": TransactionStatus.COMPLETED.value,
                "type": TransactionType.CREDIT.value,
            }},
            {"$group": {
                "_id": "$payment_mode",
                "amount": {"$sum": "$amount"},
                "count": {"$sum": 1},
            }},
            {"$sort": {"amount": -1}},
        ]).to_list(None)
