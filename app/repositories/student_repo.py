from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.models.base import parse_object_id
from app.models.student import Student


class StudentRepository:
    """Student database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["students"]

    async def create(self, student: Student) -> Student:
        """Insert a new student document."""
        await self.collection.insert_one(student.to_document())
        return student

    async def get_by_id(self, student_id: ObjectId) -> Optional[Student]:
        doc = await self.collection.find_one({"_id": student_id})
        if doc:
            return Student(**doc)
        return None

    async def get_by_code(self, code: str) -> Optional[Student]:
        doc = await self.collection.find_one({"code": code})
        if doc:
            return Student(**doc)
        return None

    async def get_by_email(self, email: str) -> Optional[Student]:
        doc = await self.collection.find_one({"email": email})
        if doc:
            return Student(**doc)
        return None

    async def resolve(self, identifier: str) -> Optional[Student]:
        """Find by internal id first, then by stable code (e.g. STU001)."""
        oid = parse_object_id(identifier)
        if oid is not None:
            student = await self.get_by_id(oid)
            if student:
                return student
        return await self.get_by_code(identifier)

    async def list_all(self) -> List[Student]:
        """List students, newest enrollment first."""
        cursor = self.collection.find({}).sort("created_at", -1)
        docs = await cursor.to_list(None)
        return [Student(**doc) for doc in docs]

    async def count(self) -> int:
        return await self.collection.count_documents({})

    async def highest_code_number(self) -> int:
        """Largest numeric suffix among existing STU codes."""
        highest = 0
        async for doc in self.collection.find({}, {"code": 1}):
            suffix = str(doc.get("code", ""))[3:]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return highest

    async def update_fields(self, student_id: ObjectId, updates: Dict[str, Any]) -> Optional[Student]:
        """Set non-financial fields. Callers strip protected fields first."""
        updates = dict(updates)
        updates["updated_at"] = datetime.now(timezone.utc)
        result = await self.collection.find_one_and_update(
            {"_id": student_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )
        if result:
            return Student(**result)
        return None

    async def update_if(
        self,
        student_id: ObjectId,
        expected: Dict[str, Any],
        mutation: Dict[str, Any]
    ) -> Optional[Student]:
        """
        Compare-and-swap on a student document.

        Applies `mutation` (a MongoDB update document) only while every
        field in `expected` still holds its value. Returns the updated
        student, or None when the precondition no longer matched.
        """
        update = {key: dict(value) for key, value in mutation.items()}
        update.setdefault("$set", {})["updated_at"] = datetime.now(timezone.utc)

        result = await self.collection.find_one_and_update(
            {"_id": student_id, **expected},
            update,
            return_document=ReturnDocument.AFTER
        )
        if result:
            return Student(**result)
        return None

    async def inc_fees_paid_if(
        self,
        student_id: ObjectId,
        expected_balance: float,
        amount: float
    ) -> Optional[Student]:
        """Add `amount` to fees_paid only if it still equals `expected_balance`."""
        return await self.update_if(
            student_id,
            {"fees_paid": expected_balance},
            {"$inc": {"fees_paid": amount}}
        )

    async def set_fees_paid_if(
        self,
        student_id: ObjectId,
        expected_balance: float,
        value: float
    ) -> Optional[Student]:
        """Overwrite fees_paid only if it still equals `expected_balance`."""
        return await self.update_if(
            student_id,
            {"fees_paid": expected_balance},
            {"$set": {"fees_paid": value}}
        )

    async def inc_fees_paid(self, student_id: ObjectId, amount: float) -> Optional[Student]:
        """Unconditional atomic increment, used when voiding an entry."""
        return await self.update_if(student_id, {}, {"$inc": {"fees_paid": amount}})

    async def delete(self, student_id: ObjectId) -> Optional[Student]:
        """Hard delete a student. Ledger entries are left in place."""
        doc = await self.collection.find_one_and_delete({"_id": student_id})
        if doc:
            return Student(**doc)
        return None
