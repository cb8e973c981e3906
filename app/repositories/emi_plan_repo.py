from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import ConflictError
from app.models.emi_plan import EMIPlan


class EMIPlanRepository:
    """Repository for stored installment schedules (one per student)."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["emi_plans"]

    async def create(self, plan: EMIPlan) -> EMIPlan:
        """Insert a plan. The unique index on student_id rejects a second one."""
        try:
            await self.collection.insert_one(plan.to_document())
        except DuplicateKeyError:
            raise ConflictError(
                "EMI plan already exists for this student",
                {"studentId": str(plan.student_id)}
            )
        return plan

    async def get_by_student(self, student_id: ObjectId) -> Optional[EMIPlan]:
        doc = await self.collection.find_one({"student_id": student_id})
        if doc:
            return EMIPlan(**doc)
        return None

    async def delete_by_student(self, student_id: ObjectId) -> bool:
        result = await self.collection.delete_one({"student_id": student_id})
        return result.deleted_count > 0
