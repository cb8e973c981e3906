"""
StudentService - enrollment and non-financial maintenance.

Enrollment seeds the ledger: the student is stored with fees_paid 0, the
down payment is appended as a Completed Credit, and only then is the
balance raised to match. A failed ledger write removes the student again.
"""

import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, EmailStr, Field, ValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    ImmutableFieldError,
    InvalidInputError,
    NotFoundError,
    PersistenceError,
)
from app.models.base import utcnow
from app.models.student import Student, StudentStatus
from app.models.transaction import (
    DOWN_PAYMENT_DESCRIPTION,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from app.models.user import User
from app.repositories.counter_repo import CounterRepository
from app.repositories.student_repo import StudentRepository
from app.services.receipt_service import ReceiptService
from app.utils.formatters import format_joined_date, format_student_code

logger = logging.getLogger(__name__)

STUDENT_CODE_COUNTER = "student_code"
MAX_CODE_ATTEMPTS = 5

# Request keys (either spelling) that the general update path never accepts
PROTECTED_KEYS = {
    "feesPaid": "fees_paid",
    "fees_paid": "fees_paid",
    "downPayment": "down_payment",
    "down_payment": "down_payment",
    "id": "code",
    "code": "code",
    "joinedDate": "joined_date",
    "joined_date": "joined_date",
}


class StudentChanges(BaseModel):
    """Editable student fields."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    course: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[StudentStatus] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    emi_months: Optional[int] = Field(None, ge=0, le=24, alias="emiMonths")
    fee_offered: Optional[float] = Field(None, ge=0, alias="feeOffered")

    model_config = {"populate_by_name": True, "extra": "forbid"}


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"])
    return f"{field}: {first['msg']}"


class StudentService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.students = StudentRepository(db)
        self.counters = CounterRepository(db)
        self.receipts = ReceiptService(db)

    async def list_students(self) -> List[Student]:
        return await self.students.list_all()

    async def get_student(self, identifier: str) -> Student:
        student = await self.students.resolve(identifier)
        if student is None:
            raise NotFoundError("Student not found", {"studentId": identifier})
        return student

    async def enroll(
        self,
        actor: User,
        name: str,
        email: str,
        course: str,
        status: Optional[StudentStatus] = None,
        fee_offered: Optional[float] = None,
        down_payment: Optional[float] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        emi_months: Optional[int] = None
    ) -> Student:
        fee = settings.DEFAULT_FEE_OFFERED if fee_offered is None else fee_offered
        if down_payment is None:
            down_payment = min(settings.DEFAULT_DOWN_PAYMENT, fee)

        if fee < 0:
            raise InvalidInputError("Fee offered cannot be negative", {"feeOffered": fee})
        if down_payment < 0 or down_payment > fee:
            raise InvalidInputError(
                "Down payment must be between 0 and the fee offered",
                {"downPayment": down_payment, "feeOffered": fee}
            )

        try:
            if await self.students.get_by_email(email):
                raise ConflictError("A student with this email already exists", {"email": email})

            student = Student(
                code=await self._next_code(),
                name=name,
                email=email,
                course=course,
                status=status or StudentStatus.ACTIVE,
                joined_date=format_joined_date(utcnow()),
                fee_offered=fee,
                down_payment=down_payment,
                fees_paid=0,
                emi_months=emi_months or 0,
                phone=phone or "",
                address=address or "",
            )
            student = await self._insert_with_unique_code(student)
        except PyMongoError as e:
            logger.exception("Enrollment failed for %s", email)
            raise PersistenceError(
                "Could not enroll the student",
                {"email": email, "reason": type(e).__name__}
            )

        if down_payment > 0:
            student = await self._seed_down_payment(student, down_payment, actor)

        logger.info("Student enrolled: %s (%s), down payment %.2f", student.code, student.email, down_payment)
        return student

    async def _seed_down_payment(self, student: Student, amount: float, actor: User) -> Student:
        """
        Append the down payment Credit, then apply it to the balance.
        When the ledger write fails the enrollment is rolled back.
        """
        try:
            await self.receipts.insert_with_receipt_number(Transaction(
                student_id=student.id,
                student_name=student.name,
                amount=amount,
                type=TransactionType.CREDIT,
                status=TransactionStatus.COMPLETED,
                recorded_by=actor.display_name,
                previous_balance=0,
                new_balance=amount,
                description=DOWN_PAYMENT_DESCRIPTION,
            ))
        except (PyMongoError, PersistenceError) as e:
            logger.exception("Down payment for %s not recorded, rolling back enrollment", student.code)
            try:
                await self.students.delete(student.id)
            except PyMongoError:
                logger.exception("Rollback of %s failed; record has no balance", student.code)
            raise PersistenceError(
                "Could not record the down payment; the enrollment was not saved",
                {"studentId": student.code, "amount": amount, "reason": type(e).__name__}
            )

        try:
            # Unconditional: a payment may already have moved the balance
            seeded = await self.students.inc_fees_paid(student.id, amount)
        except PyMongoError as e:
            logger.exception("Down payment for %s recorded but balance not updated", student.code)
            raise PersistenceError(
                "Down payment recorded but the balance was not updated; run reconciliation",
                {"studentId": student.code, "amount": amount, "reason": type(e).__name__}
            )
        if seeded is None:
            raise NotFoundError("Student not found", {"studentId": student.code})
        return seeded

    async def _next_code(self) -> str:
        return format_student_code(await self.counters.next_value(STUDENT_CODE_COUNTER))

    async def _insert_with_unique_code(self, student: Student) -> Student:
        for _ in range(MAX_CODE_ATTEMPTS):
            try:
                return await self.students.create(student)
            except DuplicateKeyError:
                if await self.students.get_by_email(student.email):
                    raise ConflictError(
                        "A student with this email already exists",
                        {"email": student.email}
                    )
                # Counter behind existing codes
                highest = await self.students.highest_code_number()
                await self.counters.ensure_at_least(STUDENT_CODE_COUNTER, highest)
                student.code = await self._next_code()

        raise PersistenceError("Could not allocate a unique student code")

    async def update_student(self, identifier: str, payload: Dict[str, Any]) -> Student:
        protected = sorted({PROTECTED_KEYS[key] for key in payload if key in PROTECTED_KEYS})
        if protected:
            raise ImmutableFieldError(
                f"These fields cannot be changed here: {', '.join(protected)}",
                {"fields": protected}
            )

        try:
            changes = StudentChanges.model_validate(payload)
        except ValidationError as e:
            raise InvalidInputError(_validation_message(e), {"fields": list(payload)})

        updates = changes.model_dump(exclude_unset=True)
        student = await self.get_student(identifier)
        if not updates:
            return student

        if "email" in updates and updates["email"] != student.email:
            existing = await self.students.get_by_email(updates["email"])
            if existing and existing.id != student.id:
                raise ConflictError(
                    "A student with this email already exists",
                    {"email": updates["email"]}
                )

        if "fee_offered" in updates and updates["fee_offered"] < student.down_payment:
            raise InvalidInputError(
                "Fee offered cannot be less than the down payment",
                {"feeOffered": updates["fee_offered"], "downPayment": student.down_payment}
            )

        if "status" in updates:
            updates["status"] = updates["status"].value

        try:
            updated = await self.students.update_fields(student.id, updates)
        except DuplicateKeyError:
            raise ConflictError("A student with this email already exists", {"email": updates.get("email")})
        if updated is None:
            raise NotFoundError("Student not found", {"studentId": identifier})
        return updated

    async def delete_student(self, identifier: str) -> Student:
        """Remove the student record. Ledger entries stay readable."""
        student = await self.get_student(identifier)
        deleted = await self.students.delete(student.id)
        if deleted is None:
            raise NotFoundError("Student not found", {"studentId": identifier})
        logger.info("Student deleted: %s", student.code)
        return deleted
