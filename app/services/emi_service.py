import logging
from datetime import datetime
from typing import Any, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.core.exceptions import ConflictError, InvalidInputError, NotFoundError
from app.models.base import as_utc, utcnow
from app.models.emi_plan import EMIFrequency, EMIPlan
from app.models.student import Student
from app.repositories.emi_plan_repo import EMIPlanRepository
from app.repositories.student_repo import StudentRepository
from app.repositories.transaction_repo import TransactionRepository
from app.utils.emi_schedule import (
    InstallmentProgress,
    build_schedule,
    derive_installments,
    summarize,
    validate_installment_count,
    validate_interval_days,
)
from app.utils.payment_validation import validate_text

logger = logging.getLogger(__name__)


class EMIPlanView(BaseModel):
    """A stored plan with its schedule projected onto the current ledger."""
    plan: EMIPlan
    student_code: str
    fees_paid: float
    installments: List[InstallmentProgress]
    overdue_count: int
    completion_percentage: int
    next_due: Optional[InstallmentProgress] = None


def _parse_installment_count(value: Any) -> int:
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    validate_installment_count(value)
    return value


def _parse_frequency(value: Any) -> EMIFrequency:
    if value is None or value == "":
        return EMIFrequency.MONTHLY
    try:
        return EMIFrequency(value)
    except ValueError:
        valid = ", ".join(f.value for f in EMIFrequency)
        raise InvalidInputError(
            f"Invalid frequency. Must be one of: {valid}",
            {"frequency": value}
        )


class EMIService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.plans = EMIPlanRepository(db)
        self.students = StudentRepository(db)
        self.transactions = TransactionRepository(db)

    async def _resolve_student(self, student_id: Any) -> Student:
        if not student_id or not isinstance(student_id, str):
            raise InvalidInputError("Student ID is required", {"studentId": student_id})
        student = await self.students.resolve(student_id)
        if student is None:
            raise NotFoundError("Student not found", {"studentId": student_id})
        return student

    async def create_plan(
        self,
        student_id: Any,
        number_of_installments: Any,
        frequency: Any = None,
        start_date: Optional[datetime] = None,
        interval_days: Optional[int] = None,
        notes: Optional[str] = None
    ) -> EMIPlanView:
        count = _parse_installment_count(number_of_installments)
        frequency = _parse_frequency(frequency)
        interval_days = validate_interval_days(frequency, interval_days)
        notes = validate_text("notes", notes)
        start_date = as_utc(start_date) if start_date else utcnow()

        student = await self._resolve_student(student_id)

        if await self.plans.get_by_student(student.id):
            raise ConflictError(
                "EMI plan already exists for this student",
                {"studentId": student.code}
            )

        remaining = round(student.fee_offered - student.down_payment, 2)
        if remaining <= 0:
            raise InvalidInputError(
                "No remaining amount to schedule: down payment covers the full fee",
                {"studentId": student.code, "remainingAmount": remaining}
            )

        plan = EMIPlan(
            student_id=student.id,
            total_amount=student.fee_offered,
            down_payment=student.down_payment,
            remaining_amount=remaining,
            number_of_installments=count,
            frequency=frequency,
            interval_days=interval_days,
            start_date=start_date,
            installments=build_schedule(remaining, count, frequency, start_date, interval_days),
            notes=notes,
        )
        plan = await self.plans.create(plan)

        logger.info(
            "EMI plan created for %s: %d x %s installments",
            student.code, count, frequency.value
        )
        return await self._project(plan, student)

    async def get_plan(self, student_id: Any, now: Optional[datetime] = None) -> EMIPlanView:
        student = await self._resolve_student(student_id)
        plan = await self.plans.get_by_student(student.id)
        if plan is None:
            raise NotFoundError("EMI plan not found", {"studentId": student.code})
        return await self._project(plan, student, now)

    async def delete_plan(self, student_id: Any) -> None:
        student = await self._resolve_student(student_id)
        if not await self.plans.delete_by_student(student.id):
            raise NotFoundError("EMI plan not found", {"studentId": student.code})
        logger.info("EMI plan deleted for %s", student.code)

    async def _project(
        self,
        plan: EMIPlan,
        student: Student,
        now: Optional[datetime] = None
    ) -> EMIPlanView:
        credits = await self.transactions.completed_credits_for(student.id)
        progress = derive_installments(
            plan.installments,
            plan.down_payment,
            student.fees_paid,
            now or utcnow(),
            [(t.date, t.amount) for t in credits],
        )
        summary = summarize(progress)

        return EMIPlanView(
            plan=plan,
            student_code=student.code,
            fees_paid=student.fees_paid,
            installments=summary.installments,
            overdue_count=summary.overdue_count,
            completion_percentage=summary.completion_percentage,
            next_due=summary.next_due,
        )
