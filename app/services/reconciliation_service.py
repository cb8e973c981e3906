"""
ReconciliationService - detect and repair drift between each student's
cached fees_paid and the sum of their Completed Credit entries.

The ledger is ground truth. Verify only reads; Fix overwrites the cached
balance with the ledger total, one compare-and-swap per student, and
skips students whose balance moved while the report was being built.
"""

import logging
from typing import List

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.core.config import settings
from app.models.user import User
from app.repositories.student_repo import StudentRepository
from app.repositories.transaction_repo import TransactionRepository

logger = logging.getLogger(__name__)


class BalanceIssue(BaseModel):
    student_id: str
    student_code: str
    student_name: str
    fees_paid_in_student: float
    total_from_transactions: float
    difference: float           # cached minus ledger


class VerifySummary(BaseModel):
    total_students: int
    students_with_issues: int
    total_difference: float


class VerifyReport(BaseModel):
    healthy: bool
    issues: List[BalanceIssue]
    summary: VerifySummary


class BalanceCorrection(BaseModel):
    student_id: str
    student_code: str
    student_name: str
    old_fees_paid: float
    new_fees_paid: float
    difference: float


class FixReport(BaseModel):
    fixed: List[BalanceCorrection]
    skipped: List[BalanceIssue]
    count: int


class ReconciliationService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.students = StudentRepository(db)
        self.transactions = TransactionRepository(db)

    async def find_issues(self) -> List[BalanceIssue]:
        students = await self.students.list_all()
        totals = await self.transactions.completed_credit_totals()

        issues = []
        for student in sorted(students, key=lambda s: s.code):
            ledger_total = round(totals.get(student.id, 0.0), 2)
            difference = round(student.fees_paid - ledger_total, 2)
            if abs(difference) > settings.RECONCILIATION_TOLERANCE:
                issues.append(BalanceIssue(
                    student_id=str(student.id),
                    student_code=student.code,
                    student_name=student.name,
                    fees_paid_in_student=student.fees_paid,
                    total_from_transactions=ledger_total,
                    difference=difference,
                ))
        return issues

    async def verify(self) -> VerifyReport:
        issues = await self.find_issues()
        total_students = await self.students.count()

        if issues:
            logger.warning("Balance drift found for %d student(s)", len(issues))

        return VerifyReport(
            healthy=not issues,
            issues=issues,
            summary=VerifySummary(
                total_students=total_students,
                students_with_issues=len(issues),
                total_difference=round(sum(issue.difference for issue in issues), 2),
            ),
        )

    async def fix(self, actor: User) -> FixReport:
        issues = await self.find_issues()
        fixed: List[BalanceCorrection] = []
        skipped: List[BalanceIssue] = []

        for issue in issues:
            student = await self.students.set_fees_paid_if(
                ObjectId(issue.student_id),
                issue.fees_paid_in_student,
                issue.total_from_transactions
            )
            if student is None:
                logger.warning(
                    "Skipped %s: balance changed during reconciliation", issue.student_code
                )
                skipped.append(issue)
                continue

            fixed.append(BalanceCorrection(
                student_id=issue.student_id,
                student_code=issue.student_code,
                student_name=issue.student_name,
                old_fees_paid=issue.fees_paid_in_student,
                new_fees_paid=issue.total_from_transactions,
                difference=issue.difference,
            ))

        logger.info(
            "Fixed %d inconsistent balance(s), skipped %d, by %s",
            len(fixed), len(skipped), actor.display_name
        )
        return FixReport(fixed=fixed, skipped=skipped, count=len(fixed))
