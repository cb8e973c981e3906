from typing import List

from app.schemas.base import CamelModel


class BalanceIssueResponse(CamelModel):
    student_id: str
    student_code: str
    student_name: str
    fees_paid_in_student: float
    total_from_transactions: float
    difference: float


class VerifySummaryResponse(CamelModel):
    total_students: int
    students_with_issues: int
    total_difference: float


class VerifyResponse(CamelModel):
    success: bool = True
    healthy: bool
    issues: List[BalanceIssueResponse]
    summary: VerifySummaryResponse


class BalanceCorrectionResponse(CamelModel):
    student_id: str
    student_code: str
    student_name: str
    old_fees_paid: float
    new_fees_paid: float
    difference: float


class FixResponse(CamelModel):
    success: bool = True
    message: str
    fixed: List[BalanceCorrectionResponse]
    skipped: List[BalanceIssueResponse]
    count: int
