from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, status

from app.core.auth import get_current_user
from app.db.mongo import get_db
from app.models.student import Student
from app.models.user import User
from app.schemas.student import StudentCreate, StudentDeleteResponse, StudentResponse
from app.services.student_service import StudentService

router = APIRouter(prefix="/students", tags=["students"])


def to_student_response(student: Student) -> StudentResponse:
    return StudentResponse(
        id=student.code,
        internal_id=str(student.id),
        name=student.name,
        email=student.email,
        course=student.course,
        status=student.status.value,
        joined_date=student.joined_date,
        fee_offered=student.fee_offered,
        down_payment=student.down_payment,
        fees_paid=student.fees_paid,
        pending_amount=student.pending_amount,
        payment_percentage=round(student.payment_percentage, 2),
        emi_months=student.emi_months,
        phone=student.phone,
        address=student.address,
        created_at=student.created_at,
        updated_at=student.updated_at
    )


@router.get("", response_model=List[StudentResponse])
async def list_students(
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """List students, newest enrollment first."""
    students = await StudentService(db).list_students()
    return [to_student_response(student) for student in students]


@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def enroll_student(
    payload: StudentCreate,
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """Enroll a student and record the down payment."""
    student = await StudentService(db).enroll(
        actor=current_user,
        name=payload.name,
        email=str(payload.email),
        course=payload.course,
        status=payload.status,
        fee_offered=payload.fee_offered,
        down_payment=payload.down_payment,
        phone=payload.phone,
        address=payload.address,
        emi_months=payload.emi_months
    )
    return to_student_response(student)


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """Get a student by internal id or code."""
    student = await StudentService(db).get_student(student_id)
    return to_student_response(student)


@router.patch("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: str,
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """Update non-financial fields."""
    student = await StudentService(db).update_student(student_id, payload)
    return to_student_response(student)


@router.delete("/{student_id}", response_model=StudentDeleteResponse)
async def delete_student(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """Delete a student. Their transactions are kept."""
    student = await StudentService(db).delete_student(student_id)
    return StudentDeleteResponse(
        message="Student deleted successfully",
        student=to_student_response(student)
    )
