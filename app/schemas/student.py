from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from app.models.student import StudentStatus
from app.schemas.base import CamelModel


class StudentCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    course: str = Field(..., min_length=1, max_length=200)
    status: Optional[StudentStatus] = None
    fee_offered: Optional[float] = None
    down_payment: Optional[float] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    emi_months: Optional[int] = Field(None, ge=0, le=24)


class StudentResponse(CamelModel):
    id: str                  # Stable code, e.g. STU001
    internal_id: str
    name: str
    email: str
    course: str
    status: str
    joined_date: str
    fee_offered: float
    down_payment: float
    fees_paid: float
    pending_amount: float
    payment_percentage: float
    emi_months: int
    phone: str
    address: str
    created_at: datetime
    updated_at: datetime


class StudentDeleteResponse(CamelModel):
    success: bool = True
    message: str
    student: StudentResponse
