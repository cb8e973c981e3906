from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field

from app.schemas.base import CamelModel


class EMIPlanCreate(CamelModel):
    student_id: Optional[Any] = None
    number_of_installments: Optional[Any] = None
    frequency: Optional[str] = None
    start_date: Optional[datetime] = None
    interval_days: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=500)


class InstallmentResponse(CamelModel):
    installment_number: int
    amount: float
    due_date: datetime
    status: str
    paid_amount: float
    paid_date: Optional[datetime] = None


class EMIPlanResponse(CamelModel):
    id: str
    student_id: str
    student_code: str
    total_amount: float
    down_payment: float
    remaining_amount: float
    number_of_installments: int
    frequency: str
    interval_days: Optional[int] = None
    start_date: datetime
    installments: List[InstallmentResponse]
    is_active: bool
    notes: Optional[str] = None
    fees_paid: float
    overdue_count: int
    completion_percentage: int
    next_due: Optional[InstallmentResponse] = None
    created_at: datetime
    updated_at: datetime


class EMIPlanEnvelope(CamelModel):
    success: bool = True
    emi_plan: EMIPlanResponse
