from datetime import datetime
from typing import Any, Optional

from app.schemas.base import CamelModel
from app.schemas.student import StudentResponse


class PaymentCollectRequest(CamelModel):
    """
    Loosely typed on purpose: amount and mode are checked by the payment
    validators so a bad value is a 400 with a readable message.
    """
    student_id: Optional[Any] = None
    amount: Optional[Any] = None
    payment_mode: Optional[Any] = None
    description: Optional[Any] = None
    notes: Optional[Any] = None


class TransactionCancelRequest(CamelModel):
    reason: Optional[str] = None


class TransactionResponse(CamelModel):
    id: str
    student_id: str
    student_name: str
    amount: float
    type: str
    date: datetime
    status: str
    payment_mode: str
    recorded_by: str
    receipt_number: Optional[str] = None
    previous_balance: float
    new_balance: float
    description: str
    notes: str
    is_verified: bool
    created_at: datetime
    updated_at: datetime


class PaymentCollectResponse(CamelModel):
    success: bool = True
    message: str = "Payment collected successfully"
    transaction: TransactionResponse
    student: StudentResponse
    warning: Optional[str] = None


class ReceiptResponse(CamelModel):
    receipt_number: Optional[str] = None
    date: datetime
    transaction_id: str
    student_id: str
    student_code: Optional[str] = None
    student_name: str
    student_email: Optional[str] = None
    course: Optional[str] = None
    amount: float
    amount_in_words: str
    type: str
    payment_mode: str
    description: str
    notes: str
    status: str
    previous_balance: float
    new_balance: float
    total_fee: Optional[float] = None
    total_paid: float
    pending_amount: Optional[float] = None
    recorded_by: str
    organization_name: str
    organization_address: str
    organization_phone: str
    organization_email: str
