from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from app.core.auth import get_current_user, require_super_admin
from app.db.mongo import get_db
from app.models.base import parse_object_id
from app.models.transaction import Transaction
from app.models.user import User
from app.schemas.transaction import ReceiptResponse, TransactionCancelRequest, TransactionResponse
from app.services.receipt_service import ReceiptService
from app.services.transaction_service import TransactionService, DEFAULT_LIST_LIMIT
from app.core.exceptions import NotFoundError

router = APIRouter(prefix="/transactions", tags=["transactions"])


def to_transaction_response(transaction: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=str(transaction.id),
        student_id=str(transaction.student_id),
        student_name=transaction.student_name,
        amount=transaction.amount,
        type=transaction.type.value,
        date=transaction.date,
        status=transaction.status.value,
        payment_mode=transaction.payment_mode.value,
        recorded_by=transaction.recorded_by,
        receipt_number=transaction.receipt_number,
        previous_balance=transaction.previous_balance,
        new_balance=transaction.new_balance,
        description=transaction.description,
        notes=transaction.notes,
        is_verified=transaction.is_verified,
        created_at=transaction.created_at,
        updated_at=transaction.updated_at
    )


@router.get("", response_model=List[TransactionResponse])
async def list_transactions(
    limit: int = Query(DEFAULT_LIST_LIMIT),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """Recent ledger entries, newest first."""
    transactions = await TransactionService(db).list_recent(limit, status)
    return [to_transaction_response(t) for t in transactions]


@router.get("/student/{student_id}", response_model=List[TransactionResponse])
async def list_student_transactions(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """Full history for one student, newest first."""
    transactions = await TransactionService(db).list_for_student(student_id)
    return [to_transaction_response(t) for t in transactions]


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    transaction = await TransactionService(db).get(transaction_id)
    return to_transaction_response(transaction)


@router.get("/{transaction_id}/receipt", response_model=ReceiptResponse)
async def get_receipt(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """Printable receipt for one entry."""
    oid = parse_object_id(transaction_id)
    if oid is None:
        raise NotFoundError("Transaction not found", {"transactionId": transaction_id})
    receipt = await ReceiptService(db).render(oid)
    return ReceiptResponse.model_validate(receipt.model_dump())


@router.post("/{transaction_id}/cancel", response_model=TransactionResponse)
async def cancel_transaction(
    transaction_id: str,
    payload: Optional[TransactionCancelRequest] = None,
    current_user: User = Depends(require_super_admin),
    db = Depends(get_db)
):
    """Void a Completed entry (super admin only)."""
    transaction = await TransactionService(db).cancel(
        transaction_id, payload.reason if payload else None, current_user
    )
    return to_transaction_response(transaction)


@router.patch("/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: str,
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """Only notes can be edited on a ledger entry."""
    transaction = await TransactionService(db).update_notes(transaction_id, payload)
    return to_transaction_response(transaction)
