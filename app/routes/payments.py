from fastapi import APIRouter, Depends, status

from app.core.auth import get_current_user, require_super_admin
from app.db.mongo import get_db
from app.models.user import User
from app.routes.students import to_student_response
from app.routes.transactions import to_transaction_response
from app.schemas.reconciliation import FixResponse, VerifyResponse
from app.schemas.transaction import PaymentCollectRequest, PaymentCollectResponse
from app.services.payment_service import PaymentService
from app.services.reconciliation_service import ReconciliationService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/collect", response_model=PaymentCollectResponse, status_code=status.HTTP_201_CREATED)
async def collect_payment(
    payload: PaymentCollectRequest,
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """Record a fee payment and update the student's balance."""
    result = await PaymentService(db).collect(
        student_id=payload.student_id,
        amount=payload.amount,
        actor=current_user,
        payment_mode=payload.payment_mode,
        description=payload.description,
        notes=payload.notes
    )
    return PaymentCollectResponse(
        transaction=to_transaction_response(result.transaction),
        student=to_student_response(result.student),
        warning=result.warning
    )


@router.get("/verify", response_model=VerifyResponse)
async def verify_payments(
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """Compare every cached balance against the ledger."""
    report = await ReconciliationService(db).verify()
    return VerifyResponse.model_validate(report.model_dump())


@router.post("/fix-inconsistencies", response_model=FixResponse)
async def fix_inconsistencies(
    current_user: User = Depends(require_super_admin),
    db = Depends(get_db)
):
    """Overwrite drifted balances with the ledger totals (super admin only)."""
    report = await ReconciliationService(db).fix(current_user)
    return FixResponse.model_validate({
        **report.model_dump(),
        "message": f"Fixed {report.count} inconsistent balance(s)"
    })
