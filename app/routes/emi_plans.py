from fastapi import APIRouter, Depends, status

from app.core.auth import get_current_user, require_super_admin
from app.db.mongo import get_db
from app.models.user import User
from app.schemas.emi_plan import EMIPlanCreate, EMIPlanEnvelope, EMIPlanResponse, InstallmentResponse
from app.services.emi_service import EMIPlanView, EMIService
from app.utils.emi_schedule import InstallmentProgress

router = APIRouter(prefix="/emi-plans", tags=["emi-plans"])


def _to_installment_response(installment: InstallmentProgress) -> InstallmentResponse:
    return InstallmentResponse(
        installment_number=installment.installment_number,
        amount=installment.amount,
        due_date=installment.due_date,
        status=installment.status.value,
        paid_amount=installment.paid_amount,
        paid_date=installment.paid_date
    )


def _to_emi_plan_response(view: EMIPlanView) -> EMIPlanResponse:
    plan = view.plan
    return EMIPlanResponse(
        id=str(plan.id),
        student_id=str(plan.student_id),
        student_code=view.student_code,
        total_amount=plan.total_amount,
        down_payment=plan.down_payment,
        remaining_amount=plan.remaining_amount,
        number_of_installments=plan.number_of_installments,
        frequency=plan.frequency.value,
        interval_days=plan.interval_days,
        start_date=plan.start_date,
        installments=[_to_installment_response(i) for i in view.installments],
        is_active=plan.is_active,
        notes=plan.notes,
        fees_paid=view.fees_paid,
        overdue_count=view.overdue_count,
        completion_percentage=view.completion_percentage,
        next_due=_to_installment_response(view.next_due) if view.next_due else None,
        created_at=plan.created_at,
        updated_at=plan.updated_at
    )


@router.post("", response_model=EMIPlanEnvelope, status_code=status.HTTP_201_CREATED)
async def create_emi_plan(
    payload: EMIPlanCreate,
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """Create the installment schedule for a student."""
    view = await EMIService(db).create_plan(
        student_id=payload.student_id,
        number_of_installments=payload.number_of_installments,
        frequency=payload.frequency,
        start_date=payload.start_date,
        interval_days=payload.interval_days,
        notes=payload.notes
    )
    return EMIPlanEnvelope(emi_plan=_to_emi_plan_response(view))


@router.get("/{student_id}", response_model=EMIPlanResponse)
async def get_emi_plan(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """Plan with installment statuses derived from the current ledger."""
    view = await EMIService(db).get_plan(student_id)
    return _to_emi_plan_response(view)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_emi_plan(
    student_id: str,
    current_user: User = Depends(require_super_admin),
    db = Depends(get_db)
):
    """Remove a plan so it can be re-created. The ledger is untouched."""
    await EMIService(db).delete_plan(student_id)
