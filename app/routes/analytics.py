from fastapi import APIRouter, Depends, Query

from app.core.auth import get_current_user
from app.db.mongo import get_db
from app.models.user import User
from app.schemas.analytics import FeeSummaryResponse, PaymentModesResponse, RevenueTrendsResponse
from app.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/revenue-trends", response_model=RevenueTrendsResponse)
async def revenue_trends(
    months: int = Query(6),
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    trends = await AnalyticsService(db).revenue_trends(months)
    return RevenueTrendsResponse.model_validate(trends.model_dump())


@router.get("/payment-modes", response_model=PaymentModesResponse)
async def payment_modes(
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    breakdown = await AnalyticsService(db).payment_modes()
    return PaymentModesResponse.model_validate(breakdown.model_dump())


@router.get("/summary", response_model=FeeSummaryResponse)
async def fee_summary(
    current_user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    summary = await AnalyticsService(db).summary()
    return FeeSummaryResponse.model_validate(summary.model_dump())
