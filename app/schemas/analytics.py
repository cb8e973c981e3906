from typing import List

from app.schemas.base import CamelModel


class MonthRevenueResponse(CamelModel):
    month: str
    revenue: float
    count: int


class RevenueTrendsResponse(CamelModel):
    trends: List[MonthRevenueResponse]
    current_month: float
    last_month: float
    growth: float
    growth_positive: bool


class ModeShareResponse(CamelModel):
    mode: str
    amount: float
    count: int
    percentage: int


class PaymentModesResponse(CamelModel):
    modes: List[ModeShareResponse]
    total: float


class FeeSummaryResponse(CamelModel):
    total_students: int
    total_fee_offered: float
    total_collected: float
    total_pending: float
    fully_paid_students: int
