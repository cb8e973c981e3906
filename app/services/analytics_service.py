from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.core.exceptions import InvalidInputError
from app.models.base import utcnow
from app.repositories.student_repo import StudentRepository
from app.repositories.transaction_repo import TransactionRepository

MAX_TREND_MONTHS = 24


class MonthRevenue(BaseModel):
    month: str
    revenue: float
    count: int


class RevenueTrends(BaseModel):
    trends: List[MonthRevenue]
    current_month: float
    last_month: float
    growth: float
    growth_positive: bool


class ModeShare(BaseModel):
    mode: str
    amount: float
    count: int
    percentage: int


class PaymentModeBreakdown(BaseModel):
    modes: List[ModeShare]
    total: float


class FeeSummary(BaseModel):
    total_students: int
    total_fee_offered: float
    total_collected: float
    total_pending: float
    fully_paid_students: int


def _round_half_up(value: float, places: str = "1") -> Decimal:
    return Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def growth_percent(current: float, previous: float) -> float:
    if previous == 0:
        return 0.0 if current == 0 else 100.0
    return float(_round_half_up((current - previous) / previous * 100, "0.1"))


class AnalyticsService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.students = StudentRepository(db)
        self.transactions = TransactionRepository(db)

    async def revenue_trends(self, months: int = 6, now: Optional[datetime] = None) -> RevenueTrends:
        if months < 1 or months > MAX_TREND_MONTHS:
            raise InvalidInputError(
                f"months must be between 1 and {MAX_TREND_MONTHS}",
                {"months": months}
            )

        now = now or utcnow()
        this_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        # Always include last month so growth can be computed
        span = max(months, 2)
        first_month = this_month - relativedelta(months=span - 1)

        rows = await self.transactions.monthly_revenue(first_month)
        by_month = {(row["_id"]["year"], row["_id"]["month"]): row for row in rows}

        series = []
        for offset in range(span):
            month = first_month + relativedelta(months=offset)
            row = by_month.get((month.year, month.month), {})
            series.append(MonthRevenue(
                month=month.strftime("%b %Y"),
                revenue=round(row.get("revenue", 0), 2),
                count=row.get("count", 0),
            ))

        current = series[-1].revenue
        previous = series[-2].revenue
        growth = growth_percent(current, previous)

        return RevenueTrends(
            trends=series[-months:],
            current_month=current,
            last_month=previous,
            growth=growth,
            growth_positive=growth >= 0,
        )

    async def payment_modes(self) -> PaymentModeBreakdown:
        rows = await self.transactions.revenue_by_payment_mode()
        total = round(sum(row["amount"] for row in rows), 2)

        modes = [
            ModeShare(
                mode=row["_id"],
                amount=round(row["amount"], 2),
                count=row["count"],
                percentage=int(_round_half_up(row["amount"] / total * 100)) if total else 0,
            )
            for row in rows
        ]
        return PaymentModeBreakdown(modes=modes, total=total)

    async def summary(self) -> FeeSummary:
        students = await self.students.list_all()
        total_fee = sum(s.fee_offered for s in students)
        collected = sum(s.fees_paid for s in students)

        return FeeSummary(
            total_students=len(students),
            total_fee_offered=round(total_fee, 2),
            total_collected=round(collected, 2),
            total_pending=round(sum(s.pending_amount for s in students), 2),
            fully_paid_students=sum(1 for s in students if s.fees_paid >= s.fee_offered),
        )
