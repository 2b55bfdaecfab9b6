"""
Dashboard and report endpoints.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Query

from ...core.reports import build_dashboard, build_report
from ..dependencies import AuthenticatedUser, RecordRepositoryDep, UserIdDep
from ..schemas import CamelModel, VisitResponse
from .payments import PaymentResponse

router = APIRouter()


class DashboardResponse(CamelModel):
    today_visits: list[VisitResponse]
    upcoming_visits: list[VisitResponse]
    total_revenue: float
    pending_amount: float
    pending_payments: list[PaymentResponse]


class ReportResponse(CamelModel):
    completed_visits: int
    total_revenue: float
    products_used: int
    monthly_revenue: dict[str, float]


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Dashboard figures",
    description="Today's pending visits, the next five visits, revenue and open payments.",
)
async def dashboard(
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    repository: RecordRepositoryDep,
    today: Optional[date] = Query(None, description="Defaults to the server's date"),
) -> DashboardResponse:
    summary = build_dashboard(
        visits=repository.list_visits(user_id),
        payments=repository.list_payments(user_id),
        today=today or date.today(),
    )
    return DashboardResponse(
        today_visits=[VisitResponse.from_visit(v) for v in summary.today_visits],
        upcoming_visits=[VisitResponse.from_visit(v) for v in summary.upcoming_visits],
        total_revenue=summary.total_revenue,
        pending_amount=summary.pending_amount,
        pending_payments=[PaymentResponse.from_payment(p) for p in summary.pending_payments],
    )


@router.get(
    "/summary",
    response_model=ReportResponse,
    summary="Report totals",
    description="Completed visits, revenue, products used and revenue per month.",
)
async def report_summary(
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    repository: RecordRepositoryDep,
) -> ReportResponse:
    report = build_report(
        visits=repository.list_visits(user_id),
        payments=repository.list_payments(user_id),
    )
    return ReportResponse(
        completed_visits=report.completed_visits,
        total_revenue=report.total_revenue,
        products_used=report.products_used,
        monthly_revenue=report.monthly_revenue,
    )
