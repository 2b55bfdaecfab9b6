"""
Dashboard and report figures.

Pure aggregations over records that were already loaded; nothing here
talks to the store.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from .pools.models import Payment, PaymentStatus, Product, Visit, VisitStatus


LOW_STOCK_THRESHOLD = 10
MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class StockStatus(Enum):
    IN_STOCK = "in-stock"
    LOW_STOCK = "low-stock"
    OUT_OF_STOCK = "out-of-stock"


def stock_status(stock: int) -> StockStatus:
    if stock > LOW_STOCK_THRESHOLD:
        return StockStatus.IN_STOCK
    if stock > 0:
        return StockStatus.LOW_STOCK
    return StockStatus.OUT_OF_STOCK


def filter_products(products: list[Product], status: Optional[StockStatus]) -> list[Product]:
    """
    Filter the catalog by stock status.

    IN_STOCK also includes low-stock items: anything that can still be
    taken to a visit.
    """
    if status is None:
        return list(products)
    if status == StockStatus.IN_STOCK:
        return [p for p in products if stock_status(p.stock) != StockStatus.OUT_OF_STOCK]
    return [p for p in products if stock_status(p.stock) == status]


@dataclass
class DashboardSummary:
    today_visits: list[Visit] = field(default_factory=list)
    upcoming_visits: list[Visit] = field(default_factory=list)
    total_revenue: float = 0.0
    pending_payments: list[Payment] = field(default_factory=list)

    @property
    def pending_amount(self) -> float:
        return sum(p.amount for p in self.pending_payments)


@dataclass
class ReportSummary:
    completed_visits: int = 0
    total_revenue: float = 0.0
    products_used: int = 0
    monthly_revenue: dict[str, float] = field(default_factory=dict)


def build_dashboard(
    visits: list[Visit],
    payments: list[Payment],
    today: date,
    upcoming_limit: int = 5,
) -> DashboardSummary:
    """Today's pending visits, the next few visits, and money in/out."""
    today_visits = [
        v for v in visits
        if v.scheduled_date == today and v.status == VisitStatus.PENDING
    ]
    upcoming = sorted(
        (v for v in visits if v.scheduled_date >= today),
        key=lambda v: (v.scheduled_date, v.time),
    )[:upcoming_limit]

    return DashboardSummary(
        today_visits=today_visits,
        upcoming_visits=upcoming,
        total_revenue=sum(p.amount for p in payments if p.status == PaymentStatus.PAID),
        pending_payments=[p for p in payments if p.status == PaymentStatus.PENDING],
    )


def build_report(visits: list[Visit], payments: list[Payment]) -> ReportSummary:
    completed = [v for v in visits if v.status == VisitStatus.COMPLETED]
    paid = [p for p in payments if p.status == PaymentStatus.PAID]

    monthly = {label: 0.0 for label in MONTH_LABELS}
    for payment in paid:
        monthly[MONTH_LABELS[payment.date.month - 1]] += payment.amount

    return ReportSummary(
        completed_visits=len(completed),
        total_revenue=sum(p.amount for p in paid),
        products_used=sum(v.products_quantity for v in completed),
        monthly_revenue=monthly,
    )
