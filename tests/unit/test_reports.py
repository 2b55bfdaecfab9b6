"""
Unit tests for dashboard and report aggregation.
"""

from datetime import date

import pytest

from poolcare.core.pools.models import (
    Payment,
    PaymentStatus,
    Product,
    ProductUsage,
    Visit,
    VisitStatus,
)
from poolcare.core.reports import (
    StockStatus,
    build_dashboard,
    build_report,
    filter_products,
    stock_status,
)


def make_visit(day: int, time: str = "09:00", status=VisitStatus.PENDING, products=()) -> Visit:
    return Visit(
        client_id="c1",
        pool_id="p1",
        scheduled_date=date(2024, 3, day),
        time=time,
        status=status,
        products_used=list(products),
    )


PAYMENTS = [
    Payment(client_id="c1", amount=150.0, date=date(2024, 1, 10), status=PaymentStatus.PAID),
    Payment(client_id="c1", amount=200.0, date=date(2024, 3, 5), status=PaymentStatus.PAID),
    Payment(client_id="c2", amount=80.0, date=date(2024, 3, 20), status=PaymentStatus.PENDING),
]


class TestStockStatus:

    @pytest.mark.parametrize("stock,expected", [
        (0, StockStatus.OUT_OF_STOCK),
        (1, StockStatus.LOW_STOCK),
        (10, StockStatus.LOW_STOCK),
        (11, StockStatus.IN_STOCK),
    ])
    def test_thresholds(self, stock, expected):
        assert stock_status(stock) == expected

    def test_in_stock_filter_includes_low_stock(self):
        products = [
            Product(name="Tabs", cost=10, stock=50),
            Product(name="Shock", cost=10, stock=3),
            Product(name="Clarifier", cost=10, stock=0),
        ]

        assert [p.name for p in filter_products(products, StockStatus.IN_STOCK)] == ["Tabs", "Shock"]
        assert [p.name for p in filter_products(products, StockStatus.LOW_STOCK)] == ["Shock"]
        assert [p.name for p in filter_products(products, StockStatus.OUT_OF_STOCK)] == ["Clarifier"]
        assert len(filter_products(products, None)) == 3


class TestDashboard:

    def test_today_only_lists_pending_visits(self):
        visits = [
            make_visit(15, "08:00"),
            make_visit(15, "10:00", status=VisitStatus.COMPLETED),
            make_visit(16),
        ]

        summary = build_dashboard(visits, PAYMENTS, today=date(2024, 3, 15))

        assert [v.time for v in summary.today_visits] == ["08:00"]

    def test_upcoming_is_sorted_and_limited(self):
        visits = [make_visit(day) for day in (20, 14, 18, 16, 17, 19, 15)]

        summary = build_dashboard(visits, [], today=date(2024, 3, 15))

        assert [v.scheduled_date.day for v in summary.upcoming_visits] == [15, 16, 17, 18, 19]

    def test_money_totals(self):
        summary = build_dashboard([], PAYMENTS, today=date(2024, 3, 15))

        assert summary.total_revenue == 350.0
        assert summary.pending_amount == 80.0
        assert len(summary.pending_payments) == 1


class TestReport:

    def test_counts_completed_visits_and_products(self):
        visits = [
            make_visit(1, status=VisitStatus.COMPLETED, products=[ProductUsage("a", 2), ProductUsage("b")]),
            make_visit(2, status=VisitStatus.COMPLETED),
            make_visit(3, status=VisitStatus.SKIPPED),
            make_visit(4, products=[ProductUsage("a", 5)]),
        ]

        report = build_report(visits, PAYMENTS)

        assert report.completed_visits == 2
        assert report.products_used == 3

    def test_monthly_revenue_counts_paid_only(self):
        report = build_report([], PAYMENTS)

        assert report.total_revenue == 350.0
        assert report.monthly_revenue["Jan"] == 150.0
        assert report.monthly_revenue["Mar"] == 200.0
        assert len(report.monthly_revenue) == 12
