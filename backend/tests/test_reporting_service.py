"""
Sales reports over time windows and the dashboard snapshot.
"""

from datetime import datetime

import pytest

from mostrador.services import reporting_service
from mostrador.services.checkout_service import Payment, checkout
from mostrador.services.reporting_service import ReportError, report_window, top_products
from mostrador.services.return_service import register_return
from mostrador.snapshots import SaleSnapshot


# Wednesday
NOW = datetime(2024, 5, 15, 12, 0)


class TestReportWindow:

    def test_today(self, app):
        with app.app_context():
            window = report_window("today", now=NOW)
        assert window.start == datetime(2024, 5, 15)
        assert window.end == datetime(2024, 5, 16)
        assert not window.contains(datetime(2024, 5, 16, 0, 1))

    def test_week_runs_sunday_to_saturday(self, app):
        with app.app_context():
            window = report_window("week", now=NOW)
        assert window.start == datetime(2024, 5, 12)
        assert window.end == datetime(2024, 5, 19)

    def test_week_on_a_sunday(self, app):
        with app.app_context():
            window = report_window("week", now=datetime(2024, 5, 19, 8, 0))
        assert window.start == datetime(2024, 5, 19)

    @pytest.mark.parametrize(
        "now,start,end",
        [
            (NOW, datetime(2024, 5, 1), datetime(2024, 6, 1)),
            (datetime(2024, 12, 31, 23, 0), datetime(2024, 12, 1), datetime(2025, 1, 1)),
        ],
    )
    def test_month(self, app, now, start, end):
        with app.app_context():
            window = report_window("month", now=now)
        assert (window.start, window.end) == (start, end)

    def test_custom_date_only_end_is_inclusive(self, app):
        with app.app_context():
            window = report_window("custom", start="2024-05-01", end="2024-05-10", now=NOW)
        assert window.start == datetime(2024, 5, 1)
        assert window.end == datetime(2024, 5, 11)
        assert window.contains(datetime(2024, 5, 10, 23, 59))
        assert not window.contains(datetime(2024, 5, 11))

    def test_local_timezone(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "REPORT_TIMEZONE", "America/Santiago")
        with app.app_context():
            # 02:00 UTC on the 15th is still the 14th in Santiago (UTC-4)
            window = report_window("today", now=datetime(2024, 5, 15, 2, 0))
        assert window.start == datetime(2024, 5, 14, 4, 0)

    @pytest.mark.parametrize(
        "range_name,start,end",
        [("yesterday", None, None), ("custom", "not-a-date", None), ("custom", "2024-05-10", "2024-05-01")],
    )
    def test_invalid(self, app, range_name, start, end):
        with app.app_context():
            with pytest.raises(ReportError):
                report_window(range_name, start=start, end=end, now=NOW)


class TestTopProducts:

    def test_ties_keep_first_encountered(self):
        sales = [
            SaleSnapshot.from_row({"id": 2, "ticket": "000002", "items": [
                {"product_id": 7, "name": "Te", "price": 900, "quantity": 2},
            ]}),
            SaleSnapshot.from_row({"id": 1, "ticket": "000001", "items": [
                {"product_id": 3, "name": "Pan", "price": 1000, "quantity": 2},
                {"product_id": 5, "name": "Leche", "price": 1190, "quantity": 5},
            ]}),
        ]
        ranked = top_products(sales)
        assert [e["name"] for e in ranked] == ["Leche", "Te", "Pan"]
        assert ranked[0]["revenue"] == 5950

    def test_limit(self):
        sales = [SaleSnapshot.from_row({"id": 1, "ticket": "000001", "items": [
            {"product_id": i, "name": f"P{i}", "price": 10, "quantity": i} for i in range(1, 30)
        ]})]
        assert len(top_products(sales, 20)) == 20


class TestSalesReport:

    def test_summary_excludes_returns_and_other_windows(self, make_product, lines):
        bread = make_product(name="Pan", price=1000, stock=50)
        milk = make_product(name="Leche", price=1190, stock=50)

        checkout(lines((bread, 1)), Payment("card"), now=datetime(2024, 5, 1, 10, 0))
        sale = checkout(lines((bread, 2), (milk, 1)), Payment("cash", cash_received=5000), now=datetime(2024, 5, 15, 9, 0))
        checkout(lines((milk, 3)), Payment("transfer"), now=datetime(2024, 5, 14, 18, 0))
        register_return(sale.sale.id, {1: 1}, "Broken", "cash", now=datetime(2024, 5, 15, 10, 0))

        report = reporting_service.sales_report("week", now=NOW)

        assert report["tickets"] == 2
        assert report["total"] == 3190 + 3570
        assert report["by_payment"] == {"cash": 3190, "card": 0, "transfer": 3570, "fiado": 0, "staff": 0}
        assert report["top_products"][0] == {"product_id": milk.id, "name": "Leche", "quantity": 4, "revenue": 4760}
        assert report["by_seller"] == [{"seller": "Mostrador", "total": 6760, "tickets": 2}]

    def test_empty_window(self, db_session):
        report = reporting_service.sales_report("today", now=NOW)
        assert report["total"] == 0
        assert report["tickets"] == 0
        assert report["top_products"] == []


class TestDashboard:

    def test_without_shift(self, make_product, make_client):
        make_product(name="Arroz", stock=2, min_stock=5)
        dashboard = reporting_service.dashboard_snapshot()
        assert dashboard["shift"] is None
        assert dashboard["summary"]["total"] == 0
        assert dashboard["recent"] == []
        assert [p["name"] for p in dashboard["low_stock"]] == ["Arroz"]

    def test_active_shift_view(self, open_shift, make_product, make_client, lines):
        bread = make_product(name="Pan", price=1000, stock=100, min_stock=5)
        cheese = make_product(name="Queso", price=6000, stock=6, min_stock=5)
        client = make_client(credit_limit=50000)

        for _ in range(9):
            checkout(lines((bread, 1)), Payment("card"))
        sale = checkout(lines((cheese, 1)), Payment("fiado", client_id=client.id)).sale
        checkout(lines((bread, 2)), Payment("staff"))
        register_return(sale.id, {1: 1}, "Moldy", "product")

        dashboard = reporting_service.dashboard_snapshot()

        assert dashboard["shift"]["id"] == open_shift.id
        assert len(dashboard["recent"]) == 8
        assert dashboard["returns_total"] == 6000
        assert dashboard["fiado_total"] == 6000
        assert dashboard["staff_total"] == 2000
        assert [e["name"] for e in dashboard["top_products"]] == ["Pan", "Queso"]
        assert [c["name"] for c in dashboard["debtors"]] == ["Rosa Fuentes"]
