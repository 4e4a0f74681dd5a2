"""
Flask CLI commands (flask system/shifts/reports ...).
"""

import pytest

from mostrador.services import catalog_service, fiado_service, shift_service
from mostrador.services.checkout_service import Payment, checkout


@pytest.fixture
def runner(app, db_session):
    return app.test_cli_runner()


class TestSystemCommands:

    def test_init_db_is_idempotent(self, runner):
        result = runner.invoke(args=["system", "init-db"])
        assert result.exit_code == 0
        assert "PASS" in result.output

    def test_seed_demo_once(self, runner):
        result = runner.invoke(args=["system", "seed-demo"])
        assert result.exit_code == 0, result.output
        assert len(catalog_service.list_products()) == 5
        assert all(c.balance == 0 for c in fiado_service.list_clients())

        result = runner.invoke(args=["system", "seed-demo"])
        assert "SKIP" in result.output
        assert len(catalog_service.list_products()) == 5

    def test_reset_db_requires_confirmation(self, runner, make_product):
        make_product()
        result = runner.invoke(args=["system", "reset-db"], input="n\n")
        assert result.exit_code != 0
        assert len(catalog_service.list_products()) == 1


class TestShiftCommands:

    def test_current_without_shift(self, runner):
        result = runner.invoke(args=["shifts", "current"])
        assert "No open shift" in result.output

    def test_current_and_history(self, runner, make_product, lines):
        shift_service.open_shift("Ana", "day", 50000)
        product = make_product(price=1000)
        checkout(lines((product, 2)), Payment("cash", cash_received=2000))

        result = runner.invoke(args=["shifts", "current"])
        assert "Ana" in result.output
        assert "Expected cash: 52000" in result.output

        shift_service.close_shift(52000)
        result = runner.invoke(args=["shifts", "history"])
        assert "Ana" in result.output
        assert "diff 0" in result.output


class TestReportCommands:

    def test_sales_report(self, runner, make_product, lines):
        product = make_product(name="Pan", price=1000)
        checkout(lines((product, 3)), Payment("card"))

        result = runner.invoke(args=["reports", "sales", "--range", "today"])

        assert result.exit_code == 0, result.output
        assert "Total: 3000  Tickets: 1" in result.output
        assert "3 x Pan (3000)" in result.output

    def test_unknown_range(self, runner):
        result = runner.invoke(args=["reports", "sales", "--range", "decade"])
        assert result.exit_code != 0
