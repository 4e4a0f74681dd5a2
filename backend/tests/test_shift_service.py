"""
Shift lifecycle and cash reconciliation.

Verifies:
- The running summary is a pure, order-independent fold
- Returns lower the total and their refund tender; product refunds only the total
- Close freezes expected/counted/difference
- At most one shift is open
"""

import random
from datetime import datetime

import pytest

from mostrador.constants import COLLECTION_SALES, COLLECTION_SHIFTS
from mostrador.services import shift_service
from mostrador.services.checkout_service import Payment, checkout
from mostrador.services.return_service import register_return
from mostrador.services.shift_service import ShiftError, ShiftStateError, expected_cash, summarize
from mostrador.services.store import RowStore, StorageError, get_store
from mostrador.snapshots import SaleSnapshot


def _record(id_, total, method, kind="sale", shift_id=1):
    return SaleSnapshot.from_row({
        "id": id_, "ticket": f"{id_:06d}", "kind": kind, "total": total,
        "payment_method": method, "shift_id": shift_id,
    })


# =============================================================================
# PURE RECONCILIATION
# =============================================================================


class TestSummarize:

    def test_empty_shift(self):
        summary = summarize([], 1)
        assert summary.total == 0
        assert summary.tickets == 0
        assert summary.by_payment == {"cash": 0, "card": 0, "transfer": 0, "fiado": 0, "staff": 0}

    def test_sales_and_returns(self):
        records = [
            _record(1, 2000, "cash"),
            _record(2, 3000, "card"),
            _record(3, 1500, "fiado"),
            _record(4, 500, "cash", kind="return"),
            _record(5, 700, "product", kind="return"),
        ]
        summary = summarize(records, 1)
        assert summary.total == 2000 + 3000 + 1500 - 500 - 700
        assert summary.tickets == 3
        assert summary.by_payment["cash"] == 1500
        assert summary.by_payment["card"] == 3000
        assert summary.by_payment["fiado"] == 1500
        assert "product" not in summary.by_payment

    def test_other_shifts_ignored(self):
        summary = summarize([_record(1, 2000, "cash", shift_id=2)], 1)
        assert summary.total == 0

    def test_order_independent(self):
        records = [_record(i, 100 * i, m) for i, m in enumerate(["cash", "card", "staff", "transfer", "cash"], start=1)]
        records.append(_record(9, 150, "card", kind="return"))
        expected = summarize(records, 1)
        for _ in range(5):
            shuffled = records[:]
            random.shuffle(shuffled)
            assert summarize(shuffled, 1) == expected

    def test_expected_cash_without_float(self):
        summary = summarize([_record(1, 2000, "cash")], 1)
        assert expected_cash(None, summary) == 2000
        assert expected_cash(10000, summary) == 12000


# =============================================================================
# LIFECYCLE
# =============================================================================


class TestOpenShift:

    def test_open(self, db_session):
        shift = shift_service.open_shift("Ana", "night", 20000, now=datetime(2024, 5, 1, 22, 0))
        assert shift.status == "open"
        assert shift.shift_type == "night"
        assert shift.initial_cash == 20000
        assert shift_service.get_active_shift().id == shift.id

    def test_second_open_rejected(self, open_shift):
        with pytest.raises(ShiftStateError) as exc:
            shift_service.open_shift("Luis", "day", 0)
        assert exc.value.details["shift_id"] == open_shift.id

    def test_index_blocks_second_open_row(self, open_shift):
        # Bypasses the guard, as a racing terminal would
        with pytest.raises(StorageError):
            get_store().insert(COLLECTION_SHIFTS, {"seller": "Luis", "status": "open", "start_time": datetime(2024, 5, 1)})

    @pytest.mark.parametrize(
        "seller,shift_type,initial_cash",
        [
            ("", "day", 0),
            ("Ana", "evening", 0),
            ("Ana", "day", -1),
        ],
    )
    def test_invalid_input(self, db_session, seller, shift_type, initial_cash):
        with pytest.raises(ShiftError):
            shift_service.open_shift(seller, shift_type, initial_cash)


class TestCloseShift:

    def test_close_without_open_shift(self, db_session):
        with pytest.raises(ShiftStateError):
            shift_service.close_shift(0)

    def test_negative_count_rejected(self, open_shift):
        with pytest.raises(ShiftError):
            shift_service.close_shift(-5)

    @pytest.mark.parametrize("counted,difference", [(52500, 500), (51000, -1000), (52000, 0)])
    def test_variance_sign(self, open_shift, make_product, lines, counted, difference):
        product = make_product(price=1000)
        checkout(lines((product, 2)), Payment("cash", cash_received=2000))

        shift, summary = shift_service.close_shift(counted)

        assert shift.cash_expected == 52000
        assert shift.cash_counted == counted
        assert shift.difference == difference
        assert shift.total_sales == summary.total == 2000
        assert shift.tickets == 1
        assert shift.payments_breakdown["cash"] == 2000
        assert shift_service.get_active_shift() is None

    def test_cash_refund_lowers_expected_cash(self, open_shift, make_product, lines):
        product = make_product(price=1000)
        sale = checkout(lines((product, 3)), Payment("cash", cash_received=3000)).sale
        register_return(sale.id, {1: 1}, "Broken", "cash")

        shift, _ = shift_service.close_shift(52000)
        assert shift.cash_expected == 52000
        assert shift.total_sales == 2000

    def test_closed_shift_in_history(self, open_shift):
        shift_service.close_shift(50000)
        history = shift_service.shift_history()
        assert [s.id for s in history] == [open_shift.id]
        # A new shift can open once the previous one closed
        assert shift_service.open_shift("Luis").is_open

    def test_close_aborts_when_sales_unreadable(self, open_shift, make_product, lines, unreadable):
        product = make_product(price=1000)
        checkout(lines((product, 2)), Payment("cash", cash_received=2000))
        unreadable(COLLECTION_SALES)

        with pytest.raises(StorageError):
            shift_service.close_shift(52000)

        row = RowStore().fetch_all(COLLECTION_SHIFTS)[0]
        assert row["status"] == "open"
        assert row["cash_expected"] is None
        assert row["total_sales"] is None

    def test_open_aborts_when_shifts_unreadable(self, db_session, unreadable):
        unreadable(COLLECTION_SHIFTS)

        with pytest.raises(StorageError):
            shift_service.open_shift("Ana", "day", 50000)

        assert RowStore().fetch_all(COLLECTION_SHIFTS) == []


class TestShiftReport:

    def test_report_totals(self, open_shift, make_product, make_client, lines):
        product = make_product(price=1000, stock=20)
        client = make_client()
        sale = checkout(lines((product, 2)), Payment("cash", cash_received=2000)).sale
        checkout(lines((product, 3)), Payment("fiado", client_id=client.id))
        checkout(lines((product, 1)), Payment("staff"))
        register_return(sale.id, {1: 1}, "Broken", "cash")

        report = shift_service.shift_report(open_shift.id)

        assert report["summary"]["total"] == 2000 + 3000 + 1000 - 1000
        assert report["summary"]["tickets"] == 3
        assert report["returns_total"] == 1000
        assert report["fiado_total"] == 3000
        assert report["staff_total"] == 1000
        assert report["cash_expected"] == 50000 + 2000 - 1000
        assert len(report["sales"]) == 4

    def test_unknown_shift(self, db_session):
        with pytest.raises(ShiftError):
            shift_service.shift_report(999999)
