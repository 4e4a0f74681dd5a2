"""
Returns: stock goes back, refund uses the sold price, the original
sale is never touched and cumulative returns stay within what was sold.
"""

import pytest

from mostrador.constants import COLLECTION_PRODUCTS, COLLECTION_SALES
from mostrador.services import catalog_service, fiado_service, shift_service
from mostrador.services.cache import get_cache
from mostrador.services.checkout_service import Payment, checkout
from mostrador.services.return_service import ReturnError, register_return, returnable_quantities
from mostrador.services.store import RowStore, StorageError


@pytest.fixture
def sale_of_three(make_product, lines):
    product = make_product(name="Pan", price=1000, stock=10)
    result = checkout(lines((product, 3)), Payment("card"))
    return product, result.sale


class TestRegisterReturn:

    def test_partial_return(self, sale_of_three):
        product, sale = sale_of_three

        record = register_return(sale.id, {1: 1}, "Damaged", "cash")

        assert catalog_service.get_product(product.id).stock == 8
        assert record.kind == "return"
        assert record.total == 1000
        assert record.ticket == f"R-{sale.ticket}"
        assert [(i.line_id, i.quantity) for i in record.items] == [(1, 1)]

        original = get_cache().sale(sale.id)
        assert original == sale

    def test_notes_reference_original(self, sale_of_three):
        _, sale = sale_of_three
        record = register_return(sale.id, {"1": 2}, "Wrong item", "product")
        assert record.notes == {
            "reason": "Wrong item",
            "original_ticket": sale.ticket,
            "original_sale_id": sale.id,
            "original_payment_method": "card",
            "refund_method": "product",
        }

    def test_refund_uses_snapshot_price(self, sale_of_three):
        product, sale = sale_of_three
        catalog_service.edit_product(product.id, {"price": 1500})
        record = register_return(sale.id, {1: 2}, "Changed mind", "card")
        assert record.total == 2000

    def test_copies_shift_and_seller_from_original(self, make_product, lines, open_shift):
        product = make_product()
        sale = checkout(lines((product, 2)), Payment("card")).sale
        shift_service.close_shift(50000)
        shift_service.open_shift("Luis", "night")

        record = register_return(sale.id, {1: 1}, "Expired", "cash")

        assert record.shift_id == open_shift.id
        assert record.seller == "Ana"

    def test_fiado_balance_not_reversed(self, make_product, make_client, lines):
        product = make_product(price=2000)
        client = make_client()
        sale = checkout(lines((product, 2)), Payment("fiado", client_id=client.id)).sale

        register_return(sale.id, {1: 2}, "Returned", "product")

        assert fiado_service.get_client(client.id).balance == 4000


class TestReturnLimits:

    def test_cumulative_returns_capped(self, sale_of_three):
        _, sale = sale_of_three
        register_return(sale.id, {1: 2}, "First", "cash")
        assert returnable_quantities(get_cache().sale(sale.id)) == {1: 1}

        with pytest.raises(ReturnError):
            register_return(sale.id, {1: 2}, "Second", "cash")
        register_return(sale.id, {1: 1}, "Second", "cash")
        assert returnable_quantities(get_cache().sale(sale.id)) == {1: 0}

    def test_cannot_return_more_than_sold(self, sale_of_three):
        _, sale = sale_of_three
        with pytest.raises(ReturnError):
            register_return(sale.id, {1: 4}, "Too many", "cash")

    def test_nothing_selected(self, sale_of_three):
        _, sale = sale_of_three
        with pytest.raises(ReturnError):
            register_return(sale.id, {1: 0}, "Nothing", "cash")

    def test_negative_quantity(self, sale_of_three):
        _, sale = sale_of_three
        with pytest.raises(ReturnError):
            register_return(sale.id, {1: -1}, "Negative", "cash")

    def test_unknown_line(self, sale_of_three):
        _, sale = sale_of_three
        with pytest.raises(ReturnError) as exc:
            register_return(sale.id, {7: 1}, "Unknown", "cash")
        assert exc.value.details["line_ids"] == [7]

    def test_cannot_return_a_return(self, sale_of_three):
        _, sale = sale_of_three
        record = register_return(sale.id, {1: 1}, "First", "cash")
        with pytest.raises(ReturnError):
            register_return(record.id, {1: 1}, "Again", "cash")

    @pytest.mark.parametrize("refund_method", ["fiado", "staff", None])
    def test_invalid_refund_method(self, sale_of_three, refund_method):
        _, sale = sale_of_three
        with pytest.raises(ReturnError):
            register_return(sale.id, {1: 1}, "Bad refund", refund_method)

    def test_reason_required(self, sale_of_three):
        _, sale = sale_of_three
        with pytest.raises(ReturnError):
            register_return(sale.id, {1: 1}, "  ", "cash")

    def test_unknown_sale(self, db_session):
        with pytest.raises(ReturnError):
            register_return(999999, {1: 1}, "Missing", "cash")

    def test_aborts_before_writing_when_products_unreadable(self, sale_of_three, unreadable):
        _, sale = sale_of_three
        unreadable(COLLECTION_PRODUCTS)

        with pytest.raises(StorageError):
            register_return(sale.id, {1: 1}, "Damaged", "cash")

        assert [r["ticket"] for r in RowStore().fetch_all(COLLECTION_SALES)] == [sale.ticket]
        assert RowStore().fetch_all(COLLECTION_PRODUCTS)[0]["stock"] == 7
