"""
Fiado (store credit) accounts: creation, authorization and payments.
"""

import pytest

from mostrador.constants import COLLECTION_CLIENTS, COLLECTION_MOVEMENTS
from mostrador.services import fiado_service
from mostrador.services.checkout_service import Payment, checkout
from mostrador.services.fallback import FALLBACK_CLIENTS
from mostrador.services.fiado_service import FiadoError
from mostrador.services.store import RowStore, StorageError


@pytest.fixture
def indebted_client(make_product, make_client, lines):
    """Client owing 7000 after one fiado purchase."""
    product = make_product(price=7000)
    client = make_client(credit_limit=10000)
    checkout(lines((product, 1)), Payment("fiado", client_id=client.id))
    return fiado_service.get_client(client.id)


class TestClients:

    def test_create_starts_at_zero(self, db_session):
        client = fiado_service.create_client("Pedro Soto", 15000)
        assert client.balance == 0
        assert client.authorized is False
        assert client.available_credit == 15000

    @pytest.mark.parametrize("name,limit", [("", 1000), ("Pedro", -1), ("Pedro", None)])
    def test_create_rejects_invalid(self, db_session, name, limit):
        with pytest.raises(FiadoError):
            fiado_service.create_client(name, limit)

    def test_authorization_toggle_keeps_balance(self, indebted_client):
        client = fiado_service.set_authorization(indebted_client.id, False)
        assert client.authorized is False
        assert client.balance == 7000

    def test_authorization_requires_bool(self, make_client):
        client = make_client()
        with pytest.raises(FiadoError):
            fiado_service.set_authorization(client.id, "yes")

    def test_clients_with_debt_sorted(self, make_product, make_client, lines):
        product = make_product(price=1000, stock=50)
        small = make_client(name="Small", credit_limit=50000)
        large = make_client(name="Large", credit_limit=50000)
        make_client(name="Clean")
        checkout(lines((product, 1)), Payment("fiado", client_id=small.id))
        checkout(lines((product, 5)), Payment("fiado", client_id=large.id))

        assert [c.name for c in fiado_service.clients_with_debt()] == ["Large", "Small"]
        assert [c.name for c in fiado_service.clients_with_debt(limit=1)] == ["Large"]


class TestPayments:

    def test_partial_payment(self, indebted_client):
        client, movement = fiado_service.record_payment(indebted_client.id, "abono", 3000)
        assert client.balance == 4000
        assert movement.movement_type == "abono"
        assert movement.amount == 3000
        assert movement.balance_after == 4000
        assert movement.description == "Partial payment"

    def test_partial_payment_custom_description(self, indebted_client):
        _, movement = fiado_service.record_payment(indebted_client.id, "abono", 1000, "Pago viernes")
        assert movement.description == "Pago viernes"

    @pytest.mark.parametrize("amount", [0, -100, 7001, None])
    def test_partial_payment_bounds(self, indebted_client, amount):
        with pytest.raises(FiadoError):
            fiado_service.record_payment(indebted_client.id, "abono", amount)
        assert fiado_service.get_client(indebted_client.id).balance == 7000

    def test_full_settlement(self, indebted_client):
        client, movement = fiado_service.record_payment(indebted_client.id, "total")
        assert client.balance == 0
        assert movement.movement_type == "pago-total"
        assert movement.amount == 7000
        assert movement.description == "Full debt settlement"

    def test_full_settlement_logs_supplied_amount(self, indebted_client):
        client, movement = fiado_service.record_payment(indebted_client.id, "total", 6500)
        assert client.balance == 0
        assert movement.amount == 6500

    def test_unknown_mode(self, indebted_client):
        with pytest.raises(FiadoError):
            fiado_service.record_payment(indebted_client.id, "refund", 100)

    def test_movements_newest_first(self, indebted_client):
        fiado_service.record_payment(indebted_client.id, "abono", 2000)
        fiado_service.record_payment(indebted_client.id, "total")
        movements = fiado_service.client_movements(indebted_client.id)
        assert [m.movement_type for m in movements] == ["pago-total", "abono", "fiado"]
        assert [m.balance_after for m in movements] == [0, 5000, 7000]

    def test_payment_aborts_when_clients_unreadable(self, indebted_client, unreadable):
        unreadable(COLLECTION_CLIENTS)

        # The clients view still renders on demo rows
        assert [c.name for c in fiado_service.list_clients()] == [r["name"] for r in FALLBACK_CLIENTS]

        with pytest.raises(StorageError):
            fiado_service.record_payment(indebted_client.id, "abono", 1000)

        assert [r["balance"] for r in RowStore().fetch_all(COLLECTION_CLIENTS)] == [7000]
        assert len(RowStore().fetch_all(COLLECTION_MOVEMENTS)) == 1
