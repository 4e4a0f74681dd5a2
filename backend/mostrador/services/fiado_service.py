"""
Fiado (store credit) Service

WHY: Trusted neighbourhood clients buy on credit up to a limit and pay
the debt down over time. Every balance change is mirrored by an
append-only client movement carrying the resulting balance.

Balance rules:
- fiado sale: balance += total (checked against the limit at checkout)
- abono (partial payment): balance -= amount, never below zero
- pago total (full settlement): balance = 0
"""

from __future__ import annotations

from flask import current_app

from ..constants import (
    COLLECTION_CLIENTS,
    COLLECTION_MOVEMENTS,
    MOVEMENT_ABONO,
    MOVEMENT_FIADO,
    MOVEMENT_PAGO_TOTAL,
    PAYMENT_MODE_PARTIAL,
    PAYMENT_MODE_TOTAL,
)
from ..snapshots import ClientSnapshot, MovementSnapshot
from ..time_utils import utcnow
from ..validation import ValidationError, parse_amount, require_text
from .cache import get_cache
from .store import get_store


class FiadoError(ValidationError):
    """Raised for credit account errors."""
    pass


def get_client(client_id: int, strict: bool = False) -> ClientSnapshot:
    client = get_cache(strict).client(client_id)
    if not client:
        raise FiadoError(f"Client {client_id} not found")
    return client


def list_clients() -> list[ClientSnapshot]:
    return list(get_cache().clients())


def clients_with_debt(limit: int | None = None) -> list[ClientSnapshot]:
    debtors = sorted(
        (c for c in get_cache().clients() if c.balance > 0),
        key=lambda c: c.balance,
        reverse=True,
    )
    return debtors[:limit] if limit else debtors


def client_movements(client_id: int) -> list[MovementSnapshot]:
    """Movements for one client, newest first."""
    get_client(client_id)
    return [m for m in get_cache().movements() if m.client_id == client_id]


def create_client(name: str, credit_limit, authorized: bool = False) -> ClientSnapshot:
    """New credit account. Balance always starts at zero."""
    try:
        name = require_text(name, "name", max_length=128)
        credit_limit = parse_amount(credit_limit, "credit_limit")
    except ValidationError as exc:
        raise FiadoError(str(exc)) from exc

    row = get_store().insert(COLLECTION_CLIENTS, {
        "name": name,
        "authorized": bool(authorized),
        "balance": 0,
        "credit_limit": credit_limit,
    })
    get_cache().invalidate(COLLECTION_CLIENTS)
    current_app.logger.info("Client %s created with limit %s", row["id"], credit_limit)
    return ClientSnapshot.from_row(row)


def set_authorization(client_id: int, authorized: bool) -> ClientSnapshot:
    """Toggle fiado authorization. Balance is untouched."""
    if not isinstance(authorized, bool):
        raise FiadoError("authorized must be a boolean")
    get_client(client_id, strict=True)
    row = get_store().update(COLLECTION_CLIENTS, client_id, {"authorized": authorized})
    get_cache().invalidate(COLLECTION_CLIENTS)
    return ClientSnapshot.from_row(row)


def record_payment(
    client_id: int,
    mode: str,
    amount=None,
    description: str | None = None,
) -> tuple[ClientSnapshot, MovementSnapshot]:
    """
    Register a payment against a client's debt.

    mode "abono": amount must be > 0 and <= balance.
    mode "total": balance goes to 0 whatever the amount; the amount
    (default: the balance being settled) is still logged.
    """
    if mode not in (PAYMENT_MODE_PARTIAL, PAYMENT_MODE_TOTAL):
        raise FiadoError(f"mode must be '{PAYMENT_MODE_PARTIAL}' or '{PAYMENT_MODE_TOTAL}'")

    client = get_client(client_id, strict=True)

    try:
        amount = parse_amount(amount, "amount", allow_none=(mode == PAYMENT_MODE_TOTAL))
    except ValidationError as exc:
        raise FiadoError(str(exc)) from exc

    if mode == PAYMENT_MODE_PARTIAL:
        if amount <= 0:
            raise FiadoError("amount must be > 0")
        if amount > client.balance:
            raise FiadoError(
                "amount exceeds the client's current balance",
                details={"balance": client.balance, "amount": amount},
            )
        new_balance = max(client.balance - amount, 0)
        movement_type = MOVEMENT_ABONO
        description = (description or "").strip() or "Partial payment"
    else:
        if amount is None:
            amount = client.balance
        new_balance = 0
        movement_type = MOVEMENT_PAGO_TOTAL
        description = "Full debt settlement"

    store = get_store()
    row = store.update(COLLECTION_CLIENTS, client_id, {"balance": new_balance})
    movement = store.insert(COLLECTION_MOVEMENTS, {
        "client_id": client_id,
        "amount": amount,
        "movement_type": movement_type,
        "description": description,
        "balance_after": new_balance,
        "created_at": utcnow(),
    })
    get_cache().invalidate(COLLECTION_CLIENTS, COLLECTION_MOVEMENTS)
    return ClientSnapshot.from_row(row), MovementSnapshot.from_row(movement)


def post_charge(client: ClientSnapshot, amount: int, ticket: str) -> tuple[dict, dict]:
    """
    Charge a fiado sale to the client: balance += amount and append the
    movement. Limit checks happen at checkout, before the sale exists.
    """
    new_balance = client.balance + amount
    store = get_store()
    row = store.update(COLLECTION_CLIENTS, client.id, {"balance": new_balance})
    movement = store.insert(COLLECTION_MOVEMENTS, {
        "client_id": client.id,
        "amount": amount,
        "movement_type": MOVEMENT_FIADO,
        "description": f"Purchase ticket #{ticket}",
        "balance_after": new_balance,
        "created_at": utcnow(),
    })
    return row, movement
