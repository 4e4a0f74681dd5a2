"""
Checkout Service: cart validation and sale posting

WHY: Checkout is where a cart becomes a ticket. Every payment method has
its own preconditions and side effects, so each one gets a validate
function (and optionally a post function) registered in PAYMENT_RULES,
and checkout() is the single entry point that dispatches on the method.

POSTING SEQUENCE (in order):
1. insert the sale record
2. decrement stock for every sold product
3. fiado only: raise the client's balance and append a movement

With ATOMIC_POSTING off (the default) each step is its own commit. A
failure after step 1 leaves the earlier steps in place; it is logged
with the ticket and the failing step and the StorageError propagates.
With ATOMIC_POSTING on, the whole sequence commits or rolls back as one.
"""

from __future__ import annotations

from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from flask import current_app

from ..constants import (
    COLLECTION_CLIENTS,
    COLLECTION_MOVEMENTS,
    COLLECTION_PRODUCTS,
    COLLECTION_SALES,
    COLLECTION_SHIFTS,
    KIND_SALE,
    PAYMENT_CARD,
    PAYMENT_CASH,
    PAYMENT_FIADO,
    PAYMENT_METHODS,
    PAYMENT_STAFF,
    PAYMENT_TRANSFER,
    SHIFT_OPEN,
    TICKET_WIDTH,
)
from ..snapshots import ClientSnapshot, SaleSnapshot, ShiftSnapshot
from ..time_utils import utcnow
from ..validation import ValidationError, parse_amount, parse_int
from . import fiado_service
from .cache import get_cache
from .cart_service import CartEntry, CartLine, detail
from .store import StorageError, get_store


class CheckoutError(ValidationError):
    """Raised when a cart cannot be checked out. Nothing has been written."""
    pass


@dataclass(frozen=True)
class Payment:
    method: str
    cash_received: Optional[int] = None
    client_id: Optional[int] = None


@dataclass(frozen=True)
class CheckoutContext:
    entries: list[CartEntry]
    total: int
    active_shift: Optional[ShiftSnapshot]


@dataclass
class TenderPlan:
    """What a payment method adds to the sale row, and whom it charges."""
    fields: dict = field(default_factory=dict)
    client: Optional[ClientSnapshot] = None


@dataclass(frozen=True)
class PaymentRule:
    validate: Callable[[Payment, CheckoutContext], TenderPlan]
    post: Optional[Callable[[TenderPlan, dict], Optional[dict]]] = None


@dataclass(frozen=True)
class CheckoutResult:
    sale: SaleSnapshot
    change: Optional[int]
    client: Optional[ClientSnapshot] = None

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "change": self.change,
            "client": self.client.to_dict() if self.client else None,
        }


# =============================================================================
# PER-METHOD RULES
# =============================================================================

def _validate_cash(payment: Payment, ctx: CheckoutContext) -> TenderPlan:
    received = payment.cash_received
    if received is None or received <= 0:
        raise CheckoutError("Cash received is required for cash payments")
    if received < ctx.total:
        raise CheckoutError(
            "Cash received is less than the sale total",
            details={"total": ctx.total, "cash_received": received},
        )
    return TenderPlan(fields={"cash_received": received, "change_amount": received - ctx.total})


def _validate_fiado(payment: Payment, ctx: CheckoutContext) -> TenderPlan:
    if payment.client_id is None:
        raise CheckoutError("A client must be selected for fiado sales")
    client = get_cache(strict=True).client(payment.client_id)
    if not client:
        raise CheckoutError(f"Client {payment.client_id} not found")
    if not client.authorized:
        raise CheckoutError(f"Client {client.name} is not authorized for fiado")
    projected = client.balance + ctx.total
    if projected > client.credit_limit:
        raise CheckoutError(
            "Sale exceeds the client's credit limit",
            details={
                "balance": client.balance,
                "total": ctx.total,
                "credit_limit": client.credit_limit,
            },
        )
    return TenderPlan(fields={"notes": {"client_id": client.id}}, client=client)


def _post_fiado(plan: TenderPlan, sale_row: dict) -> dict:
    client_row, _movement = fiado_service.post_charge(plan.client, sale_row["total"], sale_row["ticket"])
    return client_row


def _validate_staff(payment: Payment, ctx: CheckoutContext) -> TenderPlan:
    if ctx.active_shift is None:
        raise CheckoutError("Staff consumption requires an open shift")
    return TenderPlan()


def _no_precondition(payment: Payment, ctx: CheckoutContext) -> TenderPlan:
    return TenderPlan()


PAYMENT_RULES: dict[str, PaymentRule] = {
    PAYMENT_CASH: PaymentRule(validate=_validate_cash),
    PAYMENT_CARD: PaymentRule(validate=_no_precondition),
    PAYMENT_TRANSFER: PaymentRule(validate=_no_precondition),
    PAYMENT_FIADO: PaymentRule(validate=_validate_fiado, post=_post_fiado),
    PAYMENT_STAFF: PaymentRule(validate=_validate_staff),
}


# =============================================================================
# HELPERS
# =============================================================================

def next_ticket(sales: list[SaleSnapshot]) -> str:
    """Highest numeric ticket + 1, zero padded. Return tickets ("R-...") are ignored."""
    highest = 0
    for sale in sales:
        if sale.ticket.isdigit():
            highest = max(highest, int(sale.ticket))
    return str(highest + 1).zfill(TICKET_WIDTH)


def build_payment(method: str, cash_received=None, client_id=None) -> Payment:
    """Normalize raw input into a Payment."""
    if method not in PAYMENT_METHODS:
        raise CheckoutError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    try:
        received = parse_amount(cash_received, "cash_received", allow_none=True)
        client = parse_int(client_id, "client_id") if client_id is not None else None
    except ValidationError as exc:
        raise CheckoutError(str(exc)) from exc
    return Payment(
        method=method,
        cash_received=received if method == PAYMENT_CASH else None,
        client_id=client if method == PAYMENT_FIADO else None,
    )


def _check_stock(entries: list[CartEntry]) -> None:
    insufficient = [
        {
            "product_id": e.product.id,
            "name": e.product.name,
            "requested_quantity": e.quantity,
            "stock": e.product.stock,
        }
        for e in entries
        if e.quantity > e.product.stock
    ]
    if insufficient:
        raise CheckoutError("Insufficient stock to complete the sale", details={"items": insufficient})


def _posting_scope(store):
    if current_app.config.get("ATOMIC_POSTING"):
        return store.atomic()
    return nullcontext()


# =============================================================================
# CHECKOUT
# =============================================================================

def checkout(lines: list[CartLine], payment: Payment, *, now: datetime | None = None) -> CheckoutResult:
    """
    Validate a cart against the chosen payment and post the sale.

    All validation happens against freshly fetched collections before
    the first write. Raises CheckoutError for any rejected cart and
    StorageError if a write fails.
    """
    rule = PAYMENT_RULES.get(payment.method)
    if rule is None:
        raise CheckoutError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    cache = get_cache(strict=True)
    cache.invalidate(COLLECTION_PRODUCTS, COLLECTION_CLIENTS, COLLECTION_SHIFTS, COLLECTION_SALES)

    products = {p.id: p for p in cache.products()}
    entries = [e for e in detail(lines, products) if e.quantity > 0]
    if not entries:
        raise CheckoutError("Cart is empty")
    _check_stock(entries)

    total = sum(e.subtotal for e in entries)
    active_shift = next((s for s in cache.shifts() if s.status == SHIFT_OPEN), None)
    ctx = CheckoutContext(entries=entries, total=total, active_shift=active_shift)

    plan = rule.validate(payment, ctx)

    ticket = next_ticket(cache.sales())
    items = [
        {
            "line_id": position,
            "product_id": e.product.id,
            "name": e.product.name,
            "price": e.product.price,
            "quantity": e.quantity,
        }
        for position, e in enumerate(entries, start=1)
    ]
    fields = {
        "ticket": ticket,
        "kind": KIND_SALE,
        "total": total,
        "payment_method": payment.method,
        "cash_received": None,
        "change_amount": None,
        "shift_id": active_shift.id if active_shift else None,
        "seller": active_shift.seller if active_shift else current_app.config.get("DEFAULT_SELLER", "Mostrador"),
        "created_at": now or utcnow(),
        "items": items,
        "notes": None,
    }
    fields.update(plan.fields)

    store = get_store()
    step = "insert sale"
    sale_row = None
    posted_client = None
    try:
        with _posting_scope(store):
            sale_row = store.insert(COLLECTION_SALES, fields)
            for entry in entries:
                step = f"stock update for product {entry.product.id}"
                store.update(COLLECTION_PRODUCTS, entry.product.id, {"stock": entry.product.stock - entry.quantity})
            if rule.post is not None:
                step = f"{payment.method} posting"
                posted_client = rule.post(plan, sale_row)
    except StorageError:
        if sale_row is not None and not current_app.config.get("ATOMIC_POSTING"):
            current_app.logger.error(
                "Ticket %s partially posted: failed at %s; earlier writes were kept",
                ticket, step,
            )
        raise

    cache.invalidate(COLLECTION_SALES, COLLECTION_PRODUCTS, COLLECTION_CLIENTS, COLLECTION_MOVEMENTS)
    current_app.logger.info("Ticket %s posted: %s %s", ticket, payment.method, total)

    client = ClientSnapshot.from_row(posted_client) if posted_client else None
    return CheckoutResult(
        sale=SaleSnapshot.from_row(sale_row),
        change=sale_row.get("change_amount"),
        client=client,
    )


def change_payment_method(sale_id: int, method: str) -> SaleSnapshot:
    """
    Correct the tender recorded on a sale.

    Only the payment_method field changes. No balances or stock move,
    so reassigning to or from fiado does not touch any client account.
    """
    if method not in PAYMENT_METHODS:
        raise CheckoutError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    sale = get_cache(strict=True).sale(sale_id)
    if not sale:
        raise CheckoutError(f"Sale {sale_id} not found")
    if sale.kind != KIND_SALE:
        raise CheckoutError("Only sales can have their payment method reassigned")

    row = get_store().update(COLLECTION_SALES, sale_id, {"payment_method": method})
    get_cache().invalidate(COLLECTION_SALES)
    return SaleSnapshot.from_row(row)
