"""
Cart Service: per-terminal POS state

WHY: The cart is transient. It is never written to the row store; it
lives in the terminal's signed session cookie and is cleared on
checkout. The same object carries the payment selection and the
admin-unlocked flag for the terminal.

The cart functions take a `products` mapping (id -> ProductSnapshot)
rather than reading the cache themselves, so they stay pure.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field

from flask import session

from ..constants import PAYMENT_CASH, PAYMENT_FIADO, PAYMENT_METHODS
from ..snapshots import ProductSnapshot
from ..validation import ValidationError, parse_amount, parse_int


SESSION_KEY = "pos"


class CartError(ValidationError):
    """Raised for cart operation errors."""
    pass


@dataclass
class CartLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class CartEntry:
    product: ProductSnapshot
    quantity: int

    @property
    def subtotal(self) -> int:
        return self.product.price * self.quantity

    def to_dict(self) -> dict:
        return {
            "product": self.product.to_dict(),
            "quantity": self.quantity,
            "subtotal": self.subtotal,
        }


@dataclass(frozen=True)
class CartTotals:
    total: int
    items: int
    change: int

    def to_dict(self) -> dict:
        return {"total": self.total, "items": self.items, "change": self.change}


@dataclass
class PosSession:
    lines: list[CartLine] = field(default_factory=list)
    payment_method: str = PAYMENT_CASH
    cash_received: int | None = None
    fiado_client_id: int | None = None
    admin_unlocked: bool = False
    terminal_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> "PosSession":
        data = data or {}
        lines = []
        for raw in data.get("lines") or []:
            try:
                lines.append(CartLine(product_id=int(raw["product_id"]), quantity=int(raw["quantity"])))
            except (KeyError, TypeError, ValueError):
                continue
        method = data.get("payment_method")
        return cls(
            lines=lines,
            payment_method=method if method in PAYMENT_METHODS else PAYMENT_CASH,
            cash_received=data.get("cash_received"),
            fiado_client_id=data.get("fiado_client_id"),
            admin_unlocked=bool(data.get("admin_unlocked", False)),
            terminal_id=data.get("terminal_id"),
        )

    def to_dict(self) -> dict:
        return {
            "lines": [{"product_id": l.product_id, "quantity": l.quantity} for l in self.lines],
            "payment_method": self.payment_method,
            "cash_received": self.cash_received,
            "fiado_client_id": self.fiado_client_id,
            "admin_unlocked": self.admin_unlocked,
            "terminal_id": self.terminal_id,
        }

    def line_for(self, product_id: int) -> CartLine | None:
        return next((l for l in self.lines if l.product_id == product_id), None)


# =============================================================================
# CART OPERATIONS
# =============================================================================

def add_product(pos: PosSession, products: dict[int, ProductSnapshot], product_id: int) -> CartLine:
    """Add one unit. Rejected when it would exceed the product's stock."""
    product = products.get(product_id)
    if not product:
        raise CartError(f"Product {product_id} not found")

    line = pos.line_for(product_id)
    new_quantity = (line.quantity if line else 0) + 1
    if new_quantity > product.stock:
        raise CartError(
            f"Insufficient stock for {product.name}",
            details={"product_id": product_id, "requested_quantity": new_quantity, "stock": product.stock},
        )

    if line:
        line.quantity = new_quantity
    else:
        line = CartLine(product_id=product_id, quantity=1)
        pos.lines.append(line)
    return line


def update_quantity(pos: PosSession, products: dict[int, ProductSnapshot], product_id: int, quantity) -> CartLine | None:
    """Set a line's quantity. Zero or less removes the line."""
    product = products.get(product_id)
    if not product:
        raise CartError(f"Product {product_id} not found")

    quantity = parse_int(quantity, "quantity")
    if quantity <= 0:
        remove_line(pos, product_id)
        return None

    if quantity > product.stock:
        raise CartError(
            f"Insufficient stock for {product.name}",
            details={"product_id": product_id, "requested_quantity": quantity, "stock": product.stock},
        )

    line = pos.line_for(product_id)
    if line:
        line.quantity = quantity
    else:
        line = CartLine(product_id=product_id, quantity=quantity)
        pos.lines.append(line)
    return line


def remove_line(pos: PosSession, product_id: int) -> None:
    pos.lines = [l for l in pos.lines if l.product_id != product_id]


def clear_cart(pos: PosSession) -> None:
    """Reset the cart and the payment inputs after a checkout."""
    pos.lines = []
    pos.cash_received = None
    pos.fiado_client_id = None


def select_payment(
    pos: PosSession,
    method: str,
    cash_received=None,
    fiado_client_id=None,
) -> None:
    """
    Switch payment method. Leaving cash drops the received amount;
    leaving fiado drops the selected client.
    """
    if method not in PAYMENT_METHODS:
        raise CartError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    pos.payment_method = method
    if method == PAYMENT_CASH:
        if cash_received is not None:
            pos.cash_received = parse_amount(cash_received, "cash_received")
    else:
        pos.cash_received = None

    if method == PAYMENT_FIADO:
        if fiado_client_id is not None:
            pos.fiado_client_id = parse_int(fiado_client_id, "client_id")
    else:
        pos.fiado_client_id = None


def detail(lines: list[CartLine], products: dict[int, ProductSnapshot]) -> list[CartEntry]:
    """Resolve lines against the catalog; lines for vanished products drop out."""
    entries = []
    for line in lines:
        product = products.get(line.product_id)
        if product is None:
            continue
        entries.append(CartEntry(product=product, quantity=line.quantity))
    return entries


def totals(pos: PosSession, products: dict[int, ProductSnapshot]) -> CartTotals:
    entries = detail(pos.lines, products)
    total = sum(e.subtotal for e in entries)
    items = sum(e.quantity for e in entries)
    change = 0
    if pos.payment_method == PAYMENT_CASH and pos.cash_received is not None:
        change = pos.cash_received - total
    return CartTotals(total=total, items=items, change=change)


# =============================================================================
# TERMINAL SESSION
# =============================================================================

def load_pos_session() -> PosSession:
    pos = PosSession.from_dict(session.get(SESSION_KEY))
    if not pos.terminal_id:
        pos.terminal_id = secrets.token_hex(8)
        save_pos_session(pos)
    return pos


def save_pos_session(pos: PosSession) -> None:
    session[SESSION_KEY] = pos.to_dict()
