"""
Return Processing Service

WHY: Customers bring goods back. A return is a separate record of kind
"return" that points at the original sale; the original is never
edited. Stock goes back on the shelf and the refund lowers the running
total of the shift the original sale belonged to.

RETURN RULES:
- Cannot return a return
- Quantities are keyed by the line_id of the original sale's items
- Cumulative returned quantity per line cannot exceed what was sold
- Refund total uses the price snapshot on the original line, never the
  current catalog price
- Fiado balances are not reversed
"""

from __future__ import annotations

from contextlib import nullcontext
from datetime import datetime

from flask import current_app

from ..constants import (
    COLLECTION_PRODUCTS,
    COLLECTION_SALES,
    KIND_RETURN,
    REFUND_METHODS,
    RETURN_TICKET_PREFIX,
)
from ..snapshots import SaleSnapshot
from ..time_utils import utcnow
from ..validation import ValidationError, parse_int, require_text
from .cache import get_cache
from .store import StorageError, get_store


class ReturnError(ValidationError):
    """Raised for return processing errors. Nothing has been written."""
    pass


def returns_for(sale: SaleSnapshot, strict: bool = False) -> list[SaleSnapshot]:
    """Prior return records of one sale."""
    return [
        s for s in get_cache(strict).sales()
        if s.kind == KIND_RETURN and (s.notes or {}).get("original_sale_id") == sale.id
    ]


def returnable_quantities(sale: SaleSnapshot, strict: bool = False) -> dict[int, int]:
    """line_id -> quantity still returnable (sold minus already returned)."""
    remaining = {item.line_id: item.quantity for item in sale.items}
    for prior in returns_for(sale, strict):
        for item in prior.items:
            if item.line_id in remaining:
                remaining[item.line_id] -= item.quantity
    return {line_id: max(qty, 0) for line_id, qty in remaining.items()}


def _parse_quantities(raw) -> dict[int, int]:
    if not isinstance(raw, dict):
        raise ReturnError("quantities must be an object of line_id -> quantity")
    parsed = {}
    for key, value in raw.items():
        try:
            line_id = parse_int(key, "line_id")
            quantity = parse_int(value, "quantity")
        except ValidationError as exc:
            raise ReturnError(str(exc)) from exc
        if quantity < 0:
            raise ReturnError(f"Return quantity for line {line_id} cannot be negative")
        parsed[line_id] = quantity
    return parsed


def register_return(
    sale_id: int,
    quantities,
    reason: str,
    refund_method: str,
    *,
    now: datetime | None = None,
) -> SaleSnapshot:
    """
    Record a (partial) return against a sale.

    Args:
        sale_id: the original sale
        quantities: {line_id: quantity}; zero-quantity lines are skipped
        reason: free text, required
        refund_method: cash, card or product

    Raises:
        ReturnError: any rejected input; nothing is written
        StorageError: a write failed
    """
    if refund_method not in REFUND_METHODS:
        raise ReturnError(f"refund_method must be one of: {', '.join(REFUND_METHODS)}")
    try:
        reason = require_text(reason, "reason", max_length=255)
    except ValidationError as exc:
        raise ReturnError(str(exc)) from exc
    requested = _parse_quantities(quantities)

    cache = get_cache(strict=True)
    cache.invalidate(COLLECTION_SALES, COLLECTION_PRODUCTS)

    original = cache.sale(sale_id)
    if not original:
        raise ReturnError(f"Sale {sale_id} not found")
    if original.is_return:
        raise ReturnError("Cannot return a return record")

    lines = {item.line_id: item for item in original.items}
    unknown = sorted(set(requested) - set(lines))
    if unknown:
        raise ReturnError("Unknown line ids for this sale", details={"line_ids": unknown})

    remaining = returnable_quantities(original, strict=True)
    items = []
    for line_id, item in lines.items():
        quantity = requested.get(line_id, 0)
        if quantity == 0:
            continue
        if quantity > remaining[line_id]:
            raise ReturnError(
                f"Cannot return {quantity} of {item.name}",
                details={"line_id": line_id, "requested": quantity, "returnable": remaining[line_id]},
            )
        items.append({
            "line_id": line_id,
            "product_id": item.product_id,
            "name": item.name,
            "price": item.price,
            "quantity": quantity,
        })

    if not items:
        raise ReturnError("Select at least one item to return")
    total = sum(i["price"] * i["quantity"] for i in items)
    if total <= 0:
        raise ReturnError("Refund total must be positive")

    products = {p.id: p for p in cache.products()}
    ticket = f"{RETURN_TICKET_PREFIX}{original.ticket}"
    store = get_store()
    atomic = current_app.config.get("ATOMIC_POSTING")
    step = "insert return"
    return_row = None
    try:
        with store.atomic() if atomic else nullcontext():
            return_row = store.insert(COLLECTION_SALES, {
                "ticket": ticket,
                "kind": KIND_RETURN,
                "total": total,
                "payment_method": refund_method,
                "shift_id": original.shift_id,
                "seller": original.seller,
                "created_at": now or utcnow(),
                "items": items,
                "notes": {
                    "reason": reason,
                    "original_ticket": original.ticket,
                    "original_sale_id": original.id,
                    "original_payment_method": original.payment_method,
                    "refund_method": refund_method,
                },
            })
            for item in items:
                product = products.get(item["product_id"])
                if product is None:
                    # Product left the catalog; nothing to restock
                    continue
                step = f"stock update for product {product.id}"
                store.update(COLLECTION_PRODUCTS, product.id, {"stock": product.stock + item["quantity"]})
    except StorageError:
        if return_row is not None and not atomic:
            current_app.logger.error(
                "Return %s partially posted: failed at %s; earlier writes were kept",
                ticket, step,
            )
        raise

    cache.invalidate(COLLECTION_SALES, COLLECTION_PRODUCTS)
    current_app.logger.info("Return %s posted: %s %s", ticket, refund_method, total)
    return SaleSnapshot.from_row(return_row)
