"""
Shift and Cash Reconciliation Service

WHY: A shift is one seller's period of accountability for the cash
drawer. Closing it compares counted cash against what the drawer should
hold and freezes the shift's totals.

DESIGN PRINCIPLES:
- At most one shift is open at a time (store-wide)
- The active shift is a query over the shifts collection, never a global
- Running totals are a pure fold over the shift's records, recomputed
  on demand rather than maintained incrementally
- Closed shifts are immutable and are never reopened
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from flask import current_app

from ..constants import (
    COLLECTION_SALES,
    COLLECTION_SHIFTS,
    KIND_RETURN,
    PAYMENT_CASH,
    PAYMENT_FIADO,
    PAYMENT_METHODS,
    PAYMENT_STAFF,
    SHIFT_CLOSED,
    SHIFT_OPEN,
    SHIFT_TYPES,
)
from ..snapshots import SaleSnapshot, ShiftSnapshot
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, parse_amount, require_text
from .cache import get_cache
from .store import StorageError, get_store


class ShiftError(ValidationError):
    """Raised for invalid shift input."""
    pass


class ShiftStateError(ConflictError):
    """Raised when the shift lifecycle forbids the action (already open, none open)."""
    pass


def empty_breakdown() -> dict[str, int]:
    return {method: 0 for method in PAYMENT_METHODS}


@dataclass
class ShiftSummary:
    total: int = 0
    tickets: int = 0
    by_payment: dict[str, int] = field(default_factory=empty_breakdown)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "tickets": self.tickets,
            "by_payment": dict(self.by_payment),
        }


# =============================================================================
# PURE RECONCILIATION
# =============================================================================

def summarize(sales: Iterable[SaleSnapshot], shift_id: int | None) -> ShiftSummary:
    """
    Fold a shift's records into its running totals.

    Sales add to the total, their tender and the ticket count. Returns
    subtract from the total and from their refund tender; a product
    exchange refund has no tender bucket and only lowers the total.
    Order of `sales` does not matter.
    """
    summary = ShiftSummary()
    for sale in sales:
        if sale.shift_id != shift_id:
            continue
        if sale.kind == KIND_RETURN:
            summary.total -= sale.total
            if sale.payment_method in summary.by_payment:
                summary.by_payment[sale.payment_method] -= sale.total
            continue
        summary.total += sale.total
        summary.tickets += 1
        if sale.payment_method in summary.by_payment:
            summary.by_payment[sale.payment_method] += sale.total
    return summary


def expected_cash(initial_cash: int | None, summary: ShiftSummary) -> int:
    """Drawer float (0 when untracked) plus net cash taken during the shift."""
    return (initial_cash or 0) + summary.by_payment.get(PAYMENT_CASH, 0)


# =============================================================================
# QUERIES
# =============================================================================

def get_active_shift(strict: bool = False) -> ShiftSnapshot | None:
    """The open shift, if any."""
    return next((s for s in get_cache(strict).shifts() if s.status == SHIFT_OPEN), None)


def get_shift(shift_id: int) -> ShiftSnapshot:
    shift = get_cache().shift(shift_id)
    if not shift:
        raise ShiftError(f"Shift {shift_id} not found")
    return shift


def current_summary() -> tuple[ShiftSnapshot | None, ShiftSummary]:
    shift = get_active_shift()
    if not shift:
        return None, ShiftSummary()
    return shift, summarize(get_cache().sales(), shift.id)


def shift_history() -> list[ShiftSnapshot]:
    """Closed shifts, most recently ended first."""
    closed = [s for s in get_cache().shifts() if s.status == SHIFT_CLOSED]
    return sorted(
        closed,
        key=lambda s: s.end_time or s.start_time or datetime.min,
        reverse=True,
    )


def shift_report(shift_id: int) -> dict:
    """
    Everything needed to print a shift sheet: the shift, its records
    (newest first), the running summary and the side totals.
    """
    shift = get_shift(shift_id)
    records = [s for s in get_cache().sales() if s.shift_id == shift_id]
    sales_only = [s for s in records if s.kind != KIND_RETURN]
    returns = [s for s in records if s.kind == KIND_RETURN]
    summary = summarize(records, shift_id)

    return {
        "shift": shift.to_dict(),
        "summary": summary.to_dict(),
        "cash_expected": expected_cash(shift.initial_cash, summary),
        "returns_total": sum(s.total for s in returns),
        "fiado_total": sum(s.total for s in sales_only if s.payment_method == PAYMENT_FIADO),
        "staff_total": sum(s.total for s in sales_only if s.payment_method == PAYMENT_STAFF),
        "sales": [s.to_dict() for s in records],
    }


# =============================================================================
# LIFECYCLE
# =============================================================================

def open_shift(
    seller: str,
    shift_type: str = "day",
    initial_cash=None,
    *,
    now: datetime | None = None,
) -> ShiftSnapshot:
    """
    Open a shift.

    initial_cash may be None: the drawer float is then not tracked and
    expected cash at close is the shift's net cash only.

    Raises:
        ShiftError: invalid seller/type/amount
        ShiftStateError: a shift is already open
    """
    if shift_type not in SHIFT_TYPES:
        raise ShiftError(f"shift_type must be one of: {', '.join(SHIFT_TYPES)}")
    try:
        seller = require_text(seller, "seller", max_length=128)
        initial_cash = parse_amount(initial_cash, "initial_cash", allow_none=True)
    except ValidationError as exc:
        raise ShiftError(str(exc)) from exc

    cache = get_cache(strict=True)
    # Guard against a stale view right before the write
    cache.invalidate(COLLECTION_SHIFTS)
    existing = get_active_shift(strict=True)
    if existing:
        raise ShiftStateError(
            f"A shift is already open (shift {existing.id}, {existing.seller})",
            details={"shift_id": existing.id},
        )

    try:
        row = get_store().insert(COLLECTION_SHIFTS, {
            "seller": seller,
            "shift_type": shift_type,
            "status": SHIFT_OPEN,
            "start_time": now or utcnow(),
            "initial_cash": initial_cash,
        })
    except StorageError as exc:
        # Lost the race to another terminal: the single-open index fired
        cache.invalidate(COLLECTION_SHIFTS)
        winner = get_active_shift(strict=True)
        if winner:
            raise ShiftStateError(
                f"A shift is already open (shift {winner.id}, {winner.seller})",
                details={"shift_id": winner.id},
            ) from exc
        raise

    cache.invalidate(COLLECTION_SHIFTS)
    current_app.logger.info("Shift %s opened by %s (%s)", row["id"], seller, shift_type)
    return ShiftSnapshot.from_row(row)


def close_shift(cash_counted, *, now: datetime | None = None) -> tuple[ShiftSnapshot, ShiftSummary]:
    """
    Close the open shift and freeze its reconciliation.

    cash_expected = initial float + net cash of the shift
    difference    = counted - expected (positive surplus, negative shortage)

    Raises:
        ShiftError: invalid counted amount
        ShiftStateError: no shift is open
    """
    try:
        cash_counted = parse_amount(cash_counted, "cash_counted")
    except ValidationError as exc:
        raise ShiftError(str(exc)) from exc

    cache = get_cache(strict=True)
    cache.invalidate(COLLECTION_SHIFTS, COLLECTION_SALES)
    shift = get_active_shift(strict=True)
    if not shift:
        raise ShiftStateError("No open shift to close")

    summary = summarize(cache.sales(), shift.id)
    cash_expected = expected_cash(shift.initial_cash, summary)
    difference = cash_counted - cash_expected

    row = get_store().update(COLLECTION_SHIFTS, shift.id, {
        "status": SHIFT_CLOSED,
        "end_time": now or utcnow(),
        "cash_counted": cash_counted,
        "cash_expected": cash_expected,
        "difference": difference,
        "total_sales": summary.total,
        "tickets": summary.tickets,
        "payments_breakdown": dict(summary.by_payment),
    })

    cache.invalidate(COLLECTION_SHIFTS)
    current_app.logger.info(
        "Shift %s closed: expected=%s counted=%s difference=%s",
        shift.id, cash_expected, cash_counted, difference,
    )
    return ShiftSnapshot.from_row(row), summary
