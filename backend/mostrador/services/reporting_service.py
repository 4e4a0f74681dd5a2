# Overview: Service-layer operations for reporting; sales summaries per window and the dashboard view.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Iterable

from flask import current_app

from ..constants import (
    KIND_RETURN,
    KIND_SALE,
    PAYMENT_FIADO,
    PAYMENT_METHODS,
    PAYMENT_STAFF,
    REPORT_RANGES,
)
from ..snapshots import SaleSnapshot
from ..time_utils import is_date_only, local_now, parse_iso_datetime, to_utc_naive, to_utc_z
from ..validation import ValidationError
from .cache import get_cache
from .catalog_service import low_stock_products
from .fiado_service import clients_with_debt
from .shift_service import current_summary


DASHBOARD_RECENT = 8
DASHBOARD_TOP = 5


class ReportError(ValidationError):
    """Raised when report parameters are invalid."""
    pass


@dataclass(frozen=True)
class ReportWindow:
    """[start, end) in UTC-naive time; either bound may be open."""
    range: str
    start: datetime | None
    end: datetime | None

    def contains(self, moment: datetime | None) -> bool:
        if moment is None:
            return False
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment >= self.end:
            return False
        return True

    def to_dict(self) -> dict:
        return {"range": self.range, "start": to_utc_z(self.start), "end": to_utc_z(self.end)}


def _local_midnight(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def _parse_bound(value: str | None, field: str, *, inclusive_day: bool, tz) -> datetime | None:
    if not value:
        return None
    try:
        if is_date_only(value):
            day = datetime.fromisoformat(value.strip()).replace(tzinfo=tz)
            if inclusive_day:
                day += timedelta(days=1)
            return to_utc_naive(day)
        return parse_iso_datetime(value)
    except ValueError as exc:
        raise ReportError(f"{field} must be an ISO-8601 date or datetime") from exc


def report_window(
    range_name: str = "today",
    *,
    start: str | None = None,
    end: str | None = None,
    now: datetime | None = None,
) -> ReportWindow:
    """
    Resolve a named range into UTC bounds.

    today/week/month are the whole current day, week or month in
    REPORT_TIMEZONE; the week runs Sunday to Saturday. custom takes
    optional from/to; a date-only `to` covers that whole day.
    """
    if range_name not in REPORT_RANGES:
        raise ReportError(f"range must be one of: {', '.join(REPORT_RANGES)}")

    tz_name = current_app.config.get("REPORT_TIMEZONE", "UTC")
    local = local_now(tz_name, now)
    midnight = _local_midnight(local)

    if range_name == "today":
        return ReportWindow(range_name, to_utc_naive(midnight), to_utc_naive(midnight + timedelta(days=1)))
    if range_name == "week":
        sunday = midnight - timedelta(days=(midnight.weekday() + 1) % 7)
        return ReportWindow(range_name, to_utc_naive(sunday), to_utc_naive(sunday + timedelta(days=7)))
    if range_name == "month":
        first = midnight.replace(day=1)
        next_first = (first + timedelta(days=32)).replace(day=1)
        return ReportWindow(range_name, to_utc_naive(first), to_utc_naive(next_first))

    start_dt = _parse_bound(start, "from", inclusive_day=False, tz=local.tzinfo)
    end_dt = _parse_bound(end, "to", inclusive_day=True, tz=local.tzinfo)
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("from must be before to")
    return ReportWindow(range_name, start_dt, end_dt)


# =============================================================================
# AGGREGATION
# =============================================================================

def top_products(sales: Iterable[SaleSnapshot], limit: int | None = None, *, by: str = "quantity") -> list[dict]:
    """
    Rank products sold across `sales`.

    Ties keep first-encountered order (sorted() is stable), so with
    records visited newest first the most recent seller wins a tie.
    """
    ranking: dict = {}
    for sale in sales:
        for item in sale.items:
            entry = ranking.get(item.product_id)
            if entry is None:
                entry = ranking[item.product_id] = {
                    "product_id": item.product_id,
                    "name": item.name,
                    "quantity": 0,
                    "revenue": 0,
                }
            entry["quantity"] += item.quantity
            entry["revenue"] += item.subtotal

    ranked = sorted(ranking.values(), key=lambda e: e[by], reverse=True)
    return ranked[:limit] if limit else ranked


def by_seller(sales: Iterable[SaleSnapshot]) -> list[dict]:
    default_seller = current_app.config.get("DEFAULT_SELLER", "Mostrador")
    sellers: dict[str, dict] = {}
    for sale in sales:
        name = sale.seller or default_seller
        entry = sellers.setdefault(name, {"seller": name, "total": 0, "tickets": 0})
        entry["total"] += sale.total
        entry["tickets"] += 1
    return sorted(sellers.values(), key=lambda e: e["total"], reverse=True)


def sales_report(
    range_name: str = "today",
    *,
    start: str | None = None,
    end: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Revenue, tickets, tender split, top products and sellers for a window. Returns excluded."""
    window = report_window(range_name, start=start, end=end, now=now)
    sales = [
        s for s in get_cache().sales()
        if s.kind == KIND_SALE and window.contains(s.created_at)
    ]

    by_payment = {method: 0 for method in PAYMENT_METHODS}
    for sale in sales:
        if sale.payment_method in by_payment:
            by_payment[sale.payment_method] += sale.total

    limit = current_app.config.get("TOP_PRODUCTS_LIMIT", 20)
    return {
        "window": window.to_dict(),
        "total": sum(s.total for s in sales),
        "tickets": len(sales),
        "by_payment": by_payment,
        "top_products": top_products(sales, limit),
        "by_seller": by_seller(sales),
    }


def dashboard_snapshot() -> dict:
    """Active shift at a glance plus the store-wide attention lists."""
    shift, summary = current_summary()
    records = [s for s in get_cache().sales() if shift and s.shift_id == shift.id]
    sales_only = [s for s in records if s.kind == KIND_SALE]

    return {
        "shift": shift.to_dict() if shift else None,
        "summary": summary.to_dict(),
        "recent": [s.to_dict() for s in records[:DASHBOARD_RECENT]],
        "returns_total": sum(s.total for s in records if s.kind == KIND_RETURN),
        "fiado_total": sum(s.total for s in sales_only if s.payment_method == PAYMENT_FIADO),
        "staff_total": sum(s.total for s in sales_only if s.payment_method == PAYMENT_STAFF),
        "top_products": top_products(sales_only, DASHBOARD_TOP, by="revenue"),
        "low_stock": [p.to_dict() for p in low_stock_products(DASHBOARD_TOP)],
        "debtors": [c.to_dict() for c in clients_with_debt(DASHBOARD_TOP)],
    }
