"""
Read-side snapshots of stored rows.

Rows come back from the row store as plain dicts. Everything the ledger
computes works on these frozen snapshots instead, so a malformed or
partially populated row degrades to safe defaults rather than breaking
a render:

- missing numeric fields -> 0 (reorder threshold -> DEFAULT_MIN_STOCK)
- missing flags -> False
- items stored as a JSON string are decoded; anything unreadable -> []
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .constants import (
    DEFAULT_MIN_STOCK,
    KIND_RETURN,
    KIND_SALE,
    PAYMENT_CASH,
    SHIFT_CLOSED,
    SHIFT_OPEN,
)
from .time_utils import parse_iso_datetime, to_utc_z


def _int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _opt_int(value: Any) -> int | None:
    if value is None:
        return None
    return _int(value)


def _dt(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        return None


def _json(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    name: str
    category: str
    barcode: str | None
    price: int
    stock: int
    min_stock: int

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock

    @classmethod
    def from_row(cls, row: dict) -> "ProductSnapshot":
        min_stock = row.get("min_stock")
        return cls(
            id=row.get("id"),
            name=row.get("name") or "",
            category=row.get("category") or "",
            barcode=row.get("barcode"),
            price=_int(row.get("price")),
            stock=_int(row.get("stock")),
            min_stock=DEFAULT_MIN_STOCK if min_stock is None else _int(min_stock),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "barcode": self.barcode,
            "price": self.price,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "low_stock": self.is_low_stock,
        }


@dataclass(frozen=True)
class ClientSnapshot:
    id: int
    name: str
    authorized: bool
    balance: int
    credit_limit: int

    @property
    def available_credit(self) -> int:
        return max(self.credit_limit - self.balance, 0)

    @classmethod
    def from_row(cls, row: dict) -> "ClientSnapshot":
        return cls(
            id=row.get("id"),
            name=row.get("name") or "",
            authorized=bool(row.get("authorized") or False),
            balance=_int(row.get("balance")),
            credit_limit=_int(row.get("credit_limit")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "authorized": self.authorized,
            "balance": self.balance,
            "credit_limit": self.credit_limit,
            "available_credit": self.available_credit,
        }


@dataclass(frozen=True)
class SaleItem:
    line_id: int
    product_id: int
    name: str
    price: int
    quantity: int

    @property
    def subtotal(self) -> int:
        return self.price * self.quantity

    @classmethod
    def from_dict(cls, data: dict, position: int) -> "SaleItem":
        return cls(
            line_id=_int(data.get("line_id"), position),
            product_id=data.get("product_id"),
            name=data.get("name") or "",
            price=_int(data.get("price")),
            quantity=_int(data.get("quantity")),
        )

    def to_dict(self) -> dict:
        return {
            "line_id": self.line_id,
            "product_id": self.product_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
        }


def _items(value: Any) -> tuple[SaleItem, ...]:
    raw = _json(value)
    if not isinstance(raw, list):
        return ()
    items = []
    for position, entry in enumerate(raw, start=1):
        if isinstance(entry, dict):
            items.append(SaleItem.from_dict(entry, position))
    return tuple(items)


@dataclass(frozen=True)
class SaleSnapshot:
    id: int
    ticket: str
    kind: str
    total: int
    payment_method: str
    cash_received: int | None
    change_amount: int | None
    shift_id: int | None
    seller: str | None
    created_at: datetime | None
    items: tuple[SaleItem, ...] = ()
    notes: dict | None = None

    @property
    def is_return(self) -> bool:
        return self.kind == KIND_RETURN

    @classmethod
    def from_row(cls, row: dict) -> "SaleSnapshot":
        notes = _json(row.get("notes"))
        return cls(
            id=row.get("id"),
            ticket=str(row.get("ticket") or ""),
            kind=row.get("kind") or KIND_SALE,
            total=_int(row.get("total")),
            payment_method=row.get("payment_method") or PAYMENT_CASH,
            cash_received=_opt_int(row.get("cash_received")),
            change_amount=_opt_int(row.get("change_amount")),
            shift_id=row.get("shift_id"),
            seller=row.get("seller"),
            created_at=_dt(row.get("created_at")),
            items=_items(row.get("items")),
            notes=notes if isinstance(notes, dict) else None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket": self.ticket,
            "kind": self.kind,
            "total": self.total,
            "payment_method": self.payment_method,
            "cash_received": self.cash_received,
            "change_amount": self.change_amount,
            "shift_id": self.shift_id,
            "seller": self.seller,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
            "notes": self.notes,
        }


@dataclass(frozen=True)
class ShiftSnapshot:
    id: int
    seller: str
    shift_type: str
    status: str
    start_time: datetime | None
    end_time: datetime | None
    initial_cash: int | None
    cash_expected: int | None = None
    cash_counted: int | None = None
    difference: int | None = None
    total_sales: int | None = None
    tickets: int | None = None
    payments_breakdown: dict | None = None

    @property
    def is_open(self) -> bool:
        return self.status == SHIFT_OPEN

    @classmethod
    def from_row(cls, row: dict) -> "ShiftSnapshot":
        end_time = _dt(row.get("end_time"))
        breakdown = _json(row.get("payments_breakdown"))
        return cls(
            id=row.get("id"),
            seller=row.get("seller") or "",
            shift_type=row.get("shift_type") or "day",
            status=row.get("status") or (SHIFT_CLOSED if end_time else SHIFT_OPEN),
            start_time=_dt(row.get("start_time")),
            end_time=end_time,
            initial_cash=_opt_int(row.get("initial_cash")),
            cash_expected=_opt_int(row.get("cash_expected")),
            cash_counted=_opt_int(row.get("cash_counted")),
            difference=_opt_int(row.get("difference")),
            total_sales=_opt_int(row.get("total_sales")),
            tickets=_opt_int(row.get("tickets")),
            payments_breakdown=breakdown if isinstance(breakdown, dict) else None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "seller": self.seller,
            "shift_type": self.shift_type,
            "status": self.status,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time),
            "initial_cash": self.initial_cash,
            "cash_expected": self.cash_expected,
            "cash_counted": self.cash_counted,
            "difference": self.difference,
            "total_sales": self.total_sales,
            "tickets": self.tickets,
            "payments_breakdown": self.payments_breakdown,
        }


@dataclass(frozen=True)
class MovementSnapshot:
    id: int
    client_id: int
    amount: int
    movement_type: str
    description: str | None
    balance_after: int
    created_at: datetime | None = field(default=None)

    @classmethod
    def from_row(cls, row: dict) -> "MovementSnapshot":
        return cls(
            id=row.get("id"),
            client_id=row.get("client_id"),
            amount=_int(row.get("amount")),
            movement_type=row.get("movement_type") or "",
            description=row.get("description"),
            balance_after=_int(row.get("balance_after")),
            created_at=_dt(row.get("created_at")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "amount": self.amount,
            "movement_type": self.movement_type,
            "description": self.description,
            "balance_after": self.balance_after,
            "created_at": to_utc_z(self.created_at),
        }
