# Overview: Static demo dataset served when a collection cannot be fetched, and used by `flask system seed-demo`.

from __future__ import annotations

from datetime import datetime

from ..constants import (
    COLLECTION_CLIENTS,
    COLLECTION_MOVEMENTS,
    COLLECTION_PRODUCTS,
    COLLECTION_SALES,
    COLLECTION_SHIFTS,
)


FALLBACK_PRODUCTS = [
    {"id": 1, "name": "Pan amasado (kg)", "category": "Panaderia", "barcode": None, "price": 2200, "stock": 40, "min_stock": 10},
    {"id": 2, "name": "Leche entera 1L", "category": "Lacteos", "barcode": "7801234000012", "price": 1190, "stock": 24, "min_stock": 6},
    {"id": 3, "name": "Bebida cola 1.5L", "category": "Bebidas", "barcode": "7801234000029", "price": 1750, "stock": 18, "min_stock": 6},
    {"id": 4, "name": "Arroz grado 1 (kg)", "category": "Abarrotes", "barcode": "7801234000036", "price": 1390, "stock": 4, "min_stock": 5},
    {"id": 5, "name": "Detergente 3L", "category": "Limpieza", "barcode": "7801234000043", "price": 5990, "stock": 0, "min_stock": 2},
]

FALLBACK_CLIENTS = [
    {"id": 1, "name": "Rosa Fuentes", "authorized": True, "balance": 8500, "credit_limit": 30000},
    {"id": 2, "name": "Pedro Soto", "authorized": False, "balance": 0, "credit_limit": 15000},
]

FALLBACK_SHIFTS = [
    {
        "id": 1,
        "seller": "Mostrador",
        "shift_type": "day",
        "status": "closed",
        "start_time": datetime(2024, 1, 2, 8, 0),
        "end_time": datetime(2024, 1, 2, 16, 0),
        "initial_cash": 20000,
        "cash_expected": 24400,
        "cash_counted": 24400,
        "difference": 0,
        "total_sales": 4400,
        "tickets": 1,
        "payments_breakdown": {"cash": 4400, "card": 0, "transfer": 0, "fiado": 0, "staff": 0},
    },
]

FALLBACK_SALES = [
    {
        "id": 1,
        "ticket": "000001",
        "kind": "sale",
        "total": 4400,
        "payment_method": "cash",
        "cash_received": 5000,
        "change_amount": 600,
        "shift_id": 1,
        "seller": "Mostrador",
        "created_at": datetime(2024, 1, 2, 10, 30),
        "items": [{"line_id": 1, "product_id": 1, "name": "Pan amasado (kg)", "price": 2200, "quantity": 2}],
        "notes": None,
    },
]

FALLBACK_MOVEMENTS: list[dict] = []

FALLBACK_ROWS = {
    COLLECTION_PRODUCTS: FALLBACK_PRODUCTS,
    COLLECTION_CLIENTS: FALLBACK_CLIENTS,
    COLLECTION_SHIFTS: FALLBACK_SHIFTS,
    COLLECTION_SALES: FALLBACK_SALES,
    COLLECTION_MOVEMENTS: FALLBACK_MOVEMENTS,
}


def fallback_rows(collection: str) -> list[dict]:
    return [dict(row) for row in FALLBACK_ROWS.get(collection, [])]
