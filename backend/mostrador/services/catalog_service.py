"""
Catalog Service: products and stock maintenance

Products are leaf data. Sales and returns move stock through the
ledger services; this module covers the back-office side: creating and
editing products, receiving stock, and the inventory views (search,
low stock, valuation counts).
"""

from __future__ import annotations

from flask import current_app

from ..constants import COLLECTION_PRODUCTS, DEFAULT_MIN_STOCK, STOCK_FILTERS
from ..models import Product
from ..snapshots import ProductSnapshot
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    parse_quantity,
    require_text,
    validate_payload,
)
from .cache import get_cache
from .store import get_store


class CatalogError(ValidationError):
    """Raised for catalog operation errors."""
    pass


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "barcode", "price", "stock", "min_stock"},
    required_on_create={"name", "category", "price"},
)


# =============================================================================
# QUERIES
# =============================================================================

def get_product(product_id: int, strict: bool = False) -> ProductSnapshot:
    product = get_cache(strict).product(product_id)
    if not product:
        raise CatalogError(f"Product {product_id} not found")
    return product


def list_products(
    search: str | None = None,
    category: str | None = None,
    stock_filter: str = "all",
) -> list[ProductSnapshot]:
    """
    Filter the catalog the way the inventory screen does.

    search matches name, category or barcode (case-insensitive).
    stock_filter: all, low (0 < stock <= min_stock), out (stock == 0).
    """
    if stock_filter not in STOCK_FILTERS:
        raise CatalogError(f"stock_filter must be one of: {', '.join(STOCK_FILTERS)}")

    products = get_cache().products()

    if search and search.strip():
        term = search.strip().lower()
        products = [
            p for p in products
            if term in p.name.lower()
            or term in p.category.lower()
            or (p.barcode and term in p.barcode.lower())
        ]

    if category:
        products = [p for p in products if p.category == category]

    if stock_filter == "low":
        products = [p for p in products if 0 < p.stock <= p.min_stock]
    elif stock_filter == "out":
        products = [p for p in products if p.stock == 0]

    return products


def list_categories() -> list[str]:
    return sorted({p.category for p in get_cache().products() if p.category})


def low_stock_products(limit: int | None = None) -> list[ProductSnapshot]:
    """Products at or under their reorder threshold, emptiest first."""
    low = sorted(
        (p for p in get_cache().products() if p.is_low_stock),
        key=lambda p: p.stock,
    )
    return low[:limit] if limit else low


def inventory_stats() -> dict:
    products = get_cache().products()
    return {
        "total_products": len(products),
        "total_value": sum(p.price * p.stock for p in products),
        "low_stock_count": sum(1 for p in products if 0 < p.stock <= p.min_stock),
        "out_of_stock_count": sum(1 for p in products if p.stock == 0),
    }


# =============================================================================
# MUTATIONS
# =============================================================================

def create_product(payload: dict) -> ProductSnapshot:
    """
    Add a product to the catalog.

    Required: name, category, price. stock defaults to 0 and min_stock
    to the standard reorder threshold.
    """
    try:
        fields = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    except ValidationError as exc:
        raise CatalogError(str(exc)) from exc

    fields.setdefault("stock", 0)
    if fields.get("min_stock") is None:
        fields["min_stock"] = DEFAULT_MIN_STOCK
    if not fields.get("barcode"):
        fields["barcode"] = None

    row = get_store().insert(COLLECTION_PRODUCTS, fields)
    get_cache().invalidate(COLLECTION_PRODUCTS)
    current_app.logger.info("Product %s created: %s", row["id"], row["name"])
    return ProductSnapshot.from_row(row)


def edit_product(product_id: int, updates: dict) -> ProductSnapshot:
    """Partial update; only fields present in `updates` change."""
    get_product(product_id, strict=True)
    try:
        fields = validate_payload(model=Product, payload=updates, policy=PRODUCT_POLICY, partial=True)
    except ValidationError as exc:
        raise CatalogError(str(exc)) from exc
    if not fields:
        raise CatalogError("No fields to update")
    if "barcode" in fields and not fields["barcode"]:
        fields["barcode"] = None

    row = get_store().update(COLLECTION_PRODUCTS, product_id, fields)
    get_cache().invalidate(COLLECTION_PRODUCTS)
    return ProductSnapshot.from_row(row)


def add_stock(product_id: int, quantity, reason: str | None = None) -> ProductSnapshot:
    """Receive stock: stock += quantity (quantity must be positive)."""
    try:
        quantity = parse_quantity(quantity)
        reason = require_text(reason or "Stock receipt", "reason", max_length=255)
    except ValidationError as exc:
        raise CatalogError(str(exc)) from exc

    product = get_product(product_id, strict=True)
    row = get_store().update(COLLECTION_PRODUCTS, product_id, {"stock": product.stock + quantity})
    get_cache().invalidate(COLLECTION_PRODUCTS)
    current_app.logger.info("Stock +%s for product %s (%s)", quantity, product_id, reason)
    return ProductSnapshot.from_row(row)
