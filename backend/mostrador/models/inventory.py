from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow


class Product(db.Model):
    """
    Catalog product with on-hand stock.

    Stock lives on the row itself: sales decrement it, returns and
    stock receipts increment it. There is no separate movement table.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    category = db.Column(db.String(64), nullable=False, default="General")
    barcode = db.Column(db.String(64), nullable=True, index=True)

    price = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=5)  # reorder threshold

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
