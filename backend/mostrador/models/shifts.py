from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow


class Shift(db.Model):
    """
    Seller shift / cash drawer session.

    LIFECYCLE:
    - open: sales are attributed to it, summary computed on demand
    - closed: cash counted, variance and totals frozen on the row

    IMMUTABLE: once closed, never reopened or deleted.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        # At most one open shift store-wide
        db.Index(
            "uq_shifts_single_open",
            "status",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    seller = db.Column(db.String(128), nullable=False)
    shift_type = db.Column(db.String(8), nullable=False, default="day")  # day, night
    status = db.Column(db.String(8), nullable=False, default="open", index=True)

    start_time = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    end_time = db.Column(db.DateTime, nullable=True)

    # NULL means the drawer float is not tracked
    initial_cash = db.Column(db.Integer, nullable=True)

    # Frozen at close
    cash_expected = db.Column(db.Integer, nullable=True)
    cash_counted = db.Column(db.Integer, nullable=True)
    difference = db.Column(db.Integer, nullable=True)
    total_sales = db.Column(db.Integer, nullable=True)
    tickets = db.Column(db.Integer, nullable=True)
    payments_breakdown = db.Column(db.JSON, nullable=True)
