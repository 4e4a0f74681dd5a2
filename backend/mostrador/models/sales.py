from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow


class Sale(db.Model):
    """
    Sale or return record (one row per ticket).

    Line items are embedded as a JSON list of snapshots
    {line_id, product_id, name, price, quantity} so later catalog edits
    never rewrite history.

    IMMUTABLE: only payment_method may be corrected after insert.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_ticket", "ticket"),
        db.Index("ix_sales_shift_created", "shift_id", "created_at"),
        # Numeric tickets are unique; "R-" return tickets may repeat
        db.Index(
            "uq_sales_sale_ticket",
            "ticket",
            unique=True,
            sqlite_where=db.text("kind = 'sale'"),
            postgresql_where=db.text("kind = 'sale'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ticket = db.Column(db.String(32), nullable=False)
    kind = db.Column(db.String(16), nullable=False, default="sale", index=True)  # sale, return

    total = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(db.String(16), nullable=False, default="cash", index=True)

    # Cash sales only
    cash_received = db.Column(db.Integer, nullable=True)
    change_amount = db.Column(db.Integer, nullable=True)

    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)
    seller = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    items = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.JSON, nullable=True)

    shift = db.relationship("Shift", backref=db.backref("sales", lazy=True))
