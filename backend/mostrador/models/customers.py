from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow


class Client(db.Model):
    """
    Store-credit ("fiado") account.

    balance is what the client owes. It only grows through fiado sales
    and only shrinks through recorded payments, never below zero.
    """
    __tablename__ = "clients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    authorized = db.Column(db.Boolean, nullable=False, default=False)

    balance = db.Column(db.Integer, nullable=False, default=0)
    credit_limit = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class ClientMovement(db.Model):
    """
    Append-only audit trail of a client's balance changes.

    movement_type: fiado (charge), abono (partial payment),
    pago-total (full settlement). balance_after snapshots the
    resulting balance.
    """
    __tablename__ = "client_movements"
    __table_args__ = (
        db.Index("ix_client_movements_client_created", "client_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False, default=0)
    movement_type = db.Column(db.String(16), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    balance_after = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    client = db.relationship("Client", backref=db.backref("movements", lazy=True))
