"""
Row store: the only path to persisted collections.

Three operations, nothing else:
- fetch_all(collection, order_by, descending) -> list of row dicts
- insert(collection, fields) -> inserted row dict
- update(collection, row_id, fields) -> updated row dict

Each call is its own commit, like a call to a hosted table API. Callers
that want several calls to land together run them inside `atomic()`.
Driver failures surface as StorageError carrying the raw message.

Swap the backend by putting another object with the same methods in
app.extensions["mostrador.store"].
"""

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..constants import (
    COLLECTION_CLIENTS,
    COLLECTION_MOVEMENTS,
    COLLECTION_PRODUCTS,
    COLLECTION_SALES,
    COLLECTION_SHIFTS,
)
from ..extensions import db
from ..models import Client, ClientMovement, Product, Sale, Shift


STORE_EXTENSION_KEY = "mostrador.store"

_ATOMIC_KEY = "mostrador_atomic_depth"


class StorageError(Exception):
    """Raised when a row store call fails. The message is the backend's own."""

    def __init__(self, message: str, *, collection: str | None = None, operation: str | None = None):
        super().__init__(message)
        self.collection = collection
        self.operation = operation


class RowStore:
    """Flask-SQLAlchemy implementation of the three-operation row interface."""

    MODELS = {
        COLLECTION_PRODUCTS: Product,
        COLLECTION_CLIENTS: Client,
        COLLECTION_SALES: Sale,
        COLLECTION_SHIFTS: Shift,
        COLLECTION_MOVEMENTS: ClientMovement,
    }

    def _model(self, collection: str):
        model = self.MODELS.get(collection)
        if model is None:
            raise StorageError(f"Unknown collection '{collection}'", collection=collection)
        return model

    @staticmethod
    def _row(obj) -> dict:
        return {c.key: getattr(obj, c.key) for c in obj.__mapper__.columns}

    @staticmethod
    def _in_atomic() -> bool:
        return db.session.info.get(_ATOMIC_KEY, 0) > 0

    def _finish(self) -> None:
        if self._in_atomic():
            db.session.flush()
        else:
            db.session.commit()

    def _fail(self, exc: Exception, collection: str, operation: str) -> StorageError:
        if not self._in_atomic():
            db.session.rollback()
        message = str(getattr(exc, "orig", None) or exc)
        return StorageError(message, collection=collection, operation=operation)

    def fetch_all(self, collection: str, order_by: str | None = None, descending: bool = False) -> list[dict]:
        model = self._model(collection)
        query = db.session.query(model)
        if order_by:
            column = getattr(model, order_by, None)
            if column is None:
                raise StorageError(f"Unknown column '{order_by}' on {collection}", collection=collection)
            query = query.order_by(column.desc() if descending else column.asc())
        # Stable order for equal sort keys
        query = query.order_by(model.id.desc() if descending else model.id.asc())
        try:
            return [self._row(obj) for obj in query.all()]
        except SQLAlchemyError as exc:
            raise self._fail(exc, collection, "fetch_all")

    def insert(self, collection: str, fields: dict) -> dict:
        model = self._model(collection)
        columns = {c.key for c in model.__mapper__.columns}
        unknown = sorted(set(fields) - columns)
        if unknown:
            raise StorageError(f"Unknown fields for {collection}: {', '.join(unknown)}", collection=collection)
        try:
            obj = model(**fields)
            db.session.add(obj)
            self._finish()
            return self._row(obj)
        except SQLAlchemyError as exc:
            raise self._fail(exc, collection, "insert")

    def update(self, collection: str, row_id: int, fields: dict) -> dict:
        model = self._model(collection)
        columns = {c.key for c in model.__mapper__.columns}
        unknown = sorted(set(fields) - columns)
        if unknown:
            raise StorageError(f"Unknown fields for {collection}: {', '.join(unknown)}", collection=collection)
        try:
            obj = db.session.get(model, row_id)
            if obj is None:
                raise StorageError(f"{collection} row {row_id} not found", collection=collection, operation="update")
            for key, value in fields.items():
                setattr(obj, key, value)
            self._finish()
            return self._row(obj)
        except SQLAlchemyError as exc:
            raise self._fail(exc, collection, "update")

    @contextmanager
    def atomic(self):
        """
        Group several calls into one commit.

        Nested blocks join the outermost one. Any exception rolls the
        whole block back before propagating.
        """
        depth = db.session.info.get(_ATOMIC_KEY, 0)
        db.session.info[_ATOMIC_KEY] = depth + 1
        try:
            yield self
            if depth == 0:
                db.session.commit()
        except SQLAlchemyError as exc:
            if depth == 0:
                db.session.rollback()
            raise StorageError(str(getattr(exc, "orig", None) or exc), operation="commit")
        except Exception:
            if depth == 0:
                db.session.rollback()
            raise
        finally:
            db.session.info[_ATOMIC_KEY] = depth


def get_store():
    """The row store configured on the current app."""
    return current_app.extensions[STORE_EXTENSION_KEY]
