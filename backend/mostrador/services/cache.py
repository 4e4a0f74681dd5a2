# Overview: Read-through view cache over the row store, scoped to the current app context.

from __future__ import annotations

from flask import current_app, g

from ..constants import (
    COLLECTION_CLIENTS,
    COLLECTION_MOVEMENTS,
    COLLECTION_PRODUCTS,
    COLLECTION_SALES,
    COLLECTION_SHIFTS,
)
from ..snapshots import (
    ClientSnapshot,
    MovementSnapshot,
    ProductSnapshot,
    SaleSnapshot,
    ShiftSnapshot,
)
from .fallback import fallback_rows
from .store import StorageError, get_store


# collection -> (order_by column, descending)
ORDERING = {
    COLLECTION_PRODUCTS: ("name", False),
    COLLECTION_CLIENTS: ("name", False),
    COLLECTION_SALES: ("created_at", True),
    COLLECTION_SHIFTS: ("start_time", True),
    COLLECTION_MOVEMENTS: ("created_at", True),
}

SNAPSHOT_TYPES = {
    COLLECTION_PRODUCTS: ProductSnapshot,
    COLLECTION_CLIENTS: ClientSnapshot,
    COLLECTION_SALES: SaleSnapshot,
    COLLECTION_SHIFTS: ShiftSnapshot,
    COLLECTION_MOVEMENTS: MovementSnapshot,
}


class LedgerCache:
    """
    Holds the last full fetch of each collection as snapshots.

    No deltas and no write-through: a mutating operation calls
    invalidate() for what it touched and the next read re-fetches the
    whole collection.

    Views read with fallback: a failed fetch is logged and the static
    demo rows are served instead. Mutations read through strict(), which
    shares the same entries but never serves fallback rows; a collection
    currently held as fallback is re-fetched and a failure raises
    StorageError.
    """

    def __init__(self, store, *, fallback: bool = True, logger=None, _shared: LedgerCache | None = None):
        self._store = store
        self._fallback = fallback
        self._logger = logger
        if _shared is not None:
            self._entries = _shared._entries
            self._degraded = _shared._degraded
        else:
            self._entries: dict[str, list] = {}
            self._degraded: set[str] = set()
        self._strict_view: LedgerCache | None = None

    def strict(self) -> LedgerCache:
        """Same entries, no fallback."""
        if not self._fallback:
            return self
        if self._strict_view is None:
            self._strict_view = LedgerCache(self._store, fallback=False, logger=self._logger, _shared=self)
        return self._strict_view

    def get(self, collection: str) -> list:
        stale = not self._fallback and collection in self._degraded
        if collection not in self._entries or stale:
            self._entries[collection] = self._load(collection)
        return self._entries[collection]

    def _load(self, collection: str) -> list:
        order_by, descending = ORDERING[collection]
        snapshot_type = SNAPSHOT_TYPES[collection]
        try:
            rows = self._store.fetch_all(collection, order_by=order_by, descending=descending)
        except StorageError as exc:
            if not self._fallback:
                raise
            if self._logger is not None:
                self._logger.warning("Failed to load %s, serving fallback data: %s", collection, exc)
            self._degraded.add(collection)
            rows = fallback_rows(collection)
        else:
            self._degraded.discard(collection)
        return [snapshot_type.from_row(row) for row in rows]

    def invalidate(self, *collections: str) -> None:
        for collection in collections:
            self._entries.pop(collection, None)
            self._degraded.discard(collection)

    def invalidate_all(self) -> None:
        self._entries.clear()
        self._degraded.clear()

    def products(self) -> list[ProductSnapshot]:
        return self.get(COLLECTION_PRODUCTS)

    def clients(self) -> list[ClientSnapshot]:
        return self.get(COLLECTION_CLIENTS)

    def sales(self) -> list[SaleSnapshot]:
        return self.get(COLLECTION_SALES)

    def shifts(self) -> list[ShiftSnapshot]:
        return self.get(COLLECTION_SHIFTS)

    def movements(self) -> list[MovementSnapshot]:
        return self.get(COLLECTION_MOVEMENTS)

    def product(self, product_id) -> ProductSnapshot | None:
        return next((p for p in self.products() if p.id == product_id), None)

    def client(self, client_id) -> ClientSnapshot | None:
        return next((c for c in self.clients() if c.id == client_id), None)

    def sale(self, sale_id) -> SaleSnapshot | None:
        return next((s for s in self.sales() if s.id == sale_id), None)

    def shift(self, shift_id) -> ShiftSnapshot | None:
        return next((s for s in self.shifts() if s.id == shift_id), None)


def get_cache(strict: bool = False) -> LedgerCache:
    """
    Cache for the current app context (one per request).

    Pass strict=True on any path that writes: reads then fail with
    StorageError instead of serving fallback rows.
    """
    cache = g.get("ledger_cache")
    if cache is None:
        cache = LedgerCache(
            get_store(),
            fallback=current_app.config.get("FALLBACK_ON_FETCH_ERROR", True),
            logger=current_app.logger,
        )
        g.ledger_cache = cache
    return cache.strict() if strict else cache
