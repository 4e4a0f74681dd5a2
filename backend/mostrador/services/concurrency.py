# Overview: Per-terminal guard that discards duplicate triggers of a ledger operation while one is in flight.

from __future__ import annotations

import threading
from contextlib import contextmanager

from ..validation import ConflictError


class OperationInProgress(ConflictError):
    """A ledger operation for this terminal is still running."""


_registry_lock = threading.Lock()
# Only keys with an operation in flight have an entry
_terminal_locks: dict[str, threading.Lock] = {}


@contextmanager
def single_flight(key: str):
    """
    Run the body only if no other operation holds `key`.

    Never waits: a second trigger is rejected with OperationInProgress
    instead of being queued, so a double-clicked checkout cannot post
    twice. Different terminals use different keys and do not block each
    other.
    """
    with _registry_lock:
        lock = _terminal_locks.setdefault(key, threading.Lock())
        if not lock.acquire(blocking=False):
            raise OperationInProgress("Another operation is already in progress for this terminal")
    try:
        yield
    finally:
        with _registry_lock:
            lock.release()
            _terminal_locks.pop(key, None)
