# Overview: Request decorators for API routes: admin gate, per-terminal single flight and JSON error mapping.

from functools import wraps
from flask import jsonify, current_app

from .services.cart_service import load_pos_session
from .services.concurrency import single_flight
from .services.store import StorageError
from .validation import ConflictError, ValidationError


def require_admin(f):
    """
    Require the terminal's admin flag (set by POST /api/admin/unlock).

    NOTE: This is a convenience gate for a single trusted terminal, not
    authentication. The flag lives in the signed session cookie and the
    password is a shared local secret.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        pos = load_pos_session()
        if not pos.admin_unlocked:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function


def terminal_operation(f):
    """
    Run a ledger mutation at most once at a time per terminal.

    A second trigger while the first is in flight gets 409 instead of
    posting twice.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        pos = load_pos_session()
        with single_flight(f"terminal:{pos.terminal_id}"):
            return f(*args, **kwargs)
    return decorated_function


def json_errors(failure_message: str):
    """
    Map ledger exceptions to JSON responses.

    - ValidationError -> 400
    - ConflictError -> 409
    - StorageError -> 502 with the backend's message
    - anything else -> logged, 500
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except ValidationError as e:
                return jsonify({"error": str(e), "details": e.details}), 400
            except ConflictError as e:
                return jsonify({"error": str(e), "details": e.details}), 409
            except StorageError as e:
                current_app.logger.warning("%s: storage error: %s", failure_message, e)
                return jsonify({"error": str(e), "details": {"collection": e.collection}}), 502
            except Exception:
                current_app.logger.exception(failure_message)
                return jsonify({"error": "Internal server error"}), 500
        return decorated_function
    return decorator
