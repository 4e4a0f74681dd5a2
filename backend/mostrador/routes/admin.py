# Overview: Flask API routes for the terminal admin gate.

# backend/mostrador/routes/admin.py
"""
Admin Gate API Routes

WHY: Inventory maintenance, fiado accounts, reports and shift history
are kept behind a local password so the counter screen cannot wander
into them by accident.

SECURITY: Not authentication. The flag is stored in the terminal's
signed session and the password is a shared local setting
(ADMIN_PASSWORD). Use real authentication if this API is ever exposed
beyond a single trusted terminal.
"""

import hmac

from flask import Blueprint, request, jsonify, current_app

from ..services.cart_service import load_pos_session, save_pos_session


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.post("/unlock")
def unlock_route():
    """
    Request body:
    {
        "password": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    password = data.get("password")
    if not isinstance(password, str) or not password:
        return jsonify({"error": "password required"}), 400

    expected = current_app.config.get("ADMIN_PASSWORD", "")
    if not hmac.compare_digest(password.encode(), expected.encode()):
        current_app.logger.warning("Admin unlock rejected")
        return jsonify({"error": "Incorrect password"}), 403

    pos = load_pos_session()
    pos.admin_unlocked = True
    save_pos_session(pos)
    return jsonify({"admin_unlocked": True}), 200


@admin_bp.post("/lock")
def lock_route():
    pos = load_pos_session()
    pos.admin_unlocked = False
    save_pos_session(pos)
    return jsonify({"admin_unlocked": False}), 200


@admin_bp.get("/status")
def status_route():
    pos = load_pos_session()
    return jsonify({"admin_unlocked": pos.admin_unlocked}), 200
