# Overview: Flask API routes for shift lifecycle and cash reconciliation.

# backend/mostrador/routes/shifts.py
"""
Shift API Routes

DESIGN:
- One shift open store-wide; opening a second returns 409
- Closing freezes totals and reports the cash difference
- History and per-shift reports are behind the admin gate
"""

from flask import Blueprint, request, jsonify

from ..decorators import json_errors, require_admin, terminal_operation
from ..services import shift_service


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.get("/active")
@json_errors("Failed to get active shift")
def active_shift_route():
    shift, summary = shift_service.current_summary()
    if not shift:
        return jsonify({"shift": None, "summary": summary.to_dict()}), 200

    return jsonify({
        "shift": shift.to_dict(),
        "summary": summary.to_dict(),
        "cash_expected": shift_service.expected_cash(shift.initial_cash, summary),
    }), 200


@shifts_bp.post("/open")
@json_errors("Failed to open shift")
@terminal_operation
def open_shift_route():
    """
    Request body:
    {
        "seller": "Ana",
        "shift_type": "day" | "night",   (optional, default day)
        "initial_cash": 50000            (optional; omit to skip float tracking)
    }
    """
    data = request.get_json(silent=True) or {}
    shift = shift_service.open_shift(
        data.get("seller"),
        data.get("shift_type", "day"),
        data.get("initial_cash"),
    )
    return jsonify({"shift": shift.to_dict()}), 201


@shifts_bp.post("/close")
@json_errors("Failed to close shift")
@terminal_operation
def close_shift_route():
    """
    Request body:
    {
        "cash_counted": 52000
    }
    """
    data = request.get_json(silent=True) or {}
    shift, summary = shift_service.close_shift(data.get("cash_counted"))
    return jsonify({"shift": shift.to_dict(), "summary": summary.to_dict()}), 200


@shifts_bp.get("/history")
@json_errors("Failed to list shift history")
@require_admin
def shift_history_route():
    limit = request.args.get("limit", type=int)
    shifts = shift_service.shift_history()
    if limit:
        shifts = shifts[:limit]
    return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200


@shifts_bp.get("/<int:shift_id>/report")
@json_errors("Failed to build shift report")
@require_admin
def shift_report_route(shift_id: int):
    return jsonify(shift_service.shift_report(shift_id)), 200
