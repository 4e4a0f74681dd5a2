# Overview: Flask API routes for sale records; listing, detail, payment correction and returns.

# backend/mostrador/routes/sales.py
from flask import Blueprint, request, jsonify

from ..constants import KIND_RETURN, KIND_SALE
from ..decorators import json_errors, terminal_operation
from ..services import checkout_service, return_service
from ..services.cache import get_cache


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@json_errors("Failed to list sales")
def list_sales_route():
    """
    Query params:
        kind: sale | return (optional)
        shift_id: restrict to one shift (optional)
        limit: max records, newest first (optional)
    """
    kind = request.args.get("kind")
    shift_id = request.args.get("shift_id", type=int)
    limit = request.args.get("limit", type=int)

    if kind and kind not in (KIND_SALE, KIND_RETURN):
        return jsonify({"error": "kind must be sale or return"}), 400

    records = get_cache().sales()
    if kind:
        records = [s for s in records if s.kind == kind]
    if shift_id is not None:
        records = [s for s in records if s.shift_id == shift_id]
    if limit:
        records = records[:limit]

    return jsonify({"sales": [s.to_dict() for s in records]}), 200


@sales_bp.get("/<int:sale_id>")
@json_errors("Failed to get sale")
def get_sale_route(sale_id: int):
    sale = get_cache().sale(sale_id)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404

    payload = {"sale": sale.to_dict()}
    if not sale.is_return:
        payload["returnable"] = {
            str(line_id): qty
            for line_id, qty in return_service.returnable_quantities(sale).items()
        }
    return jsonify(payload), 200


@sales_bp.patch("/<int:sale_id>/payment-method")
@json_errors("Failed to change payment method")
@terminal_operation
def change_payment_method_route(sale_id: int):
    """
    Request body:
    {
        "payment_method": "card"
    }
    """
    data = request.get_json(silent=True) or {}
    sale = checkout_service.change_payment_method(sale_id, data.get("payment_method"))
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.post("/<int:sale_id>/returns")
@json_errors("Failed to register return")
@terminal_operation
def register_return_route(sale_id: int):
    """
    Request body:
    {
        "quantities": {"1": 1, "2": 0},   (line_id -> quantity)
        "reason": "Damaged packaging",
        "refund_method": "cash" | "card" | "product"
    }
    """
    data = request.get_json(silent=True) or {}
    record = return_service.register_return(
        sale_id,
        data.get("quantities"),
        data.get("reason"),
        data.get("refund_method"),
    )
    return jsonify({"return": record.to_dict()}), 201
