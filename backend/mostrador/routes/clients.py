# Overview: Flask API routes for fiado (store credit) accounts.

# backend/mostrador/routes/clients.py
from flask import Blueprint, request, jsonify

from ..decorators import json_errors, require_admin, terminal_operation
from ..services import fiado_service


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@json_errors("Failed to list clients")
@require_admin
def list_clients_route():
    """
    Query params:
        with_debt: "1" to list only clients owing money, largest first
    """
    if request.args.get("with_debt") in ("1", "true"):
        clients = fiado_service.clients_with_debt()
    else:
        clients = fiado_service.list_clients()
    return jsonify({"clients": [c.to_dict() for c in clients]}), 200


@clients_bp.post("")
@json_errors("Failed to create client")
@require_admin
def create_client_route():
    """
    Request body:
    {
        "name": "Rosa Fuentes",
        "credit_limit": 30000,
        "authorized": true      (optional, default false)
    }
    """
    data = request.get_json(silent=True) or {}
    client = fiado_service.create_client(
        data.get("name"),
        data.get("credit_limit"),
        authorized=bool(data.get("authorized", False)),
    )
    return jsonify({"client": client.to_dict()}), 201


@clients_bp.patch("/<int:client_id>/authorization")
@json_errors("Failed to update client authorization")
@require_admin
def set_authorization_route(client_id: int):
    """
    Request body:
    {
        "authorized": false
    }
    """
    data = request.get_json(silent=True) or {}
    client = fiado_service.set_authorization(client_id, data.get("authorized"))
    return jsonify({"client": client.to_dict()}), 200


@clients_bp.post("/<int:client_id>/payments")
@json_errors("Failed to record client payment")
@require_admin
@terminal_operation
def record_payment_route(client_id: int):
    """
    Request body:
    {
        "mode": "abono" | "total",
        "amount": 3000,               (required for abono)
        "description": "Pago parcial" (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    client, movement = fiado_service.record_payment(
        client_id,
        data.get("mode"),
        amount=data.get("amount"),
        description=data.get("description"),
    )
    return jsonify({"client": client.to_dict(), "movement": movement.to_dict()}), 201


@clients_bp.get("/<int:client_id>/movements")
@json_errors("Failed to list client movements")
@require_admin
def client_movements_route(client_id: int):
    client = fiado_service.get_client(client_id)
    movements = fiado_service.client_movements(client_id)
    return jsonify({
        "client": client.to_dict(),
        "movements": [m.to_dict() for m in movements],
    }), 200
