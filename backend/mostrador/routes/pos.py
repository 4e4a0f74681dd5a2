# Overview: Flask API routes for the counter terminal: cart, payment selection and checkout.

# backend/mostrador/routes/pos.py
"""
Point of Sale API Routes

WHY: The counter screen builds a cart, picks a payment method and
posts the sale. Cart state belongs to the terminal (signed session),
so nothing here touches the store until checkout.

DESIGN:
- Every cart response carries the resolved lines and totals
- Checkout clears the cart only when the sale was posted
- Checkout runs under the per-terminal single-flight guard
"""

from flask import Blueprint, request, jsonify

from ..decorators import json_errors, terminal_operation
from ..services import cart_service, checkout_service
from ..services.cache import get_cache
from ..validation import parse_int


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _catalog() -> dict:
    return {p.id: p for p in get_cache().products()}


def _cart_payload(pos: cart_service.PosSession) -> dict:
    products = _catalog()
    return {
        "lines": [e.to_dict() for e in cart_service.detail(pos.lines, products)],
        "totals": cart_service.totals(pos, products).to_dict(),
        "payment_method": pos.payment_method,
        "cash_received": pos.cash_received,
        "fiado_client_id": pos.fiado_client_id,
    }


@pos_bp.get("/cart")
@json_errors("Failed to load cart")
def get_cart_route():
    pos = cart_service.load_pos_session()
    return jsonify({"cart": _cart_payload(pos)}), 200


@pos_bp.post("/cart/items")
@json_errors("Failed to add item to cart")
def add_item_route():
    """
    Add one unit of a product.

    Request body:
    {
        "product_id": 3
    }
    """
    data = request.get_json(silent=True) or {}
    product_id = parse_int(data.get("product_id"), "product_id")

    pos = cart_service.load_pos_session()
    cart_service.add_product(pos, _catalog(), product_id)
    cart_service.save_pos_session(pos)
    return jsonify({"cart": _cart_payload(pos)}), 200


@pos_bp.patch("/cart/items/<int:product_id>")
@json_errors("Failed to update cart item")
def update_item_route(product_id: int):
    """
    Request body:
    {
        "quantity": 4     (0 or less removes the line)
    }
    """
    data = request.get_json(silent=True) or {}
    pos = cart_service.load_pos_session()
    cart_service.update_quantity(pos, _catalog(), product_id, data.get("quantity"))
    cart_service.save_pos_session(pos)
    return jsonify({"cart": _cart_payload(pos)}), 200


@pos_bp.delete("/cart/items/<int:product_id>")
@json_errors("Failed to remove cart item")
def remove_item_route(product_id: int):
    pos = cart_service.load_pos_session()
    cart_service.remove_line(pos, product_id)
    cart_service.save_pos_session(pos)
    return jsonify({"cart": _cart_payload(pos)}), 200


@pos_bp.delete("/cart")
@json_errors("Failed to clear cart")
def clear_cart_route():
    pos = cart_service.load_pos_session()
    cart_service.clear_cart(pos)
    cart_service.save_pos_session(pos)
    return jsonify({"cart": _cart_payload(pos)}), 200


@pos_bp.post("/payment")
@json_errors("Failed to select payment method")
def select_payment_route():
    """
    Request body:
    {
        "payment_method": "cash" | "card" | "transfer" | "fiado" | "staff",
        "cash_received": 5000,   (cash only)
        "client_id": 2           (fiado only)
    }
    """
    data = request.get_json(silent=True) or {}
    pos = cart_service.load_pos_session()
    cart_service.select_payment(
        pos,
        data.get("payment_method"),
        cash_received=data.get("cash_received"),
        fiado_client_id=data.get("client_id"),
    )
    cart_service.save_pos_session(pos)
    return jsonify({"cart": _cart_payload(pos)}), 200


@pos_bp.post("/checkout")
@json_errors("Failed to check out")
@terminal_operation
def checkout_route():
    """
    Post the terminal's cart as a sale.

    The body may override the payment selected on the terminal:
    {
        "payment_method": "cash",
        "cash_received": 5000,
        "client_id": 2
    }

    Returns:
        201: sale posted, cart cleared
        400: cart rejected (empty, stock, payment precondition)
        409: another operation is in flight on this terminal
        502: a store write failed
    """
    data = request.get_json(silent=True) or {}
    pos = cart_service.load_pos_session()

    method = data.get("payment_method", pos.payment_method)
    payment = checkout_service.build_payment(
        method,
        cash_received=data.get("cash_received", pos.cash_received),
        client_id=data.get("client_id", pos.fiado_client_id),
    )

    result = checkout_service.checkout(pos.lines, payment)

    cart_service.clear_cart(pos)
    cart_service.save_pos_session(pos)
    return jsonify(result.to_dict()), 201
