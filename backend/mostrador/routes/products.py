# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

# backend/mostrador/routes/products.py
from flask import Blueprint, request, jsonify

from ..decorators import json_errors, require_admin
from ..services import catalog_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@json_errors("Failed to list products")
def list_products_route():
    """
    Query params:
        q: search over name, category, barcode
        category: exact category
        stock: all | low | out
    """
    products = catalog_service.list_products(
        search=request.args.get("q"),
        category=request.args.get("category"),
        stock_filter=request.args.get("stock", "all"),
    )
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/categories")
@json_errors("Failed to list categories")
def list_categories_route():
    return jsonify({"categories": catalog_service.list_categories()}), 200


@products_bp.get("/low-stock")
@json_errors("Failed to list low stock products")
def low_stock_route():
    limit = request.args.get("limit", type=int)
    products = catalog_service.low_stock_products(limit)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/stats")
@json_errors("Failed to compute inventory stats")
@require_admin
def inventory_stats_route():
    return jsonify(catalog_service.inventory_stats()), 200


@products_bp.post("")
@json_errors("Failed to create product")
@require_admin
def create_product_route():
    """
    Request body:
    {
        "name": "Leche entera 1L",
        "category": "Lacteos",
        "price": 1190,
        "stock": 24,          (optional, default 0)
        "min_stock": 6,       (optional, default 5)
        "barcode": "780..."   (optional)
    }
    """
    product = catalog_service.create_product(request.get_json(silent=True) or {})
    return jsonify({"product": product.to_dict()}), 201


@products_bp.patch("/<int:product_id>")
@json_errors("Failed to update product")
@require_admin
def edit_product_route(product_id: int):
    product = catalog_service.edit_product(product_id, request.get_json(silent=True) or {})
    return jsonify({"product": product.to_dict()}), 200


@products_bp.post("/<int:product_id>/stock")
@json_errors("Failed to add stock")
@require_admin
def add_stock_route(product_id: int):
    """
    Request body:
    {
        "quantity": 12,
        "reason": "Supplier delivery"   (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    product = catalog_service.add_stock(product_id, data.get("quantity"), data.get("reason"))
    return jsonify({"product": product.to_dict()}), 200
