# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

# backend/mostrador/routes/reports.py
from flask import Blueprint, request, jsonify

from ..decorators import json_errors, require_admin
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
@json_errors("Failed to build sales report")
@require_admin
def sales_report_route():
    """
    Query params:
        range: today | week | month | custom   (default today)
        from, to: ISO date or datetime (custom only; a date-only `to` is inclusive)
    """
    report = reporting_service.sales_report(
        request.args.get("range", "today"),
        start=request.args.get("from"),
        end=request.args.get("to"),
    )
    return jsonify(report), 200


@reports_bp.get("/dashboard")
@json_errors("Failed to build dashboard")
def dashboard_route():
    return jsonify(reporting_service.dashboard_snapshot()), 200
