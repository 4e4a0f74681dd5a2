# backend/mostrador/__init__.py
from __future__ import annotations

from flask import Flask, g, request

from .config import Config
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Row store behind every ledger read and write
    from .services.store import STORE_EXTENSION_KEY, RowStore
    app.extensions.setdefault(STORE_EXTENSION_KEY, RowStore())

    # Register blueprints
    from .routes.system import system_bp
    from .routes.admin import admin_bp
    from .routes.products import products_bp
    from .routes.pos import pos_bp
    from .routes.sales import sales_bp
    from .routes.shifts import shifts_bp
    from .routes.clients import clients_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(shifts_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(reports_bp)

    @app.before_request
    def reset_ledger_cache():
        # Every request reads fresh collections
        g.pop("ledger_cache", None)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
