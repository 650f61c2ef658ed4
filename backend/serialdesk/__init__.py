# backend/serialdesk/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def _blueprints():
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.admin import admin_bp, activity_bp, exports_bp
    from .routes.products import products_bp
    from .routes.product_units import product_units_bp
    from .routes.inventory import inventory_bp
    from .routes.warranties import warranties_bp
    from .routes.orders import orders_bp, quotes_bp
    from .routes.retailer_inventory import retailer_inventory_bp

    return (
        system_bp,
        auth_bp,
        admin_bp,
        activity_bp,
        exports_bp,
        products_bp,
        product_units_bp,
        inventory_bp,
        warranties_bp,
        orders_bp,
        quotes_bp,
        retailer_inventory_bp,
    )


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    migrate.init_app(app, db)

    # Models must be imported before Alembic autogenerate reads the metadata
    from . import models  # noqa: F401

    for bp in _blueprints():
        app.register_blueprint(bp)

    cors_origins = set(app.config.get("CORS_ALLOWED_ORIGINS", ()))

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in cors_origins:
            response.headers.update({
                "Access-Control-Allow-Origin": origin,
                "Vary": "Origin",
                "Access-Control-Allow-Headers": "Authorization, Content-Type",
                "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
            })
        return response

    from .cli import register_commands
    register_commands(app)

    app.logger.debug("serialdesk app created (db=%s)", app.config["SQLALCHEMY_DATABASE_URI"])
    return app
