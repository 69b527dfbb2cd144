# backend/posdesk/__init__.py
import os

from flask import Flask, request

from .config import Config
from .extensions import db, migrate

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations")


def _register_change_feed(app: Flask) -> None:
    from .services.change_feed import ChangeFeed
    from .services.products_service import products_snapshot
    from .services.sales_service import sales_snapshot
    from .services.invoice_service import invoices_snapshot

    feed = ChangeFeed()
    feed.register_loader("products", products_snapshot)
    feed.register_loader("sales", sales_snapshot)
    feed.register_loader("invoices", invoices_snapshot)
    app.extensions["posdesk.change_feed"] = feed


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Process-local state shared by all requests
    from .services.cart_service import CartRegistry
    app.extensions["posdesk.cart_registry"] = CartRegistry(idle_ttl=app.config["SESSION_IDLE_MINUTES"] * 60)
    _register_change_feed(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.pos import pos_bp
    from .routes.sales import sales_bp
    from .routes.invoices import invoices_bp
    from .routes.analytics import analytics_bp
    from .routes.stream import stream_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(stream_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
