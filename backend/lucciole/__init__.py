# backend/lucciole/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Log entries are append-only
    from .immutability import register_immutability_listeners
    register_immutability_listeners()

    # Per-app singletons: catalog, live item feed, report cache, session observers
    from .catalog import init_catalog
    from .services.subscriptions import init_item_feed
    from .services.reporting_service import init_report_cache
    from .services.session_service import init_session_events

    init_catalog(app)
    init_item_feed(app)
    init_report_cache(app)
    init_session_events(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.inventory import inventory_bp
    from .routes.menu import menu_bp
    from .routes.reports import reports_bp
    from .routes.shopping_list import shopping_list_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(menu_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(shopping_list_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
            "http://127.0.0.1:4173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
