# backend/stockledger/__init__.py
import logging
import uuid

from flask import Flask, g, request

from .config import Config
from .extensions import db, migrate


REQUEST_ID_HEADER = "X-Request-ID"


def _configure_logging(app: Flask) -> None:
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    app.logger.setLevel(level)
    logging.getLogger("stockledger").setLevel(level)


def create_app(overrides: dict | None = None, rate_limit_store=None) -> Flask:
    """
    Build the Flask application.

    ``overrides`` is applied before extensions initialize, so tests can point
    SQLALCHEMY_DATABASE_URI at a throwaway database.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    from .services.rate_limit_service import InMemoryRateLimitStore
    app.extensions["rate_limit_store"] = rate_limit_store or InMemoryRateLimitStore()

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.sales import sales_bp
    from .routes.returns import returns_bp
    from .routes.transfers import transfers_bp
    from .routes.inventory import inventory_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(inventory_bp)

    from .routes.errors import register_error_handlers
    register_error_handlers(app)

    @app.before_request
    def assign_request_id():
        incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
        g.request_id = incoming[:128] if incoming else uuid.uuid4().hex

    @app.after_request
    def echo_request_id(response):
        request_id = g.get("request_id")
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
