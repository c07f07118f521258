# backend/stockledger/__init__.py
import atexit
from dataclasses import dataclass

from flask import Flask, request

from .config import Config
from .extensions import audit_sink, db, migrate
from .services.concurrency import lock_timeout_engine_options
from .services.ledger_engine import LedgerEngine
from .services.stock_service import StockRecordService

_shutdown_registered = False


@dataclass
class LedgerServices:
    """Per-app service handles, reachable through app.extensions["stockledger"]."""
    engine: LedgerEngine
    stock_records: StockRecordService


def create_app(config_overrides: dict | None = None) -> Flask:
    global _shutdown_registered

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Lock wait bound for SQLite and MySQL lives on the connection
    if not app.config.get("SQLALCHEMY_ENGINE_OPTIONS"):
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = lock_timeout_engine_options(
            app.config["SQLALCHEMY_DATABASE_URI"],
            app.config["LEDGER_LOCK_TIMEOUT_MS"],
        )

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    audit_sink.init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    engine = LedgerEngine.from_config(app.config, db.session, audit_sink)
    app.extensions["stockledger"] = LedgerServices(
        engine=engine,
        stock_records=StockRecordService(
            db.session,
            engine,
            audit_sink,
            default_threshold=app.config["DEFAULT_REORDER_THRESHOLD"],
            recent_limit=app.config["RECENT_MOVEMENTS_LIMIT"],
        ),
    )

    # Register blueprints
    from .routes.system import system_bp
    from .routes.inventory import inventory_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(inventory_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "X-User-Id, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    # Drain queued audit writes before the interpreter exits
    if not _shutdown_registered:
        atexit.register(audit_sink.shutdown)
        _shutdown_registered = True

    return app
