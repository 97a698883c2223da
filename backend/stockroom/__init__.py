# backend/stockroom/__init__.py
from flask import Flask, jsonify, request

from .config import Config
from .errors import LedgerError
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        # Must land before db.init_app, which binds the engine
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.purchases import purchases_bp
    from .routes.serials import serials_bp
    from .routes.stock import stock_bp
    from .routes.intake import intake_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(serials_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(intake_bp)

    @app.errorhandler(LedgerError)
    def handle_ledger_error(exc: LedgerError):
        if exc.status_code >= 500:
            app.logger.error("%s on %s %s: %s", exc.code, request.method, request.path, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

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
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
