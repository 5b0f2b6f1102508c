# backend/stockroom/__init__.py

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import AuthorizationDenied, NotFound, ValidationFailed
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services.authorization_service import AuthorizationService
    app.extensions["authorization"] = AuthorizationService()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.templates import templates_bp
    from .routes.stock_records import stock_in_bp, stock_out_bp
    from .routes.reports import reports_bp
    from .routes.users import users_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(templates_bp)
    app.register_blueprint(stock_in_bp)
    app.register_blueprint(stock_out_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(users_bp)

    register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config.get("CORS_ALLOWED_ORIGINS", ()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    """Translate service-layer errors into JSON responses."""

    @app.errorhandler(AuthorizationDenied)
    def handle_denied(e):
        return jsonify({"error": e.message, "required_permission": e.action}), 403

    @app.errorhandler(ValidationFailed)
    def handle_validation(e):
        return jsonify({"message": e.message, "errors": e.errors}), 422

    @app.errorhandler(NotFound)
    def handle_not_found(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(HTTPException)
    def handle_http(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500
