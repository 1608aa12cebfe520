# backend/jewelshop/__init__.py
from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import DomainError
from .extensions import db, migrate
from .responses import error, internal_error


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.auth import auth_bp
    from .routes.shops import shops_bp
    from .routes.users import users_bp
    from .routes.customers import customers_bp
    from .routes.suppliers import suppliers_bp
    from .routes.products import products_bp
    from .routes.rates import rates_bp
    from .routes.stock import stock_bp
    from .routes.purchase_orders import purchase_orders_bp
    from .routes.sales_orders import sales_orders_bp
    from .routes.emi import emi_bp
    from .routes.transactions import transactions_bp
    from .routes.audit import audit_bp
    from .routes.reports import reports_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(shops_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(rates_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(purchase_orders_bp)
    app.register_blueprint(sales_orders_bp)
    app.register_blueprint(emi_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(reports_bp)

    @app.errorhandler(DomainError)
    def handle_domain_error(err):
        return error(err)

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return jsonify({
            "success": False,
            "error": {"message": err.description, "code": err.name.upper().replace(" ", "_"), "details": {}},
        }), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return internal_error()

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config.get("CORS_ALLOWED_ORIGINS", []):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, X-Shop-Id"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
