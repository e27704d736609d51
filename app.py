"""ModaNova storefront Flask application."""

from __future__ import annotations

from typing import Optional

from flask import Flask, jsonify
from werkzeug.exceptions import RequestEntityTooLarge

from config import StorefrontConfig
from routes import admin, api, auth
from services import ProductImageService
from storefront.config import AppConfig, load_env
from storefront.db.session import Database
from storefront.services.catalog_service import CatalogService
from storefront.services.category_service import CategoryService
from storefront.services.customer_service import CustomerService
from storefront.services.errors import (
    AuthError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    OrderFailed,
    OrderRejected,
    ValidationError,
)
from storefront.services.logging import configure_logging, log_event
from storefront.services.order_service import OrderService

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def _register_error_handlers(app: Flask) -> None:
    def _error(message: str, status: int, **extra):
        body = {"error": message}
        body.update(extra)
        return jsonify(body), status

    @app.errorhandler(ValidationError)
    def _validation(exc):
        return _error(str(exc), 400)

    @app.errorhandler(OrderRejected)
    def _order_rejected(exc):
        return _error(str(exc), 400, kind=exc.kind, product_id=exc.product_id)

    @app.errorhandler(AuthError)
    def _auth(exc):
        return _error(str(exc), 401)

    @app.errorhandler(ForbiddenError)
    def _forbidden(exc):
        return _error(str(exc), 403)

    @app.errorhandler(NotFoundError)
    def _not_found(exc):
        return _error(str(exc), 404)

    @app.errorhandler(ConflictError)
    def _conflict(exc):
        return _error(str(exc), 409)

    @app.errorhandler(RequestEntityTooLarge)
    def _too_large(exc):
        return _error("upload exceeds the 5 MB limit", 413)

    @app.errorhandler(OrderFailed)
    def _order_failed(exc):
        return _error("could not place the order", 500)


def create_app(config: Optional[StorefrontConfig] = None, app_config: Optional[AppConfig] = None) -> Flask:
    config = config or StorefrontConfig.load()
    app_config = app_config or load_env()
    configure_logging(app_config.log_level)

    app = Flask(
        __name__,
        static_folder=str(config.public_dir),
        static_url_path="",
    )
    app.config["SECRET_KEY"] = config.secret_key
    app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_BYTES
    app.config["STOREFRONT_CONFIG"] = config
    app.config["STOREFRONT_APP_CONFIG"] = app_config

    database = Database(app_config.database_url)
    database.create_all()

    components = {
        "database": database,
        "catalog_service": CatalogService(database.session, currency=app_config.currency),
        "category_service": CategoryService(database.session),
        "order_service": OrderService(database.session, currency=app_config.currency),
        "customer_service": CustomerService(
            database.session, jwt_secret=config.jwt_secret, token_ttl=config.token_ttl
        ),
        "image_service": ProductImageService(config.images_dir),
    }
    app.extensions["storefront_components"] = components

    components["customer_service"].ensure_admin_account(config.admin_email, config.admin_password)

    app.register_blueprint(auth.auth_bp)
    app.register_blueprint(api.api_bp)
    app.register_blueprint(admin.admin_bp)
    _register_error_handlers(app)

    log_event("info", "app.started", currency=app_config.currency)
    return app


def main() -> None:
    config = StorefrontConfig.load()
    app = create_app(config)
    app.run(host=config.host, port=config.port, debug=False)


if __name__ == "__main__":
    main()
