import logging
import os

from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from werkzeug.exceptions import HTTPException

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()
login_manager = LoginManager()
cache = Cache()
migrate = Migrate()


def get_real_ip():
    """
    Get the real client IP address, accounting for reverse proxies.
    Checks X-Forwarded-For, X-Real-IP, and falls back to remote_addr.
    """
    # X-Forwarded-For: client, proxy1, proxy2, ...
    # We want the leftmost (original client) IP
    if request.headers.get("X-Forwarded-For"):
        return request.headers.get("X-Forwarded-For").split(",")[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers.get("X-Real-IP")
    return get_remote_address()


limiter = Limiter(
    key_func=get_real_ip,
    default_limits=["10000 per day", "1000 per hour"],
)


def create_app(config_name=None):
    app = Flask(__name__)

    # Determine configuration
    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())
    app.json.sort_keys = False

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    cache.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # Import and register blueprints
    from app.routes.auth import bp as auth_bp

    app.register_blueprint(auth_bp, url_prefix="/api/auth")

    from app.routes.races import bp as races_bp

    app.register_blueprint(races_bp, url_prefix="/api/races")

    from app.routes.leagues import bp as leagues_bp

    app.register_blueprint(leagues_bp, url_prefix="/api/leagues")

    from app.routes.predictions import bp as predictions_bp

    app.register_blueprint(predictions_bp, url_prefix="/api/predictions")

    from app.routes.dashboard import bp as dashboard_bp

    app.register_blueprint(dashboard_bp, url_prefix="/api/dashboard")

    from app.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    # Register error handlers
    register_error_handlers(app)

    # Setup logging
    from app.utils.logging_config import setup_logging

    setup_logging(app)

    show_config_warnings(app)

    # Create database tables
    with app.app_context():
        db.create_all()

    return app


def show_config_warnings(app):
    """Log configuration warnings and status"""
    config_name = os.environ.get("FLASK_CONFIG", "default")

    logger.info(f"F1 Predictions starting with '{config_name}' configuration")

    if config_name == "production" and app.config.get("DEBUG"):
        logger.warning("DEBUG mode is enabled in production!")

    if not os.environ.get("SECRET_KEY") and not app.config.get("TESTING"):
        logger.warning(
            "Using auto-generated SECRET_KEY (auth tokens will reset on restart)"
        )

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if "sqlite" in db_url:
        logger.info(
            "Using SQLite database (%s)", "in-memory" if "memory" in db_url else "app.db"
        )
    elif "postgresql" in db_url:
        logger.info("Using PostgreSQL database")
    else:
        logger.info(
            f"Using database: {db_url.split('://')[0] if '://' in db_url else 'Unknown'}"
        )


def register_error_handlers(app):
    """Register global error handlers"""
    from app.utils.errors import ServiceError, error_response

    @app.after_request
    def after_request(response):
        # Add security headers to all responses
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Cache-Control"] = "no-store"

        if not app.config.get("DEBUG"):
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response

    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        if error.status_code >= 500:
            logger.error(f"Service error: {error.message} - Path: {request.path}")
        else:
            logger.info(
                f"{error.kind.value} error: {error.message} - Path: {request.path}"
            )
        db.session.rollback()
        return error_response(error)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        if error.code == 400:
            app.logger.warning(
                f"400 Bad Request: {str(error)} - Path: {request.path} - Method: {request.method}"
            )
        return (
            jsonify(
                {
                    "success": False,
                    "error": {"kind": "http", "message": error.description},
                }
            ),
            error.code,
        )

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        logger.error(f"Unhandled error on {request.path}: {error}")
        return (
            jsonify(
                {
                    "success": False,
                    "error": {"kind": "internal", "message": "Internal server error"},
                }
            ),
            500,
        )


from app import models  # noqa: F401, E402 - imported for model registration
