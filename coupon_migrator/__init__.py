"""
Coupon Migrator
Flask application factory
"""
import os
import re
import logging
from flask import Flask
from flask_cors import CORS

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.cache import init_cache
from .utils.exceptions import ConfigurationError
from .utils.logging_config import setup_logging
from .services.rate_limiter import init_rate_limiter

logger = logging.getLogger(__name__)


def create_app(config_name: str = None, **overrides) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)
        **overrides: Config values applied after the config class

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()
    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))
    app.config.update(overrides)
    validate_migration_settings(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    init_cache(app)
    init_rate_limiter(app)

    # Configure CORS - allow local wizard frontends
    cors_origins = [
        'http://localhost:3000',
        'http://localhost:5173',
        'http://127.0.0.1:3000',
        'http://127.0.0.1:5173',
    ]
    extra_origin = os.getenv('CORS_ORIGIN')
    if extra_origin:
        cors_origins.append(extra_origin)
    if config_name != 'production':
        cors_origins.append(re.compile(r'http://localhost:\d+'))
    CORS(app, resources={r'/api/*': {'origins': cors_origins}}, allow_headers=['Content-Type'])

    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    register_error_handlers(app)

    # Migration runs table (Flask-Migrate handles schema changes after this)
    from . import models  # noqa: F401
    with app.app_context():
        db.create_all()

    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'coupon-migrator'}

    logger.info(f"Coupon Migrator started ({config_name})")
    return app


def validate_migration_settings(app: Flask) -> None:
    """
    Reject migration settings the engine cannot run with.

    Raises:
        ConfigurationError: On a non-positive concurrency or batch size
    """
    for key in ('MIGRATION_CONCURRENCY', 'MIGRATION_BATCH_SIZE', 'MIGRATION_MAX_BATCH_SIZE', 'EXPORT_BATCH_SIZE'):
        if int(app.config.get(key, 1)) < 1:
            raise ConfigurationError(f"{key} must be at least 1")

    if app.config['MIGRATION_BATCH_SIZE'] > app.config['MIGRATION_MAX_BATCH_SIZE']:
        raise ConfigurationError("MIGRATION_BATCH_SIZE cannot exceed MIGRATION_MAX_BATCH_SIZE")


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    from .api import connection_bp, export_bp, migrate_bp, coupons_bp

    app.register_blueprint(connection_bp, url_prefix='/api')
    app.register_blueprint(export_bp, url_prefix='/api')
    app.register_blueprint(migrate_bp, url_prefix='/api')
    app.register_blueprint(coupons_bp, url_prefix='/api/coupons')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""

    @app.errorhandler(400)
    def bad_request(error):
        return {'error': 'Bad request', 'message': str(error)}, 400

    @app.errorhandler(404)
    def not_found(error):
        return {'error': 'Not found', 'message': str(error)}, 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return {'error': 'Method not allowed', 'message': str(error)}, 405

    @app.errorhandler(500)
    def internal_error(error):
        return {'error': 'Internal server error', 'message': str(error)}, 500
