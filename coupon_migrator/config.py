"""
Configuration management for Coupon Migrator.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # BigCommerce API
    BIGCOMMERCE_API_BASE = os.getenv('BIGCOMMERCE_API_BASE', 'https://api.bigcommerce.com')
    BIGCOMMERCE_TIMEOUT = float(os.getenv('BIGCOMMERCE_TIMEOUT', '30'))
    BIGCOMMERCE_PAGE_SIZE = 250

    # Minimum spacing between requests, in seconds, per endpoint class
    BIGCOMMERCE_V2_MIN_INTERVAL = float(os.getenv('BIGCOMMERCE_V2_MIN_INTERVAL', '0.25'))
    BIGCOMMERCE_V3_MIN_INTERVAL = float(os.getenv('BIGCOMMERCE_V3_MIN_INTERVAL', '0.2'))

    # Test hook: an httpx transport used instead of the network
    BIGCOMMERCE_TRANSPORT = None

    # Migration engine
    MIGRATION_CONCURRENCY = int(os.getenv('MIGRATION_CONCURRENCY', '5'))
    MIGRATION_BATCH_SIZE = int(os.getenv('MIGRATION_BATCH_SIZE', '50'))
    MIGRATION_MAX_BATCH_SIZE = int(os.getenv('MIGRATION_MAX_BATCH_SIZE', '50'))
    MIGRATION_PROCEED_ON_DELETE_FAILURE = _env_bool('MIGRATION_PROCEED_ON_DELETE_FAILURE', True)
    DEFAULT_CHANNEL_ID = os.getenv('DEFAULT_CHANNEL_ID', '1')

    # Index-batched promotion export
    EXPORT_BATCH_SIZE = int(os.getenv('EXPORT_BATCH_SIZE', '100'))
    EXPORT_CACHE_TIMEOUT = int(os.getenv('EXPORT_CACHE_TIMEOUT', '600'))

    CACHE_TYPE = os.getenv('CACHE_TYPE', 'SimpleCache')
    CACHE_DEFAULT_TIMEOUT = 300


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///coupon_migrator_dev.db'  # SQLite fallback for local dev
    )


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    _db_url = os.getenv('DATABASE_URL', 'sqlite:///coupon_migrator.db')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    _secret_key = os.getenv('SECRET_KEY', '')

    @classmethod
    def validate_secret_key(cls) -> str:
        """
        Validate SECRET_KEY in production environment.

        Raises:
            RuntimeError: If SECRET_KEY is missing, empty, or too short
        """
        if not cls._secret_key:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY environment variable is not set!\n"
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )

        if len(cls._secret_key) < 32:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY is too short (minimum 32 characters required)!\n"
                "Generate a secure key with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )

        return cls._secret_key

    SECRET_KEY = _secret_key  # Validated at app startup


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    BIGCOMMERCE_V2_MIN_INTERVAL = 0.0
    BIGCOMMERCE_V3_MIN_INTERVAL = 0.0
    CACHE_TYPE = 'SimpleCache'


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    Args:
        config_name: The configuration environment name

    Raises:
        RuntimeError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()
