"""
Logging setup for Coupon Migrator.

Configures the root logger once per process. Level comes from LOG_LEVEL
(default INFO); httpx request logging is kept at WARNING so access tokens
in URLs and headers never reach the log.
"""
import logging
import logging.config
import os

_configured = False

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def setup_logging(level: str = None) -> None:
    """Configure application logging (idempotent)."""
    global _configured
    if _configured:
        return

    level = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'default': {'format': LOG_FORMAT},
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'default',
                'stream': 'ext://sys.stdout',
            },
        },
        'root': {
            'level': level,
            'handlers': ['console'],
        },
        'loggers': {
            'httpx': {'level': 'WARNING'},
            'httpcore': {'level': 'WARNING'},
        },
    })
    _configured = True
