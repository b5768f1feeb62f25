"""
Cache utilities for Coupon Migrator.

Uses Flask-Caching. The index-batched export keeps the store's coupon
promotion list here between slices so later slices don't page through
the whole promotion list again.

Usage:
    from coupon_migrator.utils.cache import cache, cache_key

    key = cache_key('coupon_promotions', store_hash='abc123')
    cache.set(key, promotions, timeout=600)
    promotions = cache.get(key)

Environment Variables:
    CACHE_TYPE: Flask-Caching backend name (default SimpleCache)
"""
import logging

from ..extensions import cache

logger = logging.getLogger(__name__)


def init_cache(app):
    """
    Initialize Flask-Caching from the app config.

    Args:
        app: Flask application instance
    """
    app.config.setdefault('CACHE_TYPE', 'SimpleCache')
    app.config.setdefault('CACHE_DEFAULT_TIMEOUT', 300)
    app.config.setdefault('CACHE_KEY_PREFIX', 'coupon_migrator:')

    cache.init_app(app)
    logger.info('[CouponMigrator] Cache backend: %s', app.config['CACHE_TYPE'])


def cache_key(*args, **kwargs):
    """
    Generate a cache key from arguments.

        key = cache_key('coupon_promotions', store_hash='abc123')
    """
    parts = list(args)
    for k, v in sorted(kwargs.items()):
        parts.append(f'{k}={v}')
    return ':'.join(str(p) for p in parts)
