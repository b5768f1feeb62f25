"""
Business logic services for Coupon Migrator.
"""
from .rate_limiter import IntervalRateLimiter
from .bigcommerce_client import BigCommerceClient, classify_error
from .promotion_reader import PromotionReader
from .coupon_formats import Coupon
from .migration_engine import MigrationEngine, BatchResult
from .migration_progress import ResultAggregator, run_in_batches, retry_failed

__all__ = [
    'IntervalRateLimiter',
    'BigCommerceClient',
    'classify_error',
    'PromotionReader',
    'Coupon',
    'MigrationEngine',
    'BatchResult',
    'ResultAggregator',
    'run_in_batches',
    'retry_failed',
]
