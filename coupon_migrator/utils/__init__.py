"""
Utility modules for Coupon Migrator.
"""
from .logging_config import setup_logging
from .errors import (
    ErrorCode,
    error_response,
    bad_request,
    not_found,
    internal_error
)
from .exceptions import (
    MigratorError,
    BigCommerceError,
    BigCommerceAPIError,
    BigCommerceNetworkError,
    ValidationError,
    InvalidCouponError,
    CouponFileError,
    DuplicateCodeError,
    RunNotFoundError,
    ConfigurationError
)
