"""
Custom exceptions for Coupon Migrator.

BigCommerce failures carry the HTTP status so callers can classify them;
data errors carry enough context to report a single item without aborting
its batch.
"""
from typing import List, Optional


class MigratorError(Exception):
    """Base exception for all Coupon Migrator errors."""

    def __init__(self, message: str, code: str = "MIGRATOR_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class BigCommerceError(MigratorError):
    """Error communicating with the BigCommerce API."""

    def __init__(self, message: str, code: str = "BIGCOMMERCE_ERROR"):
        super().__init__(message, code)


class BigCommerceAPIError(BigCommerceError):
    """Non-2xx response from BigCommerce."""

    def __init__(self, status_code: int, body: str = ''):
        self.status_code = status_code
        self.body = body
        super().__init__(f"API Error ({status_code}): {body[:200]}", "BIGCOMMERCE_API_ERROR")


class BigCommerceNetworkError(BigCommerceError):
    """Transport-level failure (DNS, refused connection, timeout)."""

    def __init__(self, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(
            "Network error: Connection failed. Check your internet connection.",
            "NETWORK_ERROR"
        )


class ValidationError(MigratorError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class InvalidCouponError(ValidationError):
    """A coupon descriptor whose code is missing or not a string."""

    def __init__(self, item=None, message: str = 'Invalid coupon data: code is not a string'):
        self.item = item
        super().__init__(message, 'code')


class CouponFileError(ValidationError):
    """Malformed CSV/JSON import file."""

    def __init__(self, message: str):
        super().__init__(message, 'file')


class DuplicateCodeError(ValidationError):
    """The same coupon code appears more than once in one migration run."""

    def __init__(self, codes: List[str]):
        self.codes = codes
        preview = ', '.join(codes[:10])
        super().__init__(
            f"Coupon codes must be unique within one migration run. Duplicates: {preview}",
            'codes'
        )


class RunNotFoundError(MigratorError):
    """Persisted migration run not found."""

    def __init__(self, run_id: Optional[int] = None):
        message = "Migration run not found"
        if run_id is not None:
            message = f"Migration run {run_id} not found"
        super().__init__(message, "RUN_NOT_FOUND")


class ConfigurationError(MigratorError):
    """Application configuration error."""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")
