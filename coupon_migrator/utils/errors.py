"""
Standardized error response utilities for the Coupon Migrator API.

Every failing endpoint answers with a flat body so callers can show
``data.error`` directly:
{
    "error": "User-friendly error message",
    "code": "ERROR_CODE"
}

Usage:
    from coupon_migrator.utils.errors import bad_request, ErrorCode

    return bad_request("Store hash and access token are required", ErrorCode.MISSING_FIELD)
"""
import logging
from enum import Enum
from flask import jsonify
from typing import Optional

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Validation Errors (400)
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    DUPLICATE_CODES = "DUPLICATE_CODES"
    INVALID_FILE = "INVALID_FILE"
    BATCH_TOO_LARGE = "BATCH_TOO_LARGE"

    # Not Found (404)
    NOT_FOUND = "NOT_FOUND"
    RUN_NOT_FOUND = "RUN_NOT_FOUND"

    # External Service Errors
    CONNECTION_FAILED = "CONNECTION_FAILED"

    # Server Errors (500)
    EXPORT_FAILED = "EXPORT_FAILED"
    MIGRATION_FAILED = "MIGRATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status_code: int = 500,
    log_error: bool = True,
    details: Optional[dict] = None
) -> tuple:
    """
    Create a standardized error response.

    Args:
        message: User-friendly error message
        code: Error code from ErrorCode enum
        status_code: HTTP status code
        log_error: Whether to log the error
        details: Optional additional details (only logged, not returned to user)

    Returns:
        Tuple of (response, status_code) for Flask
    """
    if log_error and status_code >= 500:
        logger.error(f"API Error [{code}]: {message}", extra={"details": details})
    elif log_error and status_code >= 400:
        logger.warning(f"API Error [{code}]: {message}", extra={"details": details})

    response = {
        "error": message,
        "code": code.value if isinstance(code, ErrorCode) else code
    }

    return jsonify(response), status_code


def bad_request(message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST) -> tuple:
    """400 Bad Request error."""
    return error_response(message, code, 400, log_error=False)


def not_found(message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> tuple:
    """404 Not Found error."""
    return error_response(message, code, 404, log_error=False)


def internal_error(
    message: str = "An unexpected error occurred",
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    details: Optional[dict] = None
) -> tuple:
    """500 Internal Server Error."""
    return error_response(message, code, 500, log_error=True, details=details)
