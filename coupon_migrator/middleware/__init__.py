"""
Middleware package for Coupon Migrator.
"""
from .credentials import require_credentials, get_request_payload
