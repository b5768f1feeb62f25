"""
CLI Commands for Coupon Migrator.

Usage:
    flask coupons test-connection                 # Verify credentials
    flask coupons export-legacy -o legacy.csv     # Export V2 coupons
    flask coupons export-promotions -o codes.json # Export V3 coupon promotions
    flask coupons migrate --file legacy.csv       # Migrate codes in batches
    flask coupons validate-file legacy.csv        # Check a file offline
"""
from .coupons import init_app as init_coupon_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_coupon_commands(app)
