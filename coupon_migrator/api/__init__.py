"""
API blueprints for Coupon Migrator.

All routes are mounted under /api by the app factory.
"""
from .connection import connection_bp
from .export import export_bp
from .migrate import migrate_bp
from .coupons import coupons_bp
