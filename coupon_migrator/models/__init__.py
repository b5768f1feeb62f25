"""
Database models for Coupon Migrator.
"""
from .migration_run import MigrationRun, MigrationItem, ItemState

__all__ = [
    'MigrationRun',
    'MigrationItem',
    'ItemState',
]
