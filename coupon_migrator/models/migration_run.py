"""
Persisted migration runs.

A run stores the ordered descriptors of one migration together with each
item's state, so an interrupted run can continue where it stopped:
items whose legacy resource is already gone are recreated without being
deleted again, and items already created are skipped. Credentials are
never stored; every call supplies them.
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..extensions import db
from ..services import migration_engine


class ItemState:
    """Per-item migration states."""
    PENDING = migration_engine.PENDING
    LEGACY_DELETED = migration_engine.LEGACY_DELETED
    CREATED = migration_engine.CREATED
    FAILED = migration_engine.FAILED


class MigrationRun(db.Model):
    """One migration of a set of coupon descriptors into a store."""
    __tablename__ = 'migration_runs'

    id = db.Column(db.Integer, primary_key=True)
    store_hash = db.Column(db.String(100), nullable=False, index=True)
    channel_id = db.Column(db.String(20), nullable=False, default='1')

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship(
        'MigrationItem',
        backref='run',
        lazy='select',
        order_by='MigrationItem.position',
        cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f'<MigrationRun {self.id} store={self.store_hash}>'

    def counts(self) -> Dict[str, int]:
        counts = {
            ItemState.PENDING: 0,
            ItemState.LEGACY_DELETED: 0,
            ItemState.CREATED: 0,
            ItemState.FAILED: 0,
        }
        for item in self.items:
            counts[item.state] = counts.get(item.state, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        """Serialize run summary to dictionary."""
        counts = self.counts()
        return {
            'id': self.id,
            'store_hash': self.store_hash,
            'channel_id': self.channel_id,
            'total': len(self.items),
            'states': counts,
            'complete': counts[ItemState.PENDING] == 0 and counts[ItemState.LEGACY_DELETED] == 0,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class MigrationItem(db.Model):
    """One descriptor of a run and where it is in pending -> legacy_deleted -> created | failed."""
    __tablename__ = 'migration_items'

    id = db.Column(db.Integer, primary_key=True)
    run_id = db.Column(db.Integer, db.ForeignKey('migration_runs.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    code = db.Column(db.String(255), nullable=False)
    payload = db.Column(db.Text, nullable=False)  # JSON: Coupon wire form

    state = db.Column(db.String(20), nullable=False, default=ItemState.PENDING)
    legacy_deleted = db.Column(db.Boolean, default=False, nullable=False)
    attempts = db.Column(db.Integer, default=0, nullable=False)

    # Outcome
    promotion_id = db.Column(db.Integer)
    coupon_id = db.Column(db.Integer)
    deleted_records = db.Column(db.Text)  # JSON list of deleted entries
    error = db.Column(db.String(500))
    retryable = db.Column(db.Boolean)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('run_id', 'code', name='uq_migration_item_run_code'),
    )

    def __repr__(self):
        return f'<MigrationItem {self.code} {self.state}>'

    @property
    def payload_dict(self) -> Dict[str, Any]:
        return json.loads(self.payload) if self.payload else {}

    @property
    def deleted_list(self) -> List[Dict[str, Any]]:
        return json.loads(self.deleted_records) if self.deleted_records else []

    def created_record(self) -> Optional[Dict[str, Any]]:
        if self.state != ItemState.CREATED:
            return None
        return {'promotionId': self.promotion_id, 'couponId': self.coupon_id, 'code': self.code}

    def error_record(self) -> Optional[Dict[str, Any]]:
        if self.state != ItemState.FAILED:
            return None
        return {'code': self.code, 'error': self.error, 'retryable': bool(self.retryable)}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize item to dictionary."""
        return {
            'position': self.position,
            'code': self.code,
            'state': self.state,
            'legacy_deleted': self.legacy_deleted,
            'attempts': self.attempts,
            'promotion_id': self.promotion_id,
            'coupon_id': self.coupon_id,
            'error': self.error,
            'retryable': self.retryable,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
