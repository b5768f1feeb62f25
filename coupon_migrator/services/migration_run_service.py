"""
Persisted migration run service.

Drives index-batched migrations: a run is created once with all its
descriptors, then processed slice by slice. Item state is saved after
every slice, so a run interrupted between slices resumes without
re-deleting legacy resources that are already gone.
"""
import json
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from ..extensions import db
from ..models.migration_run import MigrationRun, MigrationItem, ItemState
from ..utils.exceptions import RunNotFoundError
from .coupon_formats import Coupon
from .migration_engine import BatchResult, ItemOutcome, MigrationEngine
from .migration_progress import ensure_unique_codes

logger = logging.getLogger(__name__)


class MigrationRunService:
    """Create, advance and retry persisted migration runs."""

    def create_run(self, coupons: List[Coupon], store_hash: str, channel_id: str = '1') -> MigrationRun:
        """
        Store a new run.

        Raises:
            DuplicateCodeError: Codes are not unique within the run
        """
        ensure_unique_codes(coupons)

        run = MigrationRun(store_hash=store_hash, channel_id=str(channel_id or '1'))
        for position, coupon in enumerate(coupons):
            run.items.append(MigrationItem(
                position=position,
                code=coupon.code,
                payload=json.dumps(coupon.to_payload()),
                state=ItemState.PENDING,
            ))

        db.session.add(run)
        db.session.commit()
        logger.info(f"Created migration run {run.id} with {len(coupons)} items for store {store_hash}")
        return run

    def get_run(self, run_id: int, store_hash: Optional[str] = None) -> MigrationRun:
        """
        Raises:
            RunNotFoundError: Unknown id, or the run belongs to another store
        """
        run = db.session.get(MigrationRun, run_id)
        if run is None or (store_hash is not None and run.store_hash != store_hash):
            raise RunNotFoundError(run_id)
        return run

    def process_batch(
        self,
        run: MigrationRun,
        engine: MigrationEngine,
        start_index: int = 0,
        batch_size: int = 50
    ) -> Dict[str, Any]:
        """
        Migrate the items at positions [start_index, start_index + batch_size).

        Created items and non-retryable failures are skipped. Items whose
        legacy resource was already deleted are recreated without a second
        delete.

        Returns:
            {results, hasMore, nextIndex, processed, total}
        """
        start_index = max(0, start_index)
        items = run.items[start_index:start_index + batch_size]
        todo = [
            item for item in items
            if item.state != ItemState.CREATED
            and not (item.state == ItemState.FAILED and item.retryable is False)
        ]

        result = self._migrate_items(run, engine, todo)

        total = len(run.items)
        next_index = start_index + batch_size
        return {
            'results': result.to_dict(),
            'hasMore': next_index < total,
            'nextIndex': next_index,
            'processed': min(next_index, total),
            'total': total,
        }

    def retry_failed(
        self,
        run: MigrationRun,
        engine: MigrationEngine,
        codes: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Re-run failed retryable items (optionally only the given codes).

        Each retried item's new outcome replaces its previous error.
        """
        wanted = set(codes) if codes else None
        todo = [
            item for item in run.items
            if item.state == ItemState.FAILED
            and item.retryable
            and (wanted is None or item.code in wanted)
        ]

        result = self._migrate_items(run, engine, todo)
        return {'results': result.to_dict(), 'retried': [item.code for item in todo]}

    def results(self, run: MigrationRun) -> BatchResult:
        """Current outcome of every item in the run."""
        result = BatchResult()
        for item in run.items:
            result.deleted.extend(item.deleted_list)
            created = item.created_record()
            if created:
                result.created.append(created)
            error = item.error_record()
            if error:
                result.errors.append(error)
        return result

    def progress(self, run: MigrationRun) -> Dict[str, Any]:
        """Progress snapshot in the same shape as ResultAggregator.snapshot()."""
        counts = run.counts()
        result = self.results(run)
        return {
            'processed': counts[ItemState.CREATED] + counts[ItemState.FAILED],
            'total': len(run.items),
            'created': len(result.created),
            'deleted': len(result.deleted),
            'errors': len(result.errors),
            'currentItemLabel': None,
        }

    # ==================== INTERNALS ====================

    def _migrate_items(self, run: MigrationRun, engine: MigrationEngine, items: List[MigrationItem]) -> BatchResult:
        result = BatchResult()
        if not items:
            return result

        coupons = [self._coupon_for(item) for item in items]
        outcomes = engine.migrate_outcomes(coupons, run.channel_id)

        for item, outcome in zip(items, outcomes):
            self._apply_outcome(item, outcome)
            result.add_outcome(outcome)

        db.session.commit()
        logger.info(
            f"Run {run.id}: migrated {len(items)} items, "
            f"{len(result.created)} created, {len(result.errors)} errors"
        )
        return result

    @staticmethod
    def _coupon_for(item: MigrationItem) -> Coupon:
        coupon = Coupon.from_payload(item.payload_dict)
        if item.legacy_deleted:
            # Already gone; deleting again could hit a recreated resource
            coupon = replace(coupon, old_coupon_id=None, old_promotion_id=None)
        return coupon

    @staticmethod
    def _apply_outcome(item: MigrationItem, outcome: ItemOutcome) -> None:
        item.attempts = (item.attempts or 0) + 1
        item.legacy_deleted = item.legacy_deleted or outcome.legacy_deleted
        item.state = outcome.state

        new_deleted = [record for record in outcome.deleted if record not in item.deleted_list]
        if new_deleted:
            item.deleted_records = json.dumps(item.deleted_list + new_deleted)

        if outcome.created is not None:
            item.promotion_id = outcome.created['promotionId']
            item.coupon_id = outcome.created['couponId']
            item.error = None
            item.retryable = None
        elif outcome.error is not None:
            item.error = (outcome.error.get('error') or '')[:500]
            item.retryable = outcome.error.get('retryable', True)


migration_run_service = MigrationRunService()
