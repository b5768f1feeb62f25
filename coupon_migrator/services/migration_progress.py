"""
Migration progress aggregation.

Merges the results of sequential batches into one running total, tracks
what to show while a run is in flight, and reconciles errors when failed
items are retried.
"""
import logging
from collections import Counter
from typing import Any, Callable, Dict, List, Optional

from .coupon_formats import Coupon
from .migration_engine import BatchResult, MigrationEngine
from ..utils.exceptions import DuplicateCodeError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


def find_duplicate_codes(coupons: List[Coupon]) -> List[str]:
    """Codes that appear more than once, in first-seen order."""
    counts = Counter(c.code for c in coupons)
    seen = []
    for coupon in coupons:
        if counts[coupon.code] > 1 and coupon.code not in seen:
            seen.append(coupon.code)
    return seen


def ensure_unique_codes(coupons: List[Coupon]) -> None:
    """
    Raises:
        DuplicateCodeError: A code appears more than once
    """
    duplicates = find_duplicate_codes(coupons)
    if duplicates:
        raise DuplicateCodeError(duplicates)


class ResultAggregator:
    """
    Running totals across the batches of one migration run.

    Retry matches failed codes back to descriptors, so the run's codes must
    be unique; that is checked up front.
    """

    def __init__(self, coupons: List[Coupon]):
        ensure_unique_codes(coupons)
        self.coupons = list(coupons)
        self.total = len(self.coupons)
        self.processed = 0
        self.current_item_label: Optional[str] = None
        self.results = BatchResult()

    def begin_batch(self, batch: List[Coupon]) -> None:
        self.current_item_label = batch[0].code if batch else None

    def record_batch(self, batch_size: int, result: BatchResult) -> None:
        """Append one fresh batch's outcomes."""
        self.results.extend(result)
        self.processed = min(self.total, self.processed + batch_size)
        self.current_item_label = None

    def record_retry(self, retried_codes: List[str], result: BatchResult) -> None:
        """
        Merge a retry of a subset of items.

        created / deleted accumulate; prior errors for the retried codes
        are replaced by whatever the retry produced.
        """
        retried = set(retried_codes)
        self.results.created.extend(result.created)
        self.results.deleted.extend(result.deleted)
        self.results.errors = [e for e in self.results.errors if e.get('code') not in retried]
        self.results.errors.extend(result.errors)
        self.current_item_label = None

    def retry_candidates(self, errors: Optional[List[Dict[str, Any]]] = None) -> List[Coupon]:
        """
        Descriptors for retryable errors (all current errors by default).
        """
        if errors is None:
            errors = self.results.errors
        by_code = {c.code: c for c in self.coupons}
        candidates = []
        for error in errors:
            if error.get('retryable') is False:
                continue
            coupon = by_code.get(error.get('code'))
            if coupon is not None and coupon not in candidates:
                candidates.append(coupon)
        return candidates

    def snapshot(self) -> Dict[str, Any]:
        """Progress counters for display."""
        return {
            'processed': self.processed,
            'total': self.total,
            'created': len(self.results.created),
            'deleted': len(self.results.deleted),
            'errors': len(self.results.errors),
            'currentItemLabel': self.current_item_label,
        }


def run_in_batches(
    engine: MigrationEngine,
    aggregator: ResultAggregator,
    channel_id='1',
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: Optional[Callable[[Dict[str, Any]], None]] = None,
    should_continue: Optional[Callable[[], bool]] = None
) -> ResultAggregator:
    """
    Run a migration as strictly sequential batches.

    Progress is reported between batches only. Returning False from
    should_continue stops before the next batch starts; a batch already
    in flight always completes.
    """
    coupons = aggregator.coupons
    for start in range(0, len(coupons), batch_size):
        if should_continue is not None and not should_continue():
            logger.info(f"Migration stopped before batch at index {start}")
            break

        batch = coupons[start:start + batch_size]
        aggregator.begin_batch(batch)
        if on_progress:
            on_progress(aggregator.snapshot())

        aggregator.record_batch(len(batch), engine.migrate(batch, channel_id))
        if on_progress:
            on_progress(aggregator.snapshot())

    return aggregator


def retry_failed(
    engine: MigrationEngine,
    aggregator: ResultAggregator,
    channel_id='1',
    errors: Optional[List[Dict[str, Any]]] = None
) -> ResultAggregator:
    """Retry retryable failures (or the given error records) and merge the outcome."""
    targets = aggregator.retry_candidates(errors)
    if not targets:
        return aggregator

    aggregator.begin_batch(targets)
    result = engine.migrate(targets, channel_id)
    aggregator.record_retry([c.code for c in targets], result)
    return aggregator
