"""
Coupon Migration Engine.

Replaces legacy coupons with V3 standard promotions:

    pending -> legacy_deleted -> created
                             \\-> failed

For each descriptor the engine deletes the old resource (V2 coupon and/or
V3 promotion with its codes), creates a COUPON promotion whose single rule
encodes the discount, then attaches the code. Items run in fixed-size
chunks; the items of one chunk run in parallel and the chunk is joined
before the next starts.
"""
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .bigcommerce_client import BigCommerceClient, classify_error
from .coupon_formats import Coupon, FIXED, PER_ITEM, parse_int
from ..utils.exceptions import BigCommerceError, InvalidCouponError

logger = logging.getLogger(__name__)

# Item states
PENDING = 'pending'
LEGACY_DELETED = 'legacy_deleted'
CREATED = 'created'
FAILED = 'failed'

DEFAULT_CONCURRENCY = 5


@dataclass
class ItemOutcome:
    """Terminal result for one input item."""
    code: str
    state: str = PENDING
    legacy_deleted: bool = False
    created: Optional[Dict[str, Any]] = None
    deleted: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None


@dataclass
class BatchResult:
    """Outcome lists of a migration; only ever appended to."""
    created: List[Dict[str, Any]] = field(default_factory=list)
    deleted: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def add_outcome(self, outcome: ItemOutcome) -> None:
        self.deleted.extend(outcome.deleted)
        if outcome.created is not None:
            self.created.append(outcome.created)
        if outcome.error is not None:
            self.errors.append(outcome.error)

    def extend(self, other: 'BatchResult') -> None:
        self.created.extend(other.created)
        self.deleted.extend(other.deleted)
        self.errors.extend(other.errors)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BatchResult':
        data = data or {}
        return cls(
            created=list(data.get('created') or []),
            deleted=list(data.get('deleted') or []),
            errors=list(data.get('errors') or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'created': list(self.created),
            'deleted': list(self.deleted),
            'errors': list(self.errors),
        }


def build_promotion_payload(coupon: Coupon, channel_id) -> Dict[str, Any]:
    """
    Build the V3 promotion for a descriptor.

    fixed    -> flat amount off the cart value
    per_item -> percentage off each cart item
    other    -> percentage off the cart value
    """
    if coupon.discount_type == FIXED:
        action = {'cart_value': {'discount': {'fixed_amount': coupon.discount}}}
    elif coupon.discount_type == PER_ITEM:
        action = {'cart_items': {'discount': {'percentage_amount': coupon.discount}}}
    else:
        action = {'cart_value': {'discount': {'percentage_amount': coupon.discount}}}

    return {
        'name': coupon.name or f'Coupon: {coupon.code}',
        'channels': [{'id': parse_int(channel_id) or 1}],
        'rules': [{'action': action}],
        'redemption_type': 'COUPON',
        'status': 'ENABLED',
    }


def invalid_item_error(item: Any) -> Dict[str, Any]:
    """Error record for an item whose code isn't a string."""
    try:
        code = json.dumps(item, default=str)
    except (TypeError, ValueError):
        code = repr(item)
    return {
        'code': code,
        'error': 'Invalid coupon data: code is not a string',
        'retryable': False,
    }


def _delete_failure(label: str, error: Exception) -> str:
    """Log a failed deletion and return its message."""
    if isinstance(error, BigCommerceError):
        logger.warning(f"Could not delete {label}: {error.message}")
        return error.message

    logger.warning(f"Unexpected failure deleting {label}", exc_info=True)
    return f'Failed to delete {label}: {error!r}'


class MigrationEngine:
    """
    Migrate coupon descriptors into V3 standard promotions.

    Args:
        client: BigCommerce client for the target store
        concurrency: Items processed in parallel per chunk
        proceed_on_delete_failure: Create the new promotion even when the
            old resource could not be deleted (the historic behaviour).
            When False the item fails with a retryable error instead.
    """

    def __init__(
        self,
        client: BigCommerceClient,
        concurrency: int = DEFAULT_CONCURRENCY,
        proceed_on_delete_failure: bool = True
    ):
        self.client = client
        self.concurrency = max(1, int(concurrency))
        self.proceed_on_delete_failure = proceed_on_delete_failure

    # ==================== BATCH ====================

    def migrate(self, items: List[Any], channel_id='1') -> BatchResult:
        """
        Migrate items and collect their outcomes.

        Every input item yields exactly one terminal record: a created
        entry (plus any deleted entries) or an error entry.
        """
        result = BatchResult()
        for outcome in self.migrate_outcomes(items, channel_id):
            result.add_outcome(outcome)

        logger.info(
            f"Migrated batch of {len(items)}: {len(result.created)} created, "
            f"{len(result.deleted)} deleted, {len(result.errors)} errors"
        )
        return result

    def migrate_outcomes(
        self,
        items: List[Any],
        channel_id='1',
        on_outcome: Optional[Callable[[int, ItemOutcome], None]] = None
    ) -> List[ItemOutcome]:
        """
        Migrate items in chunks of `concurrency`, returning outcomes in input order.

        Args:
            items: Coupon descriptors, payload dicts or bare code strings
            channel_id: Channel the new promotions are scoped to
            on_outcome: Called with (index, outcome) once each chunk is joined
        """
        outcomes: List[ItemOutcome] = []
        if not items:
            return outcomes

        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            for start in range(0, len(items), self.concurrency):
                chunk = items[start:start + self.concurrency]
                chunk_outcomes = list(executor.map(
                    lambda item: self.migrate_item(item, channel_id),
                    chunk
                ))
                for offset, outcome in enumerate(chunk_outcomes):
                    if on_outcome:
                        on_outcome(start + offset, outcome)
                outcomes.extend(chunk_outcomes)

        return outcomes

    def retry(self, items: List[Any], failed_codes: List[str], channel_id='1') -> BatchResult:
        """
        Re-run only the items whose code is in failed_codes.

        Codes are matched back to the first descriptor carrying them, so
        codes must be unique within a run.
        """
        by_code: Dict[str, Coupon] = {}
        for item in items:
            try:
                coupon = Coupon.from_payload(item)
            except InvalidCouponError:
                continue
            by_code.setdefault(coupon.code, coupon)

        targets = [by_code[code] for code in failed_codes if code in by_code]
        return self.migrate(targets, channel_id)

    # ==================== SINGLE ITEM ====================

    def migrate_item(self, item: Any, channel_id='1') -> ItemOutcome:
        """Delete the legacy resource for one item, then create its replacement."""
        try:
            coupon = Coupon.from_payload(item)
        except InvalidCouponError:
            outcome = ItemOutcome(code=str(item), state=FAILED)
            outcome.error = invalid_item_error(item)
            return outcome

        outcome = ItemOutcome(code=coupon.code)

        delete_error = self._delete_legacy(coupon, outcome)
        if delete_error is None:
            outcome.legacy_deleted = True
            outcome.state = LEGACY_DELETED
        elif not self.proceed_on_delete_failure:
            outcome.state = FAILED
            outcome.error = {'code': coupon.code, 'error': delete_error, 'retryable': True}
            return outcome

        try:
            outcome.created = self._create_standard_coupon(coupon, channel_id)
            outcome.state = CREATED
        except Exception as e:
            if not isinstance(e, BigCommerceError):
                logger.exception(f"Unexpected failure creating promotion for {coupon.code}")
            message, retryable = classify_error(e, coupon.code)
            outcome.state = FAILED
            outcome.error = {'code': coupon.code, 'error': message, 'retryable': retryable}

        return outcome

    def _delete_legacy(self, coupon: Coupon, outcome: ItemOutcome) -> Optional[str]:
        """
        Delete the V2 coupon and/or V3 promotion the descriptor replaces.

        Returns:
            None when every deletion succeeded (or there was nothing to
            delete), else the first failure message. Failures are logged,
            never raised.
        """
        failure = None

        if coupon.old_coupon_id:
            try:
                self.client.delete_legacy_coupon(coupon.old_coupon_id)
                outcome.deleted.append({
                    'code': coupon.code,
                    'couponId': coupon.old_coupon_id,
                    'type': 'legacy',
                })
            except Exception as e:
                failure = _delete_failure(f'legacy coupon {coupon.old_coupon_id}', e)

        if coupon.old_promotion_id:
            try:
                self.client.delete_promotion(coupon.old_promotion_id)
                outcome.deleted.append({
                    'code': coupon.code,
                    'promotionId': coupon.old_promotion_id,
                    'type': 'standard',
                })
            except Exception as e:
                failure = failure or _delete_failure(f'promotion {coupon.old_promotion_id}', e)

        return failure

    def _create_standard_coupon(self, coupon: Coupon, channel_id) -> Dict[str, Any]:
        promotion = self.client.create_promotion(build_promotion_payload(coupon, channel_id))
        promotion_id = promotion['id']

        code = self.client.create_promotion_code(promotion_id, coupon.code, coupon.max_uses)

        return {
            'promotionId': promotion_id,
            'couponId': code['id'],
            'code': coupon.code,
        }


def engine_for_client(client: BigCommerceClient, concurrency: Optional[int] = None) -> MigrationEngine:
    """Build an engine from the current app's migration config."""
    from flask import current_app

    return MigrationEngine(
        client,
        concurrency=concurrency or current_app.config.get('MIGRATION_CONCURRENCY', DEFAULT_CONCURRENCY),
        proceed_on_delete_failure=current_app.config.get('MIGRATION_PROCEED_ON_DELETE_FAILURE', True)
    )
