"""
Migration API.

One engine behind three ways of driving it:
- /migrate         single shot: every code in one request
- /migrate-batch   client-batched: the caller sends slices of at most
                   MIGRATION_MAX_BATCH_SIZE codes, one request at a time
- /migrations/...  index-batched: the run is stored once, then advanced
                   slice by slice and retried server-side
"""
import logging
from typing import Any, List
from flask import Blueprint, request, jsonify, g, current_app

from ..middleware.credentials import require_credentials
from ..services.coupon_formats import Coupon
from ..services.migration_engine import engine_for_client
from ..services.migration_progress import find_duplicate_codes
from ..services.migration_run_service import migration_run_service
from ..utils.errors import bad_request, not_found, internal_error, ErrorCode
from ..utils.exceptions import DuplicateCodeError, InvalidCouponError, RunNotFoundError

logger = logging.getLogger(__name__)

migrate_bp = Blueprint('migrate', __name__)

CODES_REQUIRED = 'Store hash, access token, and codes array are required'


def _valid_coupons(items: List[Any]) -> List[Coupon]:
    coupons = []
    for item in items:
        try:
            coupons.append(Coupon.from_payload(item))
        except InvalidCouponError:
            continue
    return coupons


def _duplicate_codes_response(codes: List[str]):
    return bad_request(DuplicateCodeError(codes).message, ErrorCode.DUPLICATE_CODES)


def _run_migration(codes: List[Any]):
    duplicates = find_duplicate_codes(_valid_coupons(codes))
    if duplicates:
        return _duplicate_codes_response(duplicates)

    engine = engine_for_client(g.bigcommerce)
    try:
        results = engine.migrate(codes, g.channel_id)
    except Exception as e:
        logger.exception(f"Migration failed for store {g.store_hash}")
        return internal_error(str(e) or 'Migration failed', ErrorCode.MIGRATION_FAILED)

    return jsonify({'success': True, 'results': results.to_dict()})


# ==================== Stateless ====================

@migrate_bp.route('/migrate', methods=['POST'])
@require_credentials(CODES_REQUIRED)
def migrate():
    """
    Migrate every code in the request.

    Request body:
        storeHash, accessToken, channelId (optional, default "1")
        codes: list of descriptors or bare code strings
    """
    codes = g.payload.get('codes')
    if not isinstance(codes, list):
        return bad_request(CODES_REQUIRED, ErrorCode.MISSING_FIELD)

    return _run_migration(codes)


@migrate_bp.route('/migrate-batch', methods=['POST'])
@require_credentials(CODES_REQUIRED)
def migrate_batch():
    """Migrate one client-side batch (at most MIGRATION_MAX_BATCH_SIZE codes)."""
    codes = g.payload.get('codes')
    if not isinstance(codes, list):
        return bad_request(CODES_REQUIRED, ErrorCode.MISSING_FIELD)

    max_batch = current_app.config.get('MIGRATION_MAX_BATCH_SIZE', 50)
    if len(codes) > max_batch:
        return bad_request(f'A batch may contain at most {max_batch} codes', ErrorCode.BATCH_TOO_LARGE)

    return _run_migration(codes)


# ==================== Persisted runs ====================

@migrate_bp.route('/migrations', methods=['POST'])
@require_credentials(CODES_REQUIRED)
def create_run():
    """
    Store a migration run without touching the store yet.

    Every descriptor must carry a string code and codes must be unique.
    """
    codes = g.payload.get('codes')
    if not isinstance(codes, list) or not codes:
        return bad_request(CODES_REQUIRED, ErrorCode.MISSING_FIELD)

    coupons = []
    for index, item in enumerate(codes):
        try:
            coupons.append(Coupon.from_payload(item))
        except InvalidCouponError as e:
            return bad_request(f'Item {index}: {e.message}', ErrorCode.INVALID_FIELD)

    try:
        run = migration_run_service.create_run(coupons, g.store_hash, g.channel_id)
    except DuplicateCodeError as e:
        return bad_request(e.message, ErrorCode.DUPLICATE_CODES)

    return jsonify({'success': True, 'run': run.to_dict()}), 201


@migrate_bp.route('/migrations/<int:run_id>', methods=['GET'])
def get_run(run_id):
    """
    Progress and current results of a run.

    Query params:
        storeHash: required, the run's store
    """
    store_hash = request.args.get('storeHash')
    if not store_hash:
        return bad_request('storeHash is required', ErrorCode.MISSING_FIELD)

    try:
        run = migration_run_service.get_run(run_id, store_hash)
    except RunNotFoundError as e:
        return not_found(e.message, ErrorCode.RUN_NOT_FOUND)

    return jsonify({
        'success': True,
        'run': run.to_dict(),
        'progress': migration_run_service.progress(run),
        'results': migration_run_service.results(run).to_dict(),
        'items': [item.to_dict() for item in run.items],
    })


@migrate_bp.route('/migrations/<int:run_id>/batch', methods=['POST'])
@require_credentials()
def process_run_batch(run_id):
    """
    Advance a run by one slice.

    Request body:
        startIndex: int (default 0)
        batchSize: int (default MIGRATION_BATCH_SIZE)
    """
    try:
        run = migration_run_service.get_run(run_id, g.store_hash)
    except RunNotFoundError as e:
        return not_found(e.message, ErrorCode.RUN_NOT_FOUND)

    try:
        start_index = int(g.payload.get('startIndex') or 0)
        batch_size = int(g.payload.get('batchSize') or current_app.config.get('MIGRATION_BATCH_SIZE', 50))
    except (TypeError, ValueError):
        return bad_request('startIndex and batchSize must be integers', ErrorCode.INVALID_FIELD)

    if start_index < 0 or batch_size < 1:
        return bad_request('startIndex must be >= 0 and batchSize >= 1', ErrorCode.INVALID_FIELD)

    max_batch = current_app.config.get('MIGRATION_MAX_BATCH_SIZE', 50)
    if batch_size > max_batch:
        return bad_request(f'A batch may contain at most {max_batch} codes', ErrorCode.BATCH_TOO_LARGE)

    outcome = migration_run_service.process_batch(
        run, engine_for_client(g.bigcommerce), start_index, batch_size
    )
    outcome['progress'] = migration_run_service.progress(run)
    return jsonify({'success': True, **outcome})


@migrate_bp.route('/migrations/<int:run_id>/retry', methods=['POST'])
@require_credentials()
def retry_run(run_id):
    """
    Retry failed, retryable items.

    Request body:
        codes: optional list of codes to retry (default: all retryable failures)
    """
    try:
        run = migration_run_service.get_run(run_id, g.store_hash)
    except RunNotFoundError as e:
        return not_found(e.message, ErrorCode.RUN_NOT_FOUND)

    codes = g.payload.get('codes')
    if codes is not None and (
        not isinstance(codes, list) or not all(isinstance(c, str) for c in codes)
    ):
        return bad_request('codes must be a list of strings', ErrorCode.INVALID_FIELD)

    outcome = migration_run_service.retry_failed(run, engine_for_client(g.bigcommerce), codes)
    outcome['progress'] = migration_run_service.progress(run)
    return jsonify({'success': True, **outcome})
