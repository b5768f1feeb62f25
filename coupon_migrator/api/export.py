"""
Export API.

Endpoints for reading what is in the store before migrating:
- V3 coupon promotions (metadata only, or with their codes)
- Index-batched promotion + code export for large stores
- Codes for a given list of promotions
- V2 legacy coupons, with normalized migration descriptors
"""
import logging
from flask import Blueprint, jsonify, g, current_app

from ..middleware.credentials import require_credentials
from ..services.coupon_formats import coupons_from_legacy
from ..services.promotion_reader import PromotionReader, summarize_promotion
from ..utils.cache import cache, cache_key
from ..utils.errors import bad_request, error_response, ErrorCode
from ..utils.exceptions import BigCommerceError

logger = logging.getLogger(__name__)

export_bp = Blueprint('export', __name__)


def _reader() -> PromotionReader:
    return PromotionReader(g.bigcommerce, page_size=current_app.config.get('BIGCOMMERCE_PAGE_SIZE', 250))


def _export_failed(error: BigCommerceError, default: str = 'Export failed'):
    return error_response(error.message or default, ErrorCode.EXPORT_FAILED, 500)


# ==================== Promotions (V3) ====================

@export_bp.route('/export-promotions', methods=['POST'])
@require_credentials()
def export_promotions():
    """List coupon promotions (metadata only, no codes)."""
    try:
        reader = _reader()
        promotions = reader.list_all_promotions()
        coupon_promotions = reader.list_coupon_promotions(promotions)
    except BigCommerceError as e:
        return _export_failed(e)

    return jsonify({
        'success': True,
        'totalPromotions': len(promotions),
        'totalCouponPromotions': len(coupon_promotions),
        'promotions': [summarize_promotion(p) for p in coupon_promotions],
    })


@export_bp.route('/export', methods=['POST'])
@require_credentials()
def export_all():
    """Export every coupon promotion with its codes in one request."""
    try:
        reader = _reader()
        promotions = reader.list_all_promotions()
        exports = reader.export_promotions_with_codes(promotions)
    except BigCommerceError as e:
        return _export_failed(e)

    return jsonify({
        'success': True,
        'data': exports,
        'totalPromotions': len(promotions),
        'totalCoupons': sum(len(entry['codes']) for entry in exports),
    })


@export_bp.route('/export-batch', methods=['POST'])
@require_credentials()
def export_batch():
    """
    Index-batched export.

    Every call returns codes for promotions [startIndex, startIndex + batchSize).
    startIndex == 0 also lists the coupon promotions and caches the list
    for the later slices.

    Request body:
        startIndex: int (default 0)
        batchSize: int (default EXPORT_BATCH_SIZE)
    """
    payload = g.payload
    try:
        start_index = int(payload.get('startIndex') or 0)
        batch_size = int(payload.get('batchSize') or current_app.config.get('EXPORT_BATCH_SIZE', 100))
    except (TypeError, ValueError):
        return bad_request('startIndex and batchSize must be integers', ErrorCode.INVALID_FIELD)

    if start_index < 0 or batch_size < 1:
        return bad_request('startIndex must be >= 0 and batchSize >= 1', ErrorCode.INVALID_FIELD)

    key = cache_key('coupon_promotions', store_hash=g.store_hash)
    reader = _reader()

    try:
        cached = cache.get(key) if start_index > 0 else None
        if cached is None:
            promotions = reader.list_all_promotions()
            cached = {
                'total': len(promotions),
                'coupon_promotions': reader.list_coupon_promotions(promotions),
            }
            cache.set(key, cached, timeout=current_app.config.get('EXPORT_CACHE_TIMEOUT', 600))

        coupon_promotions = cached['coupon_promotions']
        batch = coupon_promotions[start_index:start_index + batch_size]
        exports = reader.export_promotions_with_codes(batch)
    except BigCommerceError as e:
        return _export_failed(e)

    next_index = start_index + batch_size
    body = {
        'success': True,
        'data': exports,
        'hasMore': next_index < len(coupon_promotions),
        'nextIndex': next_index,
        'processed': min(next_index, len(coupon_promotions)),
        'total': len(coupon_promotions),
    }
    if start_index == 0:
        body.update({
            'totalPromotions': cached['total'],
            'totalCouponPromotions': len(coupon_promotions),
            'promotions': [summarize_promotion(p, include_rules=False) for p in coupon_promotions],
        })
    return jsonify(body)


@export_bp.route('/export-codes-batch', methods=['POST'])
@require_credentials('Store hash, access token, and promotion IDs array are required')
def export_codes_batch():
    """Fetch codes for a list of promotion ids; unreadable promotions are skipped."""
    promotion_ids = g.payload.get('promotionIds')
    if not isinstance(promotion_ids, list):
        return bad_request('Store hash, access token, and promotion IDs array are required', ErrorCode.MISSING_FIELD)

    try:
        exports = _reader().export_codes_batch(promotion_ids)
    except BigCommerceError as e:
        return _export_failed(e, 'Batch export failed')

    return jsonify({'success': True, 'data': exports})


# ==================== Legacy coupons (V2) ====================

@export_bp.route('/export-legacy-coupons', methods=['POST'])
@require_credentials()
def export_legacy_coupons():
    """
    Export all V2 coupons.

    Response includes the raw coupons and `codes`, the descriptors the
    migrate endpoints accept.
    """
    try:
        coupons = _reader().list_legacy_coupons()
    except BigCommerceError as e:
        return _export_failed(e)

    return jsonify({
        'success': True,
        'totalCoupons': len(coupons),
        'coupons': coupons,
        'codes': [c.to_payload() for c in coupons_from_legacy(coupons)],
    })
