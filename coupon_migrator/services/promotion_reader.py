"""
Promotion and legacy coupon reader.

Pages through the BigCommerce list endpoints and gathers coupon codes per
promotion for export.
"""
import logging
from typing import Any, Dict, List, Optional

from .bigcommerce_client import BigCommerceClient
from ..utils.exceptions import BigCommerceError

logger = logging.getLogger(__name__)

PAGE_SIZE = 250
COUPON_REDEMPTION = 'COUPON'


class PromotionReader:
    """Read promotions (V3) and legacy coupons (V2) from one store."""

    def __init__(self, client: BigCommerceClient, page_size: int = PAGE_SIZE):
        self.client = client
        self.page_size = page_size

    # ==================== PROMOTIONS (V3) ====================

    def list_all_promotions(self) -> List[Dict[str, Any]]:
        """
        Fetch every promotion, in API order.

        The first page is always requested. Paging stops when
        meta.pagination reports no further page, when pagination meta is
        missing, or when a page comes back empty.
        """
        promotions = []
        page = 1

        while True:
            data = self.client.list_promotions_page(page, self.page_size)
            items = data.get('data') or []
            promotions.extend(items)

            pagination = (data.get('meta') or {}).get('pagination')
            if not items or not pagination or page >= (pagination.get('total_pages') or 0):
                break
            page += 1

        logger.info(f"Fetched {len(promotions)} promotions across {page} page(s)")
        return promotions

    def list_coupon_promotions(self, promotions: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
        """Promotions redeemed with a coupon code."""
        if promotions is None:
            promotions = self.list_all_promotions()
        return [p for p in promotions if p.get('redemption_type') == COUPON_REDEMPTION]

    def fetch_codes_for_promotion(self, promotion_id: int) -> Optional[List[Dict[str, Any]]]:
        """
        Fetch a promotion's codes.

        Returns:
            The codes, or None when the request failed. Callers skip
            promotions whose codes can't be read.
        """
        try:
            return self.client.list_promotion_codes(promotion_id)
        except BigCommerceError as e:
            logger.warning(f"Skipping promotion {promotion_id}, codes unavailable: {e}")
            return None

    def export_promotions_with_codes(self, promotions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Build [{promotion, codes}] for coupon promotions whose codes are readable.
        """
        exports = []
        for promotion in promotions:
            if promotion.get('redemption_type') != COUPON_REDEMPTION:
                continue
            codes = self.fetch_codes_for_promotion(promotion['id'])
            if codes is None:
                continue
            exports.append({
                'promotion': summarize_promotion(promotion),
                'codes': codes,
            })
        return exports

    def export_codes_batch(self, promotion_ids: List[int]) -> List[Dict[str, Any]]:
        """Build [{promotionId, codes}] for the given promotion ids."""
        exports = []
        for promotion_id in promotion_ids:
            codes = self.fetch_codes_for_promotion(promotion_id)
            if codes is None:
                continue
            exports.append({'promotionId': promotion_id, 'codes': codes})
        return exports

    # ==================== LEGACY COUPONS (V2) ====================

    def list_legacy_coupons(self) -> List[Dict[str, Any]]:
        """
        Fetch every V2 coupon.

        The V2 API answers either with a bare array or with {data: [...]}.
        A page shorter than the page size is the last one; for the wrapped
        shape, meta.pagination.total_pages also bounds the loop.
        """
        coupons = []
        page = 1

        while True:
            data = self.client.list_legacy_coupons_page(page, self.page_size)

            if isinstance(data, list):
                coupons.extend(data)
                has_more = len(data) == self.page_size
            elif isinstance(data, dict) and isinstance(data.get('data'), list):
                items = data['data']
                coupons.extend(items)
                total_pages = ((data.get('meta') or {}).get('pagination') or {}).get('total_pages')
                has_more = len(items) == self.page_size and (total_pages is None or page < total_pages)
            else:
                # 204 / unexpected shape: nothing more to read
                has_more = False

            if not has_more:
                break
            page += 1

        logger.info(f"Fetched {len(coupons)} legacy coupons across {page} page(s)")
        return coupons


def summarize_promotion(promotion: Dict[str, Any], include_rules: bool = True) -> Dict[str, Any]:
    """The promotion fields the export and import formats rely on."""
    summary = {
        'id': promotion.get('id'),
        'name': promotion.get('name'),
        'redemption_type': promotion.get('redemption_type'),
        'status': promotion.get('status'),
    }
    if include_rules:
        summary['rules'] = promotion.get('rules') or []
    return summary
