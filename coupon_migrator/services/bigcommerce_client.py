"""
BigCommerce REST API client.
Handles promotions (V3), promotion codes (V3) and legacy coupons (V2).
"""
import logging
import httpx
from typing import Optional, Dict, Any, List, Tuple

from .rate_limiter import IntervalRateLimiter, V2, V3
from ..utils.exceptions import (
    BigCommerceError,
    BigCommerceAPIError,
    BigCommerceNetworkError,
)

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = 'https://api.bigcommerce.com'


class BigCommerceClient:
    """
    Client for the BigCommerce V2/V3 REST APIs.

    Every request goes through the shared interval rate limiter for its
    endpoint class. There is no retry here; callers decide what to do with
    a failure.
    """

    def __init__(
        self,
        store_hash: str,
        access_token: str,
        rate_limiter: Optional[IntervalRateLimiter] = None,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize BigCommerce client.

        Args:
            store_hash: Store hash from the API account (stores/{hash}/...)
            access_token: API account access token (X-Auth-Token)
            rate_limiter: Shared limiter; requests are unpaced when omitted
            api_base: API host, overridable for sandboxes
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.store_hash = store_hash
        self.access_token = access_token
        self.rate_limiter = rate_limiter
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout
        self.transport = transport

    def _url(self, version: str, path: str) -> str:
        return f'{self.api_base}/stores/{self.store_hash}/{version}{path}'

    def _headers(self) -> Dict[str, str]:
        return {
            'X-Auth-Token': self.access_token,
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    def _send(
        self,
        method: str,
        path: str,
        body: Optional[Dict] = None,
        version: str = V3,
        params: Optional[Dict] = None
    ) -> httpx.Response:
        """Send one paced request and return the raw response."""
        if self.rate_limiter:
            self.rate_limiter.acquire(version)

        try:
            with httpx.Client(transport=self.transport, timeout=self.timeout) as client:
                return client.request(
                    method,
                    self._url(version, path),
                    headers=self._headers(),
                    params=params,
                    json=body
                )
        except httpx.TransportError as e:
            logger.warning(f"BigCommerce {method} {version}{path} transport failure: {e}")
            raise BigCommerceNetworkError(e) from e
        except httpx.HTTPError as e:
            logger.warning(f"BigCommerce {method} {version}{path} failed: {e}")
            raise BigCommerceError(f"HTTP error: {e}") from e

    def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict] = None,
        version: str = V3,
        params: Optional[Dict] = None
    ) -> Optional[Any]:
        """
        Execute an API request.

        Args:
            method: HTTP method
            path: Path below /stores/{hash}/{version}, e.g. '/promotions'
            body: Optional JSON body
            version: 'v2' or 'v3' (also the rate limiter class)
            params: Optional query parameters

        Returns:
            Parsed JSON, or None for 204 / empty responses

        Raises:
            BigCommerceAPIError: Non-2xx response, or a 2xx body that isn't JSON
            BigCommerceNetworkError: Connection-level failure
        """
        response = self._send(method, path, body=body, version=version, params=params)

        if not response.is_success:
            raise BigCommerceAPIError(response.status_code, response.text)

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise BigCommerceAPIError(response.status_code, response.text) from e

    # ==================== STORE ====================

    def get_store(self) -> Dict[str, Any]:
        """Fetch V2 store info (used to verify credentials)."""
        return self.request('GET', '/store', version=V2) or {}

    def test_connection(self) -> Dict[str, Any]:
        """
        Verify credentials and promotions API access.

        Raises:
            BigCommerceError: With a user-facing message on failure
        """
        try:
            self.get_store()
        except BigCommerceAPIError as e:
            raise BigCommerceError('Invalid credentials or store not found') from e

        try:
            self.request('GET', '/promotions', params={'limit': 1})
        except BigCommerceAPIError as e:
            raise BigCommerceError(f'Promotions API access denied: {e.body}') from e

        return {'success': True, 'message': 'Connection successful'}

    # ==================== PROMOTIONS (V3) ====================

    def list_promotions_page(self, page: int, limit: int = 250) -> Dict[str, Any]:
        """Fetch one page of promotions with its pagination meta."""
        return self.request('GET', '/promotions', params={'page': page, 'limit': limit}) or {}

    def list_promotion_codes(self, promotion_id: int) -> List[Dict[str, Any]]:
        """Fetch the coupon codes of a promotion."""
        response = self.request('GET', f'/promotions/{promotion_id}/codes')
        return (response or {}).get('data') or []

    def create_promotion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a promotion and return its data object."""
        response = self.request('POST', '/promotions', body=payload)
        return response['data']

    def create_promotion_code(self, promotion_id: int, code: str, max_uses: Optional[int] = None) -> Dict[str, Any]:
        """Create a coupon code under a promotion and return its data object."""
        response = self.request(
            'POST',
            f'/promotions/{promotion_id}/codes',
            body={'code': code, 'max_uses': max_uses}
        )
        return response['data']

    def delete_promotion_code(self, promotion_id: int, code_id: int) -> None:
        self.request('DELETE', f'/promotions/{promotion_id}/codes/{code_id}')

    def delete_promotion(self, promotion_id: int) -> Tuple[int, int]:
        """
        Delete a promotion after removing its codes.

        Individual code deletions that fail are skipped; the promotion
        delete itself must succeed. A 404 counts as already deleted.

        Returns:
            (codes_deleted, codes_failed)

        Raises:
            BigCommerceError: Listing codes or deleting the promotion failed
        """
        deleted = failed = 0
        try:
            try:
                codes = self.list_promotion_codes(promotion_id)
            except BigCommerceAPIError as e:
                if e.status_code != 404:
                    raise
                logger.info(f"Promotion {promotion_id} already deleted")
                return deleted, failed

            for code in codes:
                try:
                    self.delete_promotion_code(promotion_id, code['id'])
                    deleted += 1
                except (BigCommerceError, KeyError, TypeError) as e:
                    failed += 1
                    logger.debug(f"Could not delete code {code!r} of promotion {promotion_id}: {e}")

            response = self._send('DELETE', f'/promotions/{promotion_id}')
            if not response.is_success and response.status_code != 404:
                raise BigCommerceAPIError(response.status_code, response.text)
        except BigCommerceError as e:
            raise BigCommerceError(f'Failed to delete promotion {promotion_id}: {e.message}') from e

        return deleted, failed

    # ==================== LEGACY COUPONS (V2) ====================

    def list_legacy_coupons_page(self, page: int, limit: int = 250) -> Any:
        """Fetch one page of V2 coupons (raw array or {data: [...]})."""
        return self.request('GET', '/coupons', version=V2, params={'page': page, 'limit': limit})

    def delete_legacy_coupon(self, coupon_id: int) -> bool:
        """
        Delete a V2 coupon. A 404 counts as already deleted.

        Raises:
            BigCommerceError: Any other failure
        """
        try:
            response = self._send('DELETE', f'/coupons/{coupon_id}', version=V2)
            if not response.is_success and response.status_code != 404:
                raise BigCommerceAPIError(response.status_code, response.text)
        except BigCommerceError as e:
            raise BigCommerceError(f'Failed to delete legacy coupon {coupon_id}: {e.message}') from e

        return True


def classify_error(error: Exception, code: str = '') -> Tuple[str, bool]:
    """
    Rewrite a migration failure into an actionable message.

    Args:
        error: The exception raised while migrating an item
        code: Coupon code the failure belongs to

    Returns:
        (message, retryable). Only duplicate / conflicting codes are not
        retryable; auth, rate-limit and network failures can be retried.
    """
    message = getattr(error, 'message', None) or str(error) or 'Unknown error'
    status = getattr(error, 'status_code', None)

    if status == 422 or '422' in message:
        message = f'Code already exists or invalid format: {code}'
    elif status == 429 or '429' in message:
        message = 'Rate limit exceeded. Please wait and retry.'
    elif status in (401, 403) or '401' in message or '403' in message:
        message = 'Authentication failed. Please check your API credentials.'
    elif isinstance(error, BigCommerceNetworkError) or 'Network error' in message or 'fetch failed' in message:
        message = 'Network connection failed. Check your internet and retry.'

    return message, is_retryable(message)


def is_retryable(message: str) -> bool:
    """Errors about an existing code won't go away by retrying."""
    return 'already exists' not in (message or '')


def client_from_credentials(store_hash: str, access_token: str) -> BigCommerceClient:
    """Build a client wired to the current app's limiter and config."""
    from flask import current_app

    return BigCommerceClient(
        store_hash,
        access_token,
        rate_limiter=current_app.extensions.get('bigcommerce_rate_limiter'),
        api_base=current_app.config.get('BIGCOMMERCE_API_BASE', DEFAULT_API_BASE),
        timeout=current_app.config.get('BIGCOMMERCE_TIMEOUT', 30.0),
        transport=current_app.config.get('BIGCOMMERCE_TRANSPORT')
    )
