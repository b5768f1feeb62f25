"""
Tests for the BigCommerce client and error classification.
"""
import httpx
import pytest

from coupon_migrator.services.bigcommerce_client import BigCommerceClient, classify_error, is_retryable
from coupon_migrator.services.rate_limiter import IntervalRateLimiter, V2, V3
from coupon_migrator.utils.exceptions import (
    BigCommerceError,
    BigCommerceAPIError,
    BigCommerceNetworkError,
)


class RecordingLimiter(IntervalRateLimiter):
    def __init__(self):
        super().__init__({V2: 0, V3: 0})
        self.classes = []

    def acquire(self, endpoint_class):
        self.classes.append(endpoint_class)
        return super().acquire(endpoint_class)


class TestRequest:
    """Test URL building, headers and response handling."""

    def test_sends_auth_headers_to_versioned_url(self):
        seen = {}

        def handler(request):
            seen['url'] = str(request.url)
            seen['token'] = request.headers['X-Auth-Token']
            return httpx.Response(200, json={'data': []})

        client = BigCommerceClient('abc123', 'secret', transport=httpx.MockTransport(handler))
        client.request('GET', '/promotions', params={'limit': 1})

        assert seen['url'] == 'https://api.bigcommerce.com/stores/abc123/v3/promotions?limit=1'
        assert seen['token'] == 'secret'

    def test_no_content_returns_none(self):
        client = BigCommerceClient(
            'abc123', 'secret',
            transport=httpx.MockTransport(lambda request: httpx.Response(204))
        )

        assert client.request('DELETE', '/promotions/1') is None

    def test_error_status_raises_with_status_and_body(self):
        client = BigCommerceClient(
            'abc123', 'secret',
            transport=httpx.MockTransport(lambda request: httpx.Response(422, text='Duplicate code'))
        )

        with pytest.raises(BigCommerceAPIError) as exc_info:
            client.request('POST', '/promotions', body={})

        assert exc_info.value.status_code == 422
        assert exc_info.value.message == 'API Error (422): Duplicate code'

    def test_non_json_success_body_raises_api_error(self):
        client = BigCommerceClient(
            'abc123', 'secret',
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text='<html>gateway</html>'))
        )

        with pytest.raises(BigCommerceAPIError) as exc_info:
            client.list_promotion_codes(5)

        assert exc_info.value.status_code == 200

    def test_other_httpx_errors_are_wrapped(self):
        def handler(request):
            raise httpx.TooManyRedirects('redirect loop', request=request)

        client = BigCommerceClient('abc123', 'secret', transport=httpx.MockTransport(handler))

        with pytest.raises(BigCommerceError) as exc_info:
            client.get_store()

        assert exc_info.value.message.startswith('HTTP error:')

    def test_transport_failure_raises_network_error(self):
        def handler(request):
            raise httpx.ConnectError('connection refused', request=request)

        client = BigCommerceClient('abc123', 'secret', transport=httpx.MockTransport(handler))

        with pytest.raises(BigCommerceNetworkError):
            client.get_store()

    def test_requests_are_paced_by_endpoint_class(self, fake_store):
        limiter = RecordingLimiter()
        client = BigCommerceClient(
            'abc123', 'secret',
            rate_limiter=limiter,
            transport=httpx.MockTransport(fake_store.handler)
        )

        client.get_store()
        client.list_promotions_page(1)

        assert limiter.classes == [V2, V3]


class TestConnection:
    """Test the two-step connection check."""

    def test_success(self, bc_client, fake_store):
        result = bc_client.test_connection()

        assert result == {'success': True, 'message': 'Connection successful'}
        assert fake_store.calls() == [('GET', 'v2/store'), ('GET', 'v3/promotions')]

    def test_store_failure_reports_invalid_credentials(self, bc_client, fake_store):
        fake_store.fail('GET', 'v2/store', 401, 'Unauthorized')

        with pytest.raises(BigCommerceError) as exc_info:
            bc_client.test_connection()

        assert exc_info.value.message == 'Invalid credentials or store not found'
        assert fake_store.calls(prefix='v3') == []

    def test_promotions_failure_reports_access_denied(self, bc_client, fake_store):
        fake_store.fail('GET', 'v3/promotions', 403, 'Missing scope')

        with pytest.raises(BigCommerceError) as exc_info:
            bc_client.test_connection()

        assert exc_info.value.message == 'Promotions API access denied: Missing scope'


class TestDeletes:
    """Test legacy coupon and promotion deletion."""

    def test_legacy_delete_tolerates_404(self, bc_client, fake_store):
        assert bc_client.delete_legacy_coupon(999) is True
        assert fake_store.calls('DELETE') == [('DELETE', 'v2/coupons/999')]

    def test_legacy_delete_failure_is_wrapped(self, bc_client, fake_store):
        fake_store.add_legacy_coupon(5, 'SAVE5')
        fake_store.fail('DELETE', 'v2/coupons/5', 500, 'boom')

        with pytest.raises(BigCommerceError) as exc_info:
            bc_client.delete_legacy_coupon(5)

        assert exc_info.value.message.startswith('Failed to delete legacy coupon 5:')

    def test_promotion_delete_removes_codes_first(self, bc_client, fake_store):
        fake_store.add_promotion(7, codes=['A', 'B'])

        deleted, failed = bc_client.delete_promotion(7)

        assert (deleted, failed) == (2, 0)
        assert fake_store.calls('DELETE') == [
            ('DELETE', 'v3/promotions/7/codes/70'),
            ('DELETE', 'v3/promotions/7/codes/71'),
            ('DELETE', 'v3/promotions/7'),
        ]
        assert 7 not in fake_store.promotions

    def test_promotion_delete_skips_failed_codes(self, bc_client, fake_store):
        fake_store.add_promotion(7, codes=['A', 'B'])
        fake_store.fail('DELETE', 'v3/promotions/7/codes/70', 500, 'boom')

        deleted, failed = bc_client.delete_promotion(7)

        assert (deleted, failed) == (1, 1)
        assert 7 not in fake_store.promotions

    def test_promotion_delete_failure_is_wrapped(self, bc_client, fake_store):
        fake_store.add_promotion(7)
        fake_store.fail('DELETE', 'v3/promotions/7', 500, 'boom')

        with pytest.raises(BigCommerceError) as exc_info:
            bc_client.delete_promotion(7)

        assert exc_info.value.message.startswith('Failed to delete promotion 7:')

    def test_missing_promotion_counts_as_deleted(self, bc_client, fake_store):
        assert bc_client.delete_promotion(404404) == (0, 0)
        assert fake_store.calls('DELETE') == []

    def test_promotion_delete_tolerates_404(self, bc_client, fake_store):
        fake_store.add_promotion(7, codes=['A'])
        fake_store.fail('DELETE', 'v3/promotions/7', 404, 'Not found')

        assert bc_client.delete_promotion(7) == (1, 0)


class TestClassifyError:
    """Test rewriting of migration failures."""

    def test_422_is_not_retryable(self):
        message, retryable = classify_error(BigCommerceAPIError(422, 'bad'), 'SAVE10')

        assert message == 'Code already exists or invalid format: SAVE10'
        assert retryable is False

    def test_429_is_retryable(self):
        message, retryable = classify_error(BigCommerceAPIError(429, 'slow down'), 'X')

        assert message == 'Rate limit exceeded. Please wait and retry.'
        assert retryable is True

    @pytest.mark.parametrize('status', [401, 403])
    def test_auth_failures(self, status):
        message, retryable = classify_error(BigCommerceAPIError(status, 'no'), 'X')

        assert message == 'Authentication failed. Please check your API credentials.'
        assert retryable is True

    def test_network_failure(self):
        message, _ = classify_error(BigCommerceNetworkError(), 'X')

        assert message == 'Network connection failed. Check your internet and retry.'

    def test_message_substring_match(self):
        message, _ = classify_error(Exception('fetch failed'), 'X')

        assert message == 'Network connection failed. Check your internet and retry.'

    def test_other_errors_keep_message(self):
        message, retryable = classify_error(BigCommerceAPIError(500, 'oops'), 'X')

        assert message == 'API Error (500): oops'
        assert retryable is True

    def test_is_retryable(self):
        assert is_retryable('Coupon code already exists') is False
        assert is_retryable('API Error (500): oops') is True
