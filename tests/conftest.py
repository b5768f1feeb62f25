"""
Shared fixtures.

BigCommerce is faked with an httpx.MockTransport handler backed by
in-memory promotions, codes and legacy coupons. The app is configured to
route every client through it.
"""
import json
import threading

import httpx
import pytest

from coupon_migrator import create_app
from coupon_migrator.extensions import db
from coupon_migrator.services.bigcommerce_client import BigCommerceClient
from coupon_migrator.utils.cache import cache

STORE_HASH = 'abc123'
ACCESS_TOKEN = 'test-token'
CREDENTIALS = {'storeHash': STORE_HASH, 'accessToken': ACCESS_TOKEN}


class FakeBigCommerce:
    """In-memory BigCommerce store speaking the V2/V3 REST shapes."""

    def __init__(self, page_size=250):
        self.page_size = page_size
        self.requests = []
        self.promotions = {}
        self.codes = {}
        self.legacy_coupons = {}
        self.failures = {}
        self._next_id = 1000
        self._lock = threading.Lock()

    # ---- setup helpers ----

    def add_promotion(self, promotion_id, name='Promo', redemption_type='COUPON', rules=None, codes=()):
        self.promotions[promotion_id] = {
            'id': promotion_id,
            'name': name,
            'redemption_type': redemption_type,
            'status': 'ENABLED',
            'rules': rules or [],
        }
        self.codes[promotion_id] = [
            {'id': promotion_id * 10 + i, 'code': code} for i, code in enumerate(codes)
        ]

    def add_legacy_coupon(self, coupon_id, code, coupon_type='percentage_discount', amount='10.0000', **extra):
        self.legacy_coupons[coupon_id] = dict(
            id=coupon_id, code=code, name=extra.pop('name', code), type=coupon_type,
            amount=amount, enabled=True, num_uses=0, max_uses=0, **extra
        )

    def fail(self, method, path, status=500, body='Server error'):
        """Answer METHOD path (below /stores/{hash}/, e.g. 'v2/coupons/5') with an error."""
        self.failures[(method, path)] = (status, body)

    def calls(self, method=None, prefix=''):
        return [
            (m, p) for m, p in self.requests
            if (method is None or m == method) and p.startswith(prefix)
        ]

    def created_codes(self):
        return sorted(code['code'] for codes in self.codes.values() for code in codes)

    # ---- transport ----

    def handler(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip('/').split('/')[2:]
        path = '/'.join(parts)
        method = request.method

        with self._lock:
            self.requests.append((method, path))

            if (method, path) in self.failures:
                status, body = self.failures[(method, path)]
                return httpx.Response(status, text=body)

            body = json.loads(request.content) if request.content else None
            return self._route(method, parts, dict(request.url.params), body)

    def _new_id(self):
        self._next_id += 1
        return self._next_id

    def _route(self, method, parts, params, body):
        version, resource, rest = parts[0], parts[1], parts[2:]

        if version == 'v2' and resource == 'store':
            return httpx.Response(200, json={'id': STORE_HASH, 'name': 'Test Store'})

        if version == 'v2' and resource == 'coupons':
            if method == 'GET':
                page = int(params.get('page', 1))
                limit = int(params.get('limit', self.page_size))
                coupons = list(self.legacy_coupons.values())[(page - 1) * limit:page * limit]
                if not coupons:
                    return httpx.Response(204)
                return httpx.Response(200, json=coupons)
            if method == 'DELETE':
                if self.legacy_coupons.pop(int(rest[0]), None) is None:
                    return httpx.Response(404, json=[{'status': 404, 'message': 'Not found'}])
                return httpx.Response(204)

        if version == 'v3' and resource == 'promotions':
            return self._promotions(method, rest, params, body)

        return httpx.Response(404, json={'title': 'Route not found'})

    def _promotions(self, method, rest, params, body):
        if not rest:
            if method == 'GET':
                page = int(params.get('page', 1))
                limit = int(params.get('limit', self.page_size))
                promotions = list(self.promotions.values())
                total_pages = max(1, -(-len(promotions) // limit))
                return httpx.Response(200, json={
                    'data': promotions[(page - 1) * limit:page * limit],
                    'meta': {'pagination': {'total': len(promotions), 'current_page': page, 'total_pages': total_pages}},
                })
            promotion = dict(body, id=self._new_id())
            self.promotions[promotion['id']] = promotion
            self.codes[promotion['id']] = []
            return httpx.Response(201, json={'data': promotion})

        promotion_id = int(rest[0])
        if promotion_id not in self.promotions:
            return httpx.Response(404, json={'title': 'Promotion not found'})

        if len(rest) == 1 and method == 'DELETE':
            del self.promotions[promotion_id]
            self.codes.pop(promotion_id, None)
            return httpx.Response(204)

        if rest[1:] == ['codes']:
            if method == 'GET':
                return httpx.Response(200, json={'data': self.codes[promotion_id]})
            if body['code'] in self.created_codes():
                return httpx.Response(422, json={'title': f"Coupon code {body['code']} already exists"})
            code = {'id': self._new_id(), 'code': body['code'], 'max_uses': body.get('max_uses')}
            self.codes[promotion_id].append(code)
            return httpx.Response(201, json={'data': code})

        if len(rest) == 3 and method == 'DELETE':
            code_id = int(rest[2])
            self.codes[promotion_id] = [c for c in self.codes[promotion_id] if c['id'] != code_id]
            return httpx.Response(204)

        return httpx.Response(404, json={'title': 'Route not found'})


@pytest.fixture
def fake_store():
    """Empty fake BigCommerce store."""
    return FakeBigCommerce()


@pytest.fixture
def app(fake_store):
    """Create test application wired to the fake store."""
    app = create_app('testing', BIGCOMMERCE_TRANSPORT=httpx.MockTransport(fake_store.handler))
    with app.app_context():
        cache.clear()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def bc_client(fake_store):
    """BigCommerce client talking to the fake store, unpaced."""
    return BigCommerceClient(
        STORE_HASH,
        ACCESS_TOKEN,
        transport=httpx.MockTransport(fake_store.handler)
    )


@pytest.fixture
def credentials():
    """Request body fields every store endpoint requires."""
    return dict(CREDENTIALS)
