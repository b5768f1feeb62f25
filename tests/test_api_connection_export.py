"""
API tests for connection check and export endpoints.
"""
import pytest



class TestCredentials:
    """Test the credential requirement shared by every store endpoint."""

    @pytest.mark.parametrize('path', [
        '/api/test-connection',
        '/api/export-promotions',
        '/api/export',
        '/api/export-batch',
        '/api/export-legacy-coupons',
    ])
    def test_missing_credentials(self, client, path):
        response = client.post(path, json={'storeHash': 'abc123'})

        assert response.status_code == 400
        assert response.get_json() == {
            'error': 'Store hash and access token are required',
            'code': 'MISSING_FIELD',
        }

    def test_codes_batch_message(self, client):
        response = client.post('/api/export-codes-batch', json={})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Store hash, access token, and promotion IDs array are required'


class TestConnectionEndpoint:
    """Test /api/test-connection."""

    def test_success(self, client, credentials):
        response = client.post('/api/test-connection', json=credentials)

        assert response.status_code == 200
        assert response.get_json() == {'success': True, 'message': 'Connection successful'}

    def test_invalid_credentials(self, client, credentials, fake_store):
        fake_store.fail('GET', 'v2/store', 401, 'Unauthorized')

        response = client.post('/api/test-connection', json=credentials)

        assert response.status_code == 500
        assert response.get_json()['error'] == 'Invalid credentials or store not found'


class TestExportEndpoints:
    """Test promotion and legacy coupon exports."""

    @pytest.fixture
    def store(self, fake_store):
        fake_store.add_promotion(1, name='Summer', codes=['SUN1', 'SUN2'])
        fake_store.add_promotion(2, name='Auto', redemption_type='AUTOMATIC')
        fake_store.add_promotion(3, name='Winter', codes=['SNOW'])
        return fake_store

    def test_export_promotions_metadata(self, client, credentials, store):
        data = client.post('/api/export-promotions', json=credentials).get_json()

        assert data['success'] is True
        assert data['totalPromotions'] == 3
        assert data['totalCouponPromotions'] == 2
        assert [p['name'] for p in data['promotions']] == ['Summer', 'Winter']
        assert store.calls(prefix='v3/promotions/') == []

    def test_full_export(self, client, credentials, store):
        data = client.post('/api/export', json=credentials).get_json()

        assert data['totalCoupons'] == 3
        assert [entry['promotion']['id'] for entry in data['data']] == [1, 3]

    def test_export_failure(self, client, credentials, store):
        store.fail('GET', 'v3/promotions', 500, 'boom')

        response = client.post('/api/export', json=credentials)

        assert response.status_code == 500
        assert response.get_json()['code'] == 'EXPORT_FAILED'

    def test_export_batch_walks_cached_list(self, client, credentials, store):
        first = client.post('/api/export-batch', json=dict(credentials, startIndex=0, batchSize=1)).get_json()
        assert first['totalCouponPromotions'] == 2
        assert 'rules' not in first['promotions'][0]
        assert [entry['promotion']['id'] for entry in first['data']] == [1]
        assert first['hasMore'] is True

        second = client.post('/api/export-batch', json=dict(credentials, startIndex=1, batchSize=1)).get_json()

        assert [entry['promotion']['id'] for entry in second['data']] == [3]
        assert 'promotions' not in second
        assert second['hasMore'] is False
        assert second['nextIndex'] == 2
        assert second['processed'] == 2
        # The list page was read once; the second slice used the cache
        assert store.calls('GET') == [
            ('GET', 'v3/promotions'),
            ('GET', 'v3/promotions/1/codes'),
            ('GET', 'v3/promotions/3/codes'),
        ]

    def test_export_batch_walk_covers_every_promotion(self, client, credentials, store):
        exported = []
        index = 0
        while True:
            data = client.post('/api/export-batch', json=dict(credentials, startIndex=index, batchSize=1)).get_json()
            exported.extend(entry['promotion']['id'] for entry in data['data'])
            if not data['hasMore']:
                break
            index = data['nextIndex']

        assert exported == [1, 3]
        assert sum(len(store.codes[pid]) for pid in exported) == 3

    def test_export_batch_rejects_bad_index(self, client, credentials, store):
        response = client.post('/api/export-batch', json=dict(credentials, startIndex='x'))

        assert response.status_code == 400

    def test_export_codes_batch(self, client, credentials, store):
        data = client.post('/api/export-codes-batch', json=dict(credentials, promotionIds=[3, 99])).get_json()

        assert data == {
            'success': True,
            'data': [{'promotionId': 3, 'codes': store.codes[3]}],
        }

    def test_export_legacy_coupons(self, client, credentials, fake_store):
        fake_store.add_legacy_coupon(1, 'SAVE10', coupon_type='percentage_discount', amount='10.0000')
        fake_store.add_legacy_coupon(2, 'FLAT', coupon_type='fixed_discount', amount='15.0000')

        data = client.post('/api/export-legacy-coupons', json=credentials).get_json()

        assert data['totalCoupons'] == 2
        assert data['codes'][1] == {
            'code': 'FLAT',
            'discount': 15.0,
            'discountType': 'fixed',
            'oldPromotionId': None,
            'oldCouponId': 2,
            'name': 'FLAT',
            'max_uses': None,
        }


def test_health(client):
    assert client.get('/health').get_json() == {'status': 'healthy', 'service': 'coupon-migrator'}


def test_unknown_route_is_json(client):
    response = client.get('/api/nope')

    assert response.status_code == 404
    assert response.get_json()['error'] == 'Not found'
