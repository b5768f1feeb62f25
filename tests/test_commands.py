"""
Tests for the `flask coupons` CLI commands.
"""
import json

import pytest

AUTH = ['--store-hash', 'abc123', '--access-token', 'test-token']


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestConnectionCommand:

    def test_success(self, runner):
        result = runner.invoke(args=['coupons', 'test-connection', *AUTH])

        assert result.exit_code == 0
        assert 'Connection successful' in result.output

    def test_failure_exits_non_zero(self, runner, fake_store):
        fake_store.fail('GET', 'v2/store', 401, 'Unauthorized')

        result = runner.invoke(args=['coupons', 'test-connection', *AUTH])

        assert result.exit_code != 0
        assert 'Invalid credentials or store not found' in result.output

    def test_credentials_from_environment(self, runner, monkeypatch):
        monkeypatch.setenv('BIGCOMMERCE_STORE_HASH', 'abc123')
        monkeypatch.setenv('BIGCOMMERCE_ACCESS_TOKEN', 'test-token')

        result = runner.invoke(args=['coupons', 'test-connection'])

        assert result.exit_code == 0


class TestExportCommands:

    def test_export_legacy_json(self, runner, fake_store, tmp_path):
        fake_store.add_legacy_coupon(1, 'SAVE10')
        output = tmp_path / 'legacy.json'

        result = runner.invoke(args=['coupons', 'export-legacy', *AUTH, '--output', str(output)])

        assert result.exit_code == 0
        assert json.loads(output.read_text())[0]['oldCouponId'] == 1

    def test_export_legacy_csv_to_stdout(self, runner, fake_store):
        fake_store.add_legacy_coupon(1, 'SAVE10')

        result = runner.invoke(args=['coupons', 'export-legacy', *AUTH])

        assert result.exit_code == 0
        assert 'SAVE10,1,SAVE10' in result.output

    def test_export_promotions(self, runner, fake_store, tmp_path):
        fake_store.add_promotion(4, rules=[{'action': {'cart_value': {'discount': {'fixed_amount': 5}}}}], codes=['FIVE'])
        output = tmp_path / 'codes.json'

        result = runner.invoke(args=['coupons', 'export-promotions', *AUTH, '-o', str(output)])

        assert result.exit_code == 0
        [coupon] = json.loads(output.read_text())
        assert (coupon['code'], coupon['oldPromotionId'], coupon['discountType']) == ('FIVE', 4, 'fixed')


class TestMigrateCommand:

    def test_migrates_file(self, runner, fake_store, tmp_path):
        fake_store.add_legacy_coupon(1, 'SAVE10')
        path = tmp_path / 'legacy.csv'
        path.write_text('Code,Coupon ID,Discount,Type\nSAVE10,1,10,percentage_discount\nNEW,,5,fixed\n')
        report = tmp_path / 'report.json'

        result = runner.invoke(args=[
            'coupons', 'migrate', *AUTH, '--file', str(path), '--batch-size', '1', '--report', str(report)
        ])

        assert result.exit_code == 0, result.output
        assert 'TOTAL: 2 created, 1 deleted, 0 errors' in result.output
        assert fake_store.created_codes() == ['NEW', 'SAVE10']
        assert len(json.loads(report.read_text())['created']) == 2

    def test_retry_flag(self, runner, fake_store, tmp_path):
        path = tmp_path / 'codes.json'
        path.write_text(json.dumps(['A']))
        fake_store.fail('POST', 'v3/promotions', 429, 'slow down')

        result = runner.invoke(args=['coupons', 'migrate', *AUTH, '--file', str(path), '--retry'])

        assert 'Retrying 1 failed codes' in result.output
        assert 'Rate limit exceeded' in result.output

    def test_duplicate_codes_abort(self, runner, fake_store, tmp_path):
        path = tmp_path / 'codes.json'
        path.write_text(json.dumps(['A', 'A']))

        result = runner.invoke(args=['coupons', 'migrate', *AUTH, '--file', str(path)])

        assert result.exit_code != 0
        assert 'Duplicates: A' in result.output
        assert fake_store.requests == []


def test_validate_file(runner, tmp_path):
    path = tmp_path / 'codes.csv'
    path.write_text('Code\nA\nB\n')

    result = runner.invoke(args=['coupons', 'validate-file', str(path)])

    assert result.exit_code == 0
    assert '2 codes ready to migrate' in result.output
