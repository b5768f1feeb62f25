"""
CLI Commands for the coupon migration wizard.

Credentials come from options or the environment:

    export BIGCOMMERCE_STORE_HASH=abc123
    export BIGCOMMERCE_ACCESS_TOKEN=xxxx

    flask coupons test-connection
    flask coupons export-legacy --output legacy.csv
    flask coupons export-promotions --output promotions.json
    flask coupons migrate --file legacy.csv --batch-size 50 --retry
"""
import json

import click
from flask import current_app
from flask.cli import with_appcontext

from ..services.bigcommerce_client import client_from_credentials
from ..services.coupon_formats import (
    coupons_from_legacy,
    coupons_from_promotion_export,
    coupons_to_json,
    legacy_coupons_to_csv,
    parse_coupon_file,
)
from ..services.migration_engine import engine_for_client
from ..services.migration_progress import ResultAggregator, run_in_batches, retry_failed
from ..services.promotion_reader import PromotionReader
from ..utils.exceptions import BigCommerceError, ValidationError

store_hash_option = click.option(
    '--store-hash', envvar='BIGCOMMERCE_STORE_HASH', required=True,
    help='Store hash (or BIGCOMMERCE_STORE_HASH)'
)
access_token_option = click.option(
    '--access-token', envvar='BIGCOMMERCE_ACCESS_TOKEN', required=True,
    help='API access token (or BIGCOMMERCE_ACCESS_TOKEN)'
)


@click.group('coupons')
def coupons_cli():
    """Coupon migration commands."""
    pass


def _reader(store_hash, access_token):
    client = client_from_credentials(store_hash, access_token)
    return PromotionReader(client, page_size=current_app.config.get('BIGCOMMERCE_PAGE_SIZE', 250))


def _write(output, content):
    if output:
        with open(output, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
        click.echo(f"Wrote {output}")
    else:
        click.echo(content)


@coupons_cli.command('test-connection')
@store_hash_option
@access_token_option
@with_appcontext
def test_connection(store_hash, access_token):
    """Verify credentials and promotions API access."""
    try:
        result = client_from_credentials(store_hash, access_token).test_connection()
    except BigCommerceError as e:
        raise click.ClickException(e.message)
    click.echo(result['message'])


@coupons_cli.command('export-legacy')
@store_hash_option
@access_token_option
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='File to write (stdout if omitted)')
@click.option('--format', 'file_format', type=click.Choice(['csv', 'json']), default=None,
              help='Output format (default from the file extension, else csv)')
@with_appcontext
def export_legacy(store_hash, access_token, output, file_format):
    """
    Export V2 coupons.

    CSV keeps the legacy columns; JSON writes migration descriptors that
    `flask coupons migrate --file` accepts.
    """
    try:
        coupons = _reader(store_hash, access_token).list_legacy_coupons()
    except BigCommerceError as e:
        raise click.ClickException(e.message)

    if file_format is None:
        file_format = 'json' if output and output.lower().endswith('.json') else 'csv'

    click.echo(f"Found {len(coupons)} legacy coupons", err=True)
    if file_format == 'csv':
        _write(output, legacy_coupons_to_csv(coupons))
    else:
        _write(output, coupons_to_json(coupons_from_legacy(coupons)))


@coupons_cli.command('export-promotions')
@store_hash_option
@access_token_option
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='File to write (stdout if omitted)')
@with_appcontext
def export_promotions(store_hash, access_token, output):
    """Export coupon promotions with their codes as migration descriptors."""
    reader = _reader(store_hash, access_token)
    try:
        exports = reader.export_promotions_with_codes(reader.list_all_promotions())
    except BigCommerceError as e:
        raise click.ClickException(e.message)

    coupons = coupons_from_promotion_export(exports)
    click.echo(f"Found {len(exports)} coupon promotions, {len(coupons)} codes", err=True)
    _write(output, coupons_to_json(coupons))


@coupons_cli.command('migrate')
@store_hash_option
@access_token_option
@click.option('--file', 'path', type=click.Path(exists=True, dir_okay=False), required=True,
              help='CSV or JSON file of codes to migrate')
@click.option('--channel-id', default=None, help='Channel for the new promotions (default DEFAULT_CHANNEL_ID)')
@click.option('--batch-size', type=click.IntRange(min=1), default=None,
              help='Codes per batch (default MIGRATION_BATCH_SIZE)')
@click.option('--retry/--no-retry', default=False, help='Retry retryable failures once at the end')
@click.option('--report', type=click.Path(dir_okay=False), help='Write the full results as JSON')
@with_appcontext
def migrate(store_hash, access_token, path, channel_id, batch_size, retry, report):
    """
    Replace the codes in FILE with V3 standard promotions.

    Each code's old coupon/promotion is deleted and a new COUPON
    promotion is created with the same code.
    """
    with open(path, 'r', encoding='utf-8-sig') as f:
        content = f.read()

    try:
        coupons = parse_coupon_file(path, content)
        aggregator = ResultAggregator(coupons)
    except ValidationError as e:
        raise click.ClickException(e.message)

    channel_id = channel_id or current_app.config.get('DEFAULT_CHANNEL_ID', '1')
    batch_size = batch_size or current_app.config.get('MIGRATION_BATCH_SIZE', 50)
    engine = engine_for_client(client_from_credentials(store_hash, access_token))

    def on_progress(snapshot):
        label = snapshot['currentItemLabel']
        suffix = f" (at {label})" if label else ''
        click.echo(
            f"  {snapshot['processed']}/{snapshot['total']} processed, "
            f"{snapshot['created']} created, {snapshot['errors']} errors{suffix}"
        )

    click.echo(f"Migrating {aggregator.total} codes in batches of {batch_size}")
    run_in_batches(engine, aggregator, channel_id, batch_size=batch_size, on_progress=on_progress)

    if retry and aggregator.retry_candidates():
        click.echo(f"Retrying {len(aggregator.retry_candidates())} failed codes")
        retry_failed(engine, aggregator, channel_id)

    results = aggregator.results
    click.echo(
        f"\nTOTAL: {len(results.created)} created, {len(results.deleted)} deleted, "
        f"{len(results.errors)} errors"
    )
    for error in results.errors[:10]:
        flag = '' if error.get('retryable', True) else ' [not retryable]'
        click.echo(f"  - {error['code']}: {error['error']}{flag}")

    if report:
        _write(report, json.dumps(results.to_dict(), indent=2))


@coupons_cli.command('validate-file')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
def validate_file(path):
    """Parse a coupon file without contacting the store."""
    with open(path, 'r', encoding='utf-8-sig') as f:
        content = f.read()

    try:
        coupons = parse_coupon_file(path, content)
        ResultAggregator(coupons)
    except ValidationError as e:
        raise click.ClickException(e.message)

    click.echo(f"{len(coupons)} codes ready to migrate")


def init_app(app):
    """Register coupon CLI commands with the Flask app."""
    app.cli.add_command(coupons_cli)
