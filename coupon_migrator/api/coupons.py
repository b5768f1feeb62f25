"""
Coupon file import/export API.

Parses user-supplied CSV/JSON files into migration descriptors and renders
descriptors or V2 coupons back to files. Pure format conversion: nothing
here talks to BigCommerce, so no credentials are needed.
"""
from datetime import datetime
from flask import Blueprint, request, jsonify, Response

from ..middleware.credentials import get_request_payload
from ..services.coupon_formats import (
    Coupon,
    parse_coupon_file,
    coupons_to_csv,
    coupons_to_json,
    legacy_coupons_to_csv,
)
from ..utils.errors import bad_request, ErrorCode
from ..utils.exceptions import CouponFileError, InvalidCouponError

coupons_bp = Blueprint('coupons', __name__)


@coupons_bp.route('/template', methods=['GET'])
def get_csv_template():
    """
    Get the CSV columns the importer understands.
    """
    return jsonify({
        'columns': [
            {'name': 'Code', 'required': True, 'description': 'Coupon code'},
            {'name': 'Coupon ID', 'required': False, 'description': 'V2 coupon id to delete before recreating'},
            {'name': 'Coupon Name', 'required': False, 'description': 'Name of the new promotion'},
            {'name': 'Discount', 'required': False, 'description': 'Amount, default 10'},
            {'name': 'Type', 'required': False, 'description': 'percentage_discount, fixed_discount or per_item_discount'},
            {'name': 'Max Uses', 'required': False, 'description': 'Number or Unlimited'},
        ],
        'example_csv': 'Code,Coupon ID,Coupon Name,Discount,Type\nSAVE10,1,"Sale, Big",10,percentage_discount',
    })


@coupons_bp.route('/import', methods=['POST'])
def import_coupons():
    """
    Parse a coupon file into descriptors.

    Either a multipart upload (`file`), or a JSON body with `content` and
    an optional `filename` (a .csv name selects CSV, anything else JSON).
    """
    if 'file' in request.files:
        upload = request.files['file']
        filename = upload.filename or ''
        try:
            content = upload.read().decode('utf-8-sig')
        except UnicodeDecodeError:
            return bad_request('File must be UTF-8 text', ErrorCode.INVALID_FILE)
    else:
        payload = get_request_payload()
        content = payload.get('content')
        filename = payload.get('filename') or 'import.json'
        if not isinstance(content, str) or not content.strip():
            return bad_request('No file provided', ErrorCode.MISSING_FIELD)

    try:
        coupons = parse_coupon_file(filename, content)
    except CouponFileError as e:
        return bad_request(e.message, ErrorCode.INVALID_FILE)

    return jsonify({
        'success': True,
        'total': len(coupons),
        'codes': [c.to_payload() for c in coupons],
    })


@coupons_bp.route('/export', methods=['POST'])
def export_coupons():
    """
    Render a download.

    Request body:
        format: 'csv' (default) or 'json'
        codes: descriptors to export, or
        coupons: raw V2 coupons (CSV only, legacy column layout)
    """
    payload = get_request_payload()
    file_format = (payload.get('format') or 'csv').lower()
    if file_format not in ('csv', 'json'):
        return bad_request('format must be csv or json', ErrorCode.INVALID_FIELD)

    legacy = payload.get('coupons')
    codes = payload.get('codes')

    if file_format == 'csv' and isinstance(legacy, list):
        body = legacy_coupons_to_csv(legacy)
    elif isinstance(codes, list):
        try:
            coupons = [Coupon.from_payload(item) for item in codes]
        except InvalidCouponError as e:
            return bad_request(e.message, ErrorCode.INVALID_FIELD)
        body = coupons_to_csv(coupons) if file_format == 'csv' else coupons_to_json(coupons)
    else:
        return bad_request('codes array is required', ErrorCode.MISSING_FIELD)

    today = datetime.utcnow().strftime('%Y-%m-%d')
    mimetype = 'text/csv' if file_format == 'csv' else 'application/json'
    return Response(
        body,
        mimetype=mimetype,
        headers={'Content-Disposition': f'attachment; filename=coupon-export-{today}.{file_format}'}
    )
