"""
Connection test API.

Verifies the supplied credentials before the wizard goes any further.
"""
import logging
from flask import Blueprint, jsonify, g

from ..middleware.credentials import require_credentials
from ..utils.errors import error_response, ErrorCode
from ..utils.exceptions import BigCommerceError

logger = logging.getLogger(__name__)

connection_bp = Blueprint('connection', __name__)


@connection_bp.route('/test-connection', methods=['POST'])
@require_credentials()
def test_connection():
    """
    Check the store (V2 /store) and promotions API (V3 /promotions) access.

    Request body:
        storeHash, accessToken, channelId (optional)
    """
    try:
        result = g.bigcommerce.test_connection()
    except BigCommerceError as e:
        return error_response(e.message or 'Connection failed', ErrorCode.CONNECTION_FAILED, 500)

    logger.info(f"Connection verified for store {g.store_hash}")
    return jsonify(result)
