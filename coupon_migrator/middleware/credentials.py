"""
Credential extraction middleware.

Every endpoint receives the store's API credentials in the request body
({storeHash, accessToken, channelId}); nothing is stored server-side.
Multipart requests (file import) may send them as form fields instead.
"""
from functools import wraps
from typing import Any, Dict
from flask import request, g, current_app

from ..services.bigcommerce_client import client_from_credentials
from ..utils.errors import bad_request, ErrorCode

DEFAULT_MESSAGE = 'Store hash and access token are required'


def get_request_payload() -> Dict[str, Any]:
    """JSON body, or form fields for multipart requests."""
    if request.is_json:
        payload = request.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}
    return request.form.to_dict()


def require_credentials(message: str = DEFAULT_MESSAGE):
    """
    Decorator requiring storeHash and accessToken in the request.

    Sets g.payload, g.store_hash, g.access_token, g.channel_id and
    g.bigcommerce (a rate-limited client for the store).

    Usage:
        @require_credentials('Store hash, access token, and codes array are required')
        def migrate():
            client = g.bigcommerce
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            payload = get_request_payload()
            store_hash = payload.get('storeHash')
            access_token = payload.get('accessToken')

            if not store_hash or not access_token:
                return bad_request(message, ErrorCode.MISSING_FIELD)

            g.payload = payload
            g.store_hash = store_hash
            g.access_token = access_token
            g.channel_id = str(payload.get('channelId') or current_app.config.get('DEFAULT_CHANNEL_ID', '1'))
            g.bigcommerce = client_from_credentials(store_hash, access_token)

            return f(*args, **kwargs)

        return decorated_function

    return decorator
