"""
Create Crypto Payment Endpoint - POST /payments/crypto/charge

Creates a Coinbase Commerce charge and records it as a pending crypto
payment. The Coinbase webhook completes the record once the charge is
confirmed on-chain.
"""

import json
import logging
import time

from shared.app_context import AppContext, get_app_context
from shared.constants import CRYPTO_PAYMENTS, GUEST_USER_ID, STATUS_PENDING
from shared.documents import SERVER_TIMESTAMP
from shared.errors import APIError, ConfigurationError
from shared.logging_utils import configure_structured_logging, log_api_request, set_request_id
from shared.request_utils import (
    get_method,
    get_origin,
    parse_amount,
    parse_items_field,
    parse_json_body,
    require_method,
)
from shared.response_utils import decimal_default, error_response, preflight_response, success_response

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

ALLOWED_METHODS = "POST, OPTIONS"


def create_crypto_payment(app: AppContext, body: dict) -> dict:
    """
    Create the charge and the pending payment record.

    Request body:
    {
        "amount": 19.99,             # major units
        "currency": "USD",
        "userId": "uid" | null,
        "email": "a@b.c",
        "items": [{"name": "Kirk Client", ...}]
    }

    Returns:
        {"chargeId": ..., "hostedUrl": ..., "code": ...}
    """
    amount = parse_amount(body.get("amount"))

    items = parse_items_field(body)

    if app.coinbase is None:
        raise ConfigurationError("coinbase_not_configured", "Crypto payments not configured")

    user_id = body.get("userId") or GUEST_USER_ID
    email = body.get("email") or ""
    settings = app.settings

    charge = app.coinbase.create_charge(
        name=settings.crypto_charge_name,
        description=f"Purchase for {email or 'customer'}",
        amount=amount,
        currency=body.get("currency") or "USD",
        metadata={
            "userId": user_id,
            "email": email,
            "items": json.dumps(items, default=decimal_default),
        },
        redirect_url=settings.crypto_redirect_url,
        cancel_url=settings.crypto_cancel_url,
    )

    app.store.add(
        CRYPTO_PAYMENTS,
        {
            "chargeId": charge["id"],
            "userId": user_id,
            "email": email,
            "items": items,
            "amount": amount,
            "status": STATUS_PENDING,
            "createdAt": SERVER_TIMESTAMP,
        },
    )

    logger.info(f"Created crypto charge {charge['id']} for user {user_id}")
    return {
        "chargeId": charge["id"],
        "hostedUrl": charge.get("hosted_url"),
        "code": charge.get("code"),
    }


def handler(event, context):
    """Lambda handler for POST /payments/crypto/charge."""
    start_time = time.time()
    configure_structured_logging()
    set_request_id(event)
    origin = get_origin(event)

    if get_method(event) == "OPTIONS":
        return preflight_response(origin, ALLOWED_METHODS)

    try:
        require_method(event, "POST")
        body = parse_json_body(event)
        response = success_response(create_crypto_payment(get_app_context(), body), origin=origin)
    except APIError as e:
        if e.status_code >= 500:
            logger.error(f"Coinbase Commerce Error: {e.message}")
        response = error_response(e.status_code, e.code, e.message, origin=origin)
    except Exception as e:
        logger.error(f"Error creating crypto payment: {e}", exc_info=True)
        response = error_response(500, "internal_error", str(e), origin=origin)

    log_api_request(logger, "POST", "/payments/crypto/charge", response["statusCode"],
                    (time.time() - start_time) * 1000)
    return response
