"""
Create Payment Intent Endpoint - POST /payments/stripe/intent

Creates a Stripe PaymentIntent for a storefront purchase. The purchased
items and user id ride along in the intent metadata so the webhook can
reconcile the subscription once Stripe confirms the payment.
"""

import logging
import time
from decimal import ROUND_HALF_UP

import stripe

from shared.app_context import AppContext, get_app_context
from shared.constants import GUEST_USER_ID
from shared.errors import APIError, ConfigurationError, InvalidRequestError
from shared.logging_utils import configure_structured_logging, log_api_request, set_request_id
from shared.request_utils import (
    get_method,
    get_origin,
    parse_amount,
    parse_items_field,
    parse_json_body,
    require_method,
)
from shared.response_utils import error_response, preflight_response, success_response

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

ALLOWED_METHODS = "POST, OPTIONS"


def create_payment_intent(app: AppContext, body: dict) -> dict:
    """
    Validate the request and create the customer + payment intent.

    Request body:
    {
        "amount": 1999,              # minor units (cents)
        "currency": "usd",
        "customerEmail": "a@b.c",
        "userId": "uid" | null,
        "items": [{"name": "KirkLite", ...}]
    }

    Returns:
        {"clientSecret": ..., "paymentIntentId": ...}
    """
    amount = parse_amount(body.get("amount"))
    amount_minor = int(amount.to_integral_value(rounding=ROUND_HALF_UP))
    if amount_minor <= 0:
        raise InvalidRequestError("Invalid amount", code="invalid_amount")

    items = parse_items_field(body)

    if app.stripe is None:
        raise ConfigurationError("stripe_not_configured", "Payment system not configured")

    email = body.get("customerEmail") or None
    user_id = body.get("userId") or GUEST_USER_ID
    currency = body.get("currency") or "usd"

    customer = app.stripe.find_or_create_customer(email, user_id)
    intent = app.stripe.create_payment_intent(
        amount=amount_minor,
        currency=currency,
        customer_id=customer.id,
        user_id=user_id,
        items=items,
        receipt_email=email,
    )

    logger.info(f"Created payment intent {intent.id} for user {user_id}")
    return {"clientSecret": intent.client_secret, "paymentIntentId": intent.id}


def handler(event, context):
    """Lambda handler for POST /payments/stripe/intent."""
    start_time = time.time()
    configure_structured_logging()
    set_request_id(event)
    origin = get_origin(event)

    if get_method(event) == "OPTIONS":
        return preflight_response(origin, ALLOWED_METHODS)

    try:
        require_method(event, "POST")
        body = parse_json_body(event)
        response = success_response(create_payment_intent(get_app_context(), body), origin=origin)
    except APIError as e:
        response = error_response(e.status_code, e.code, e.message, origin=origin)
    except stripe.StripeError as e:
        logger.error(f"Stripe Payment Intent Error: {e}")
        message = getattr(e, "user_message", None) or str(e)
        response = error_response(500, "stripe_error", message, origin=origin)
    except Exception as e:
        logger.error(f"Error creating payment intent: {e}", exc_info=True)
        response = error_response(500, "internal_error", str(e), origin=origin)

    log_api_request(logger, "POST", "/payments/stripe/intent", response["statusCode"],
                    (time.time() - start_time) * 1000)
    return response
