"""
Stripe Webhook Endpoint - POST /webhooks/stripe

Reconciles payment intent events into subscription tiers and orders.
Uses Stripe signature verification instead of API key auth.
"""

import logging

from shared.app_context import get_app_context
from shared.constants import PROVIDER_STRIPE
from shared.logging_utils import configure_structured_logging, set_request_id
from shared.webhook_dispatch import handle_webhook

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def handler(event, context):
    """
    Lambda handler for Stripe webhooks.

    Handles:
    - payment_intent.succeeded: Upgrade user tier, record order
    - payment_intent.payment_failed: Logged only
    """
    configure_structured_logging()
    set_request_id(event)

    return handle_webhook(event, get_app_context(), PROVIDER_STRIPE)
