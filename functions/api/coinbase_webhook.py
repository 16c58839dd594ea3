"""
Coinbase Commerce Webhook Endpoint - POST /webhooks/coinbase

Reconciles confirmed crypto charges into subscription tiers, orders and
completed pending-payment records. Deliveries are HMAC-verified with the
shared secret when COINBASE_WEBHOOK_SECRET_ARN is configured.
"""

import logging

from shared.app_context import get_app_context
from shared.constants import PROVIDER_COINBASE
from shared.logging_utils import configure_structured_logging, set_request_id
from shared.webhook_dispatch import handle_webhook

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def handler(event, context):
    """
    Lambda handler for Coinbase Commerce webhooks.

    Handles:
    - charge:confirmed: Upgrade user tier, record order, complete pending payment
    - charge:failed: Logged only
    """
    configure_structured_logging()
    set_request_id(event)

    return handle_webhook(event, get_app_context(), PROVIDER_COINBASE)
