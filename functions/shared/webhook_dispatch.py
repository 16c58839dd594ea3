"""
Webhook dispatch shared by the Stripe and Coinbase Commerce endpoints.

A delivery is verified and normalized first. Verification failures are
the only case answered with a client error; once a delivery is verified it
is always acknowledged with 200 so the provider stops redelivering, and
any reconciliation failure is logged instead.

Side effects of a succeeded payment, in order:
    1. Subscription update (skipped for guest purchases)
    2. Order record, keyed by provider + external id (created once)
    3. Coinbase only: pending crypto payment records marked completed

Each step runs even if an earlier one failed.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .app_context import AppContext
from .constants import (
    CHARGE_ID_INDEX,
    CRYPTO_PAYMENTS,
    ORDERS,
    PROVIDER_COINBASE,
    PROVIDER_STRIPE,
    STATUS_COMPLETED,
)
from .documents import SERVER_TIMESTAMP
from .errors import MalformedPayloadError, PersistenceError, WebhookVerificationError
from .logging_utils import log_payment_event, set_provider
from .payment_events import PARSERS, NormalizedEvent, PaymentOutcome, normalize
from .request_utils import get_header, get_raw_body
from .response_utils import ack_response, error_response
from .subscriptions import apply_subscription
from .types import APIGatewayEvent, LambdaResponse

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """What reconciling one event did."""

    tier: Optional[str] = None
    order_created: bool = False
    duplicate_order: bool = False
    pending_completed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def complete_pending_crypto_payments(app: AppContext, charge_id: str) -> int:
    """Mark every pending crypto payment for a charge as completed.

    Returns:
        Number of records updated (zero or more)
    """
    matches = app.store.query(CRYPTO_PAYMENTS, "chargeId", "==", charge_id, index_name=CHARGE_ID_INDEX)
    for doc in matches:
        app.store.update(
            CRYPTO_PAYMENTS,
            doc.id,
            {"status": STATUS_COMPLETED, "completedAt": SERVER_TIMESTAMP},
        )
    return len(matches)


def reconcile(app: AppContext, event: NormalizedEvent) -> ReconcileResult:
    """Apply the side effects of a normalized payment event."""
    result = ReconcileResult()

    if event.outcome is PaymentOutcome.FAILED:
        logger.error(f"Payment failed: {event.external_id}", extra={"event_type": event.event_type})
        return result

    if event.outcome is PaymentOutcome.IGNORED:
        logger.info(f"Unhandled event type: {event.event_type}")
        return result

    if not event.is_guest:
        try:
            result.tier = apply_subscription(
                app.store, event.user_id, event.items, app.settings.tier_policy
            )
        except PersistenceError as e:
            logger.error(f"Failed to update subscription for {event.user_id}: {e}")
            result.errors.append("subscription_update_failed")

    try:
        created = app.store.create(
            ORDERS,
            event.order_id,
            {**event.order_fields(), "status": STATUS_COMPLETED, "createdAt": SERVER_TIMESTAMP},
        )
        result.order_created = created
        result.duplicate_order = not created
        if not created:
            logger.info(f"Order {event.order_id} already recorded, skipping")
    except PersistenceError as e:
        logger.error(f"Failed to record order {event.order_id}: {e}")
        result.errors.append("order_write_failed")

    if event.provider == PROVIDER_COINBASE:
        try:
            result.pending_completed = complete_pending_crypto_payments(app, event.external_id)
        except PersistenceError as e:
            logger.error(f"Failed to complete pending crypto payments for {event.external_id}: {e}")
            result.errors.append("pending_update_failed")

    return result


def _webhook_secret(app: AppContext, provider: str) -> Optional[str]:
    if provider == PROVIDER_STRIPE:
        return app.stripe_webhook_secret
    return app.coinbase_webhook_secret


def handle_webhook(event: APIGatewayEvent, app: AppContext, provider: str) -> LambdaResponse:
    """
    Verify, normalize and reconcile one webhook delivery.

    Returns:
        400 for verification failures, 500 if the Stripe signing secret is
        not configured, otherwise 200 {"received": true}
    """
    set_provider(provider)
    secret = _webhook_secret(app, provider)

    if provider == PROVIDER_STRIPE and not secret:
        logger.error("Stripe webhook secret not configured")
        return error_response(500, "stripe_not_configured", "Stripe not configured")

    parser = PARSERS[provider]
    try:
        raw_body = get_raw_body(event)
    except (ValueError, UnicodeDecodeError):
        return error_response(400, "invalid_webhook_payload", "Invalid webhook payload")

    try:
        normalized = normalize(provider, raw_body, get_header(event, parser.signature_header), secret)
    except WebhookVerificationError as e:
        return e.to_response()
    except MalformedPayloadError as e:
        # Verified but unusable; redelivery would not help
        logger.error(f"Malformed {provider} event: {e.message}")
        return ack_response(processed=False, error_code=e.code)

    logger.info(f"Processing {provider} event: {normalized.event_type} (id={normalized.external_id})")

    try:
        result = reconcile(app, normalized)
    except Exception as e:
        logger.error(f"Unexpected error handling {normalized.event_type}: {e}", exc_info=True)
        log_payment_event(logger, provider, normalized.event_type, normalized.external_id,
                          "error", normalized.user_id, error=str(e))
        return ack_response(processed=False, error_code="processing_failed")

    if normalized.outcome is PaymentOutcome.SUCCEEDED:
        log_payment_event(
            logger,
            provider,
            normalized.event_type,
            normalized.external_id,
            "reconciled" if result.ok else "partially_reconciled",
            normalized.user_id,
            tier=result.tier,
            error=", ".join(result.errors) or None,
        )

    if not result.ok:
        return ack_response(processed=False, error_code="processing_failed")
    if result.duplicate_order:
        return ack_response(duplicate=True)
    return ack_response()
