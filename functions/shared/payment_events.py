"""
Payment event normalization for Stripe and Coinbase Commerce webhooks.

Each provider gets a parser that can verify a delivery, classify its
event type and pull out the purchase metadata. Both produce a
NormalizedEvent subclass tagged with the provider name, so the dispatcher
never looks at provider-specific payload shapes.
"""

import hashlib
import hmac
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, ClassVar, Optional, Union

import stripe

from .constants import (
    COINBASE_CHARGE_CONFIRMED,
    COINBASE_CHARGE_FAILED,
    GUEST_USER_ID,
    PAYMENT_METHOD_COINBASE,
    PAYMENT_METHOD_STRIPE,
    PROVIDER_COINBASE,
    PROVIDER_STRIPE,
    STRIPE_PAYMENT_FAILED,
    STRIPE_PAYMENT_SUCCEEDED,
    UNKNOWN_CRYPTOCURRENCY,
)
from .documents import is_storable
from .errors import MalformedPayloadError, WebhookVerificationError

logger = logging.getLogger(__name__)


class PaymentOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass(frozen=True)
class NormalizedEvent:
    """Provider-agnostic view of a payment webhook."""

    provider: ClassVar[str] = ""
    payment_method: ClassVar[str] = ""

    event_type: str
    outcome: PaymentOutcome
    external_id: str = ""
    user_id: str = GUEST_USER_ID
    items: tuple = ()
    amount: Optional[Decimal] = None
    currency: Optional[str] = None

    @property
    def is_guest(self) -> bool:
        return not self.user_id or self.user_id == GUEST_USER_ID

    @property
    def succeeded(self) -> bool:
        return self.outcome is PaymentOutcome.SUCCEEDED

    @property
    def extra(self) -> dict:
        """Provider-specific fields carried onto the order record."""
        return {}

    @property
    def order_id(self) -> str:
        return f"{self.provider}_{self.external_id}"

    def order_fields(self) -> dict:
        """Order record fields (without timestamps) for a succeeded payment."""
        fields = {
            "provider": self.provider,
            "externalId": self.external_id,
            "userId": self.user_id or GUEST_USER_ID,
            "amount": self.amount,
            "currency": self.currency,
            "items": list(self.items),
            "paymentMethod": self.payment_method,
            **self.extra,
        }
        # Optional provider fields may be absent
        return {k: v for k, v in fields.items() if v is not None}


@dataclass(frozen=True)
class StripePaymentEvent(NormalizedEvent):
    provider: ClassVar[str] = PROVIDER_STRIPE
    payment_method: ClassVar[str] = PAYMENT_METHOD_STRIPE

    @property
    def extra(self) -> dict:
        return {"paymentIntentId": self.external_id}


@dataclass(frozen=True)
class CoinbaseChargeEvent(NormalizedEvent):
    provider: ClassVar[str] = PROVIDER_COINBASE
    payment_method: ClassVar[str] = PAYMENT_METHOD_COINBASE

    charge_code: Optional[str] = None
    cryptocurrency: str = UNKNOWN_CRYPTOCURRENCY
    email: Optional[str] = None

    @property
    def extra(self) -> dict:
        return {
            "chargeId": self.external_id,
            "chargeCode": self.charge_code,
            "cryptocurrency": self.cryptocurrency,
        }


PaymentEvent = Union[StripePaymentEvent, CoinbaseChargeEvent]


def _as_dict(obj: Any) -> dict:
    """Plain dict view of a JSON object or StripeObject."""
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return {}


def _reject_constant(name: str):
    raise MalformedPayloadError(f"Items metadata contains {name}")


def parse_items(raw: Any) -> tuple:
    """
    Parse the purchased-item list stored in provider metadata.

    Metadata values are strings, so items arrive JSON-encoded. A missing
    value means no items.

    Raises:
        MalformedPayloadError: If items are not a JSON list of objects, or
            hold numbers that cannot be stored
    """
    if raw is None or raw == "":
        return ()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw, parse_float=Decimal, parse_constant=_reject_constant)
        except json.JSONDecodeError as e:
            raise MalformedPayloadError("Items metadata is not valid JSON") from e
    if not isinstance(raw, list):
        raise MalformedPayloadError("Items metadata must be a list")
    if not all(isinstance(item, dict) for item in raw):
        raise MalformedPayloadError("Each item must be an object")
    if not is_storable(raw):
        raise MalformedPayloadError("Items metadata holds numbers that cannot be stored")
    return tuple(raw)


def _decimal(value: Any, field_name: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise MalformedPayloadError(f"Invalid {field_name}")
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise MalformedPayloadError(f"Invalid {field_name}") from e
    if not amount.is_finite() or not is_storable(amount):
        raise MalformedPayloadError(f"Invalid {field_name}")
    return amount


class PaymentEventParser(ABC):
    """Verify, classify and extract one provider's webhook deliveries."""

    provider: ClassVar[str] = ""
    signature_header: ClassVar[str] = ""

    @abstractmethod
    def verify(self, raw_body: str, signature: Optional[str], secret: Optional[str]) -> dict:
        """Authenticate the delivery and return the decoded event.

        Raises:
            WebhookVerificationError: If the delivery is not authentic
        """

    @abstractmethod
    def event_type(self, event: dict) -> str:
        """Provider event type string."""

    @abstractmethod
    def extract(self, event: dict) -> NormalizedEvent:
        """Build the normalized event from a verified payload."""

    def normalize(self, raw_body: str, signature: Optional[str], secret: Optional[str]) -> NormalizedEvent:
        return self.extract(self.verify(raw_body, signature, secret))


class StripeEventParser(PaymentEventParser):
    """Stripe signed events (payment intents)."""

    provider = PROVIDER_STRIPE
    signature_header = "Stripe-Signature"

    def verify(self, raw_body: str, signature: Optional[str], secret: Optional[str]) -> dict:
        if not signature:
            raise WebhookVerificationError("Missing Stripe signature", code="missing_signature")
        try:
            event = stripe.Webhook.construct_event(raw_body, signature, secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Invalid Stripe signature: {e}")
            raise WebhookVerificationError("Invalid signature") from e
        except Exception as e:
            logger.error(f"Webhook error: {e}")
            raise WebhookVerificationError("Invalid webhook payload", code="invalid_webhook_payload") from e
        return _as_dict(event)

    def event_type(self, event: dict) -> str:
        return event.get("type") or ""

    def extract(self, event: dict) -> StripePaymentEvent:
        event_type = self.event_type(event)
        payment_intent = _as_dict(_as_dict(event.get("data")).get("object"))
        external_id = payment_intent.get("id") or ""

        if event_type == STRIPE_PAYMENT_FAILED:
            return StripePaymentEvent(event_type, PaymentOutcome.FAILED, external_id=external_id)
        if event_type != STRIPE_PAYMENT_SUCCEEDED:
            return StripePaymentEvent(event_type, PaymentOutcome.IGNORED, external_id=external_id)

        if not external_id:
            raise MalformedPayloadError("Payment intent has no id")

        metadata = _as_dict(payment_intent.get("metadata"))
        amount = _decimal(payment_intent.get("amount"), "amount")
        currency = payment_intent.get("currency")

        return StripePaymentEvent(
            event_type,
            PaymentOutcome.SUCCEEDED,
            external_id=external_id,
            user_id=metadata.get("userId") or GUEST_USER_ID,
            items=parse_items(metadata.get("items")),
            # Stripe amounts are in minor units
            amount=amount / 100 if amount is not None else None,
            currency=currency,
        )


class CoinbaseEventParser(PaymentEventParser):
    """Coinbase Commerce charge events."""

    provider = PROVIDER_COINBASE
    signature_header = "X-CC-Webhook-Signature"

    def verify(self, raw_body: str, signature: Optional[str], secret: Optional[str]) -> dict:
        if secret:
            if not signature:
                raise WebhookVerificationError("Missing Coinbase signature", code="missing_signature")
            expected = hmac.new(secret.encode(), raw_body.encode(), hashlib.sha256).hexdigest()
            if not hmac.compare_digest(expected, signature.strip()):
                logger.warning("Invalid Coinbase webhook signature")
                raise WebhookVerificationError("Invalid signature")
        else:
            logger.warning("Coinbase webhook secret not configured, accepting unsigned payload")

        try:
            body = json.loads(raw_body or "{}", parse_float=Decimal)
        except json.JSONDecodeError as e:
            raise WebhookVerificationError("Invalid webhook payload", code="invalid_webhook_payload") from e
        if not isinstance(body, dict):
            raise WebhookVerificationError("Invalid webhook payload", code="invalid_webhook_payload")

        # Coinbase wraps the event in an envelope; bare events are accepted too
        if isinstance(body.get("event"), dict):
            return body["event"]
        return body

    def event_type(self, event: dict) -> str:
        return event.get("type") or ""

    def extract(self, event: dict) -> CoinbaseChargeEvent:
        event_type = self.event_type(event)
        charge = event.get("data") if isinstance(event.get("data"), dict) else {}
        external_id = charge.get("id") or ""

        if event_type == COINBASE_CHARGE_FAILED:
            return CoinbaseChargeEvent(event_type, PaymentOutcome.FAILED, external_id=external_id)
        if event_type != COINBASE_CHARGE_CONFIRMED:
            return CoinbaseChargeEvent(event_type, PaymentOutcome.IGNORED, external_id=external_id)

        if not external_id:
            raise MalformedPayloadError("Charge has no id")

        metadata = charge.get("metadata") if isinstance(charge.get("metadata"), dict) else {}
        pricing = charge.get("pricing") if isinstance(charge.get("pricing"), dict) else {}
        local_price = pricing.get("local") if isinstance(pricing.get("local"), dict) else {}

        return CoinbaseChargeEvent(
            event_type,
            PaymentOutcome.SUCCEEDED,
            external_id=external_id,
            user_id=metadata.get("userId") or GUEST_USER_ID,
            items=parse_items(metadata.get("items")),
            amount=_decimal(local_price.get("amount"), "amount"),
            currency=local_price.get("currency"),
            charge_code=charge.get("code"),
            cryptocurrency=_cryptocurrency(charge),
            email=metadata.get("email") or None,
        )


def _cryptocurrency(charge: dict) -> str:
    """Currency of the first payment, or "unknown" if any level is missing."""
    payments = charge.get("payments")
    if not isinstance(payments, list) or not payments:
        return UNKNOWN_CRYPTOCURRENCY
    node: Any = payments[0]
    for key in ("value", "crypto", "currency"):
        if not isinstance(node, dict):
            return UNKNOWN_CRYPTOCURRENCY
        node = node.get(key)
    return node if isinstance(node, str) and node else UNKNOWN_CRYPTOCURRENCY


PARSERS: dict[str, PaymentEventParser] = {
    PROVIDER_STRIPE: StripeEventParser(),
    PROVIDER_COINBASE: CoinbaseEventParser(),
}


def normalize(
    provider: str,
    raw_body: str,
    signature: Optional[str],
    secret: Optional[str],
) -> PaymentEvent:
    """
    Verify a webhook delivery and translate it into a NormalizedEvent.

    Args:
        provider: "stripe" or "coinbase"
        raw_body: Request body exactly as received
        signature: Value of the provider's signature header
        secret: Webhook signing secret

    Raises:
        WebhookVerificationError: Delivery failed authentication
        MalformedPayloadError: Verified payload lacks required data
    """
    try:
        parser = PARSERS[provider]
    except KeyError:
        raise ValueError(f"Unknown payment provider: {provider}") from None
    return parser.normalize(raw_body, signature, secret)
