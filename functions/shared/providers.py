"""
Payment provider clients.

Both clients are constructed once per container (see app_context) and
passed to the handlers that need them.
"""

import json
import logging
import time
from decimal import Decimal
from typing import Any, Optional

import httpx
import stripe

from .constants import COINBASE_API_URL, COINBASE_API_VERSION, DEFAULT_TIMEOUT, PROVIDER_COINBASE, PROVIDER_STRIPE
from .errors import ProviderError
from .logging_utils import log_external_call
from .response_utils import decimal_default

logger = logging.getLogger(__name__)


class StripeGateway:
    """Stripe API calls made with an explicit API key."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def find_or_create_customer(self, email: Optional[str], user_id: str):
        """Reuse the customer registered under `email`, or create one."""
        if email:
            existing = stripe.Customer.list(email=email, limit=1, api_key=self.api_key)
            if existing.data:
                return existing.data[0]

        params: dict[str, Any] = {"metadata": {"userId": user_id}}
        if email:
            params["email"] = email
        return stripe.Customer.create(api_key=self.api_key, **params)

    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        customer_id: str,
        user_id: str,
        items: list,
        receipt_email: Optional[str] = None,
    ):
        """Create a payment intent carrying the purchase in its metadata."""
        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "customer": customer_id,
            "metadata": {
                "userId": user_id,
                "items": json.dumps(items, default=decimal_default),
            },
        }
        if receipt_email:
            params["receipt_email"] = receipt_email

        start = time.time()
        try:
            intent = stripe.PaymentIntent.create(api_key=self.api_key, **params)
        except stripe.StripeError as e:
            log_external_call(logger, PROVIDER_STRIPE, "payment_intents.create", False,
                              (time.time() - start) * 1000, str(e))
            raise
        log_external_call(logger, PROVIDER_STRIPE, "payment_intents.create", True, (time.time() - start) * 1000)
        return intent


class CoinbaseCommerceClient:
    """Minimal Coinbase Commerce REST client (charges only)."""

    def __init__(
        self,
        api_key: str,
        base_url: str = COINBASE_API_URL,
        http_client: Optional[httpx.Client] = None,
    ):
        self._client = http_client or httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(DEFAULT_TIMEOUT, connect=10.0),
        )
        self._headers = {
            "Content-Type": "application/json",
            "X-CC-Api-Key": api_key,
            "X-CC-Version": COINBASE_API_VERSION,
        }

    def create_charge(
        self,
        name: str,
        description: str,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        redirect_url: str,
        cancel_url: str,
    ) -> dict:
        """
        Create a fixed-price charge.

        Returns:
            The charge object (the "data" member of the response)

        Raises:
            ProviderError: On HTTP or transport failure
        """
        payload = {
            "name": name,
            "description": description,
            "pricing_type": "fixed_price",
            "local_price": {
                "amount": f"{amount:.2f}",
                "currency": currency,
            },
            "metadata": metadata,
            "redirect_url": redirect_url,
            "cancel_url": cancel_url,
        }

        start = time.time()
        try:
            response = self._client.post("/charges", json=payload, headers=self._headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _coinbase_error_message(e.response) or str(e)
            log_external_call(logger, PROVIDER_COINBASE, "charges.create", False,
                              (time.time() - start) * 1000, message)
            raise ProviderError(PROVIDER_COINBASE, message) from e
        except httpx.RequestError as e:
            log_external_call(logger, PROVIDER_COINBASE, "charges.create", False,
                              (time.time() - start) * 1000, str(e))
            raise ProviderError(PROVIDER_COINBASE, f"Coinbase Commerce request failed: {e}") from e

        log_external_call(logger, PROVIDER_COINBASE, "charges.create", True, (time.time() - start) * 1000)

        data = response.json().get("data")
        if not isinstance(data, dict) or not data.get("id"):
            raise ProviderError(PROVIDER_COINBASE, "Coinbase Commerce returned no charge")
        return data

    def close(self) -> None:
        self._client.close()


def _coinbase_error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message")
    return None
