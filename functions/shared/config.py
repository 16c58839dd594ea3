"""
Runtime configuration for the billing Lambdas.

Settings come from environment variables (set by the deployment stack);
provider credentials come from Secrets Manager.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

from botocore.exceptions import ClientError

from .aws_clients import get_secretsmanager
from .constants import (
    COINBASE_API_URL,
    CRYPTO_PAYMENTS,
    ORDERS,
    TIER_POLICIES,
    TIER_POLICY_REPLACE,
    USERS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Process-wide settings. Built once per container, never mutated."""

    users_table: str = "kirk-users"
    orders_table: str = "kirk-orders"
    crypto_payments_table: str = "kirk-crypto-payments"
    table_prefix: str = "kirk-"
    user_pool_id: Optional[str] = None
    stripe_secret_arn: Optional[str] = None
    stripe_webhook_secret_arn: Optional[str] = None
    coinbase_api_key_arn: Optional[str] = None
    coinbase_webhook_secret_arn: Optional[str] = None
    tier_policy: str = TIER_POLICY_REPLACE
    crypto_charge_name: str = "Kirk Client Purchase"
    crypto_redirect_url: str = "https://kirkclient.site/success.html"
    crypto_cancel_url: str = "https://kirkclient.site/cancel.html"
    coinbase_api_url: str = COINBASE_API_URL

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the environment.

        Uses `or` so empty-string env vars (unset stack parameters) fall
        back to the defaults.
        """
        tier_policy = (os.environ.get("TIER_POLICY") or TIER_POLICY_REPLACE).strip().lower()
        if tier_policy not in TIER_POLICIES:
            logger.warning(f"Unknown TIER_POLICY {tier_policy!r}, using {TIER_POLICY_REPLACE}")
            tier_policy = TIER_POLICY_REPLACE

        defaults = cls()
        return cls(
            users_table=os.environ.get("USERS_TABLE") or defaults.users_table,
            orders_table=os.environ.get("ORDERS_TABLE") or defaults.orders_table,
            crypto_payments_table=os.environ.get("CRYPTO_PAYMENTS_TABLE") or defaults.crypto_payments_table,
            table_prefix=os.environ.get("TABLE_PREFIX") or defaults.table_prefix,
            user_pool_id=os.environ.get("USER_POOL_ID") or None,
            stripe_secret_arn=os.environ.get("STRIPE_SECRET_ARN") or None,
            stripe_webhook_secret_arn=os.environ.get("STRIPE_WEBHOOK_SECRET_ARN") or None,
            coinbase_api_key_arn=os.environ.get("COINBASE_API_KEY_ARN") or None,
            coinbase_webhook_secret_arn=os.environ.get("COINBASE_WEBHOOK_SECRET_ARN") or None,
            tier_policy=tier_policy,
            crypto_charge_name=os.environ.get("CRYPTO_CHARGE_NAME") or defaults.crypto_charge_name,
            crypto_redirect_url=os.environ.get("CRYPTO_REDIRECT_URL") or defaults.crypto_redirect_url,
            crypto_cancel_url=os.environ.get("CRYPTO_CANCEL_URL") or defaults.crypto_cancel_url,
            coinbase_api_url=os.environ.get("COINBASE_API_URL") or defaults.coinbase_api_url,
        )

    @property
    def collection_tables(self) -> dict[str, str]:
        """Map document collections to their DynamoDB table names."""
        return {
            USERS: self.users_table,
            ORDERS: self.orders_table,
            CRYPTO_PAYMENTS: self.crypto_payments_table,
        }


def get_secret(secret_arn: Optional[str], field: str) -> Optional[str]:
    """Retrieve a secret string from Secrets Manager.

    Secrets may be stored raw or as a JSON object; for JSON the named
    field is used, falling back to the raw string.

    Returns:
        The secret value, or None if not configured or unreadable.
    """
    if not secret_arn:
        return None

    try:
        response = get_secretsmanager().get_secret_value(SecretId=secret_arn)
    except ClientError as e:
        logger.error(f"Failed to retrieve secret {field}: {e}")
        return None

    secret_value = response.get("SecretString", "")
    try:
        secret_json = json.loads(secret_value)
    except json.JSONDecodeError:
        return secret_value or None

    if isinstance(secret_json, dict):
        return secret_json.get(field) or secret_value
    return secret_value or None
